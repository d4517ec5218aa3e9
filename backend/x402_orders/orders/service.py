"""
Order service: the two-phase x402 purchase flow.

Phase 1 (no ``X-PAYMENT``): create a priced order and answer with a 402
challenge. Phase 2 (with ``X-PAYMENT``): reload the order, verify the payment,
collect the funds, dispatch fulfillment. Every outcome, including partial
failures, is returned as an ``OrderOutcome`` for the HTTP layer to render.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from x402_orders.config import FacilitatorConfig
from x402_orders.errors import ErrorKind, FacilitatorError, validation_error, verification_error
from x402_orders.fulfillment.dispatcher import FulfillmentDispatcher, FulfillmentResult, fulfillment_failed
from x402_orders.fulfillment.platform import FulfillmentPlatformClient, PlatformOrder
from x402_orders.fulfillment.sessions import OrderSessionResolver
from x402_orders.logger import order_logger
from x402_orders.orders.state import OrderProgress, OrderState
from x402_orders.payment import challenge
from x402_orders.payment.collector import FundCollector
from x402_orders.payment.models import X402_VERSION, OrderSession, Recipient, TransactionResult
from x402_orders.payment.registry import AssetInfo, require_token_asset, resolve_asset
from x402_orders.payment.verifier import decode_payment_header, verify_payload
from x402_orders.wallet.executor import WalletExecutor

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "usdc"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"
PAYMENT_REQUIRED_MESSAGE = "X-PAYMENT header is required"


@dataclass(frozen=True)
class OrderRequest:
    """A purchase request as received from the conversational client."""
    product_locator: str
    recipient: Recipient
    network: Optional[str] = None
    currency: Optional[str] = None


@dataclass
class OrderOutcome:
    """What the HTTP layer should answer."""
    status_code: int
    body: Dict[str, Any]
    state: Optional[OrderState] = None
    headers: Dict[str, str] = field(default_factory=dict)


def order_summary(
    order_id: str,
    locale: Optional[str],
    line_items: List[Dict[str, Any]],
    total_price: Optional[Dict[str, Any]],
    recipient_only: bool = False,
) -> Dict[str, Any]:
    """Client-facing view of a platform order."""
    items = []
    for item in line_items:
        delivery = item.get("delivery") or {}
        items.append({
            "chain": item.get("chain"),
            "metadata": item.get("metadata"),
            "delivery": {"recipient": delivery.get("recipient")} if recipient_only else delivery,
            "quantity": item.get("quantity"),
        })
    return {
        "orderId": order_id,
        "locale": locale,
        "lineItems": items,
        "quote": {"totalPrice": total_price},
    }


def _session_summary(session: OrderSession) -> Dict[str, Any]:
    return order_summary(session.order_id, session.locale, session.line_items, session.total_price)


def _platform_summary(order: PlatformOrder) -> Dict[str, Any]:
    return order_summary(
        order.order_id, order.locale, order.line_items, order.total_price, recipient_only=True
    )


def _collected_summary(collected: TransactionResult, **extra: Any) -> Dict[str, Any]:
    summary = {
        "status": "confirmed",
        "collected": True,
        "transactionHash": collected.transaction_hash,
    }
    if collected.already_submitted:
        summary["alreadySubmitted"] = True
    summary.update(extra)
    return summary


def payment_response_header(collected: TransactionResult, network: str) -> str:
    """Base64 settlement receipt returned alongside a paid response."""
    receipt = {
        "success": True,
        "transaction": collected.transaction_hash,
        "network": network,
        "payer": collected.from_address,
    }
    return base64.b64encode(json.dumps(receipt).encode("utf-8")).decode("ascii")


class OrderService:
    """Glues resolver, challenge builder, verifier, collector and dispatcher."""

    def __init__(
        self,
        config: FacilitatorConfig,
        resolver: OrderSessionResolver,
        collector: FundCollector,
        dispatcher: FulfillmentDispatcher,
    ):
        self.config = config
        self.resolver = resolver
        self.collector = collector
        self.dispatcher = dispatcher

    @classmethod
    def from_components(
        cls,
        config: FacilitatorConfig,
        platform: FulfillmentPlatformClient,
        executor: WalletExecutor,
    ) -> "OrderService":
        return cls(
            config=config,
            resolver=OrderSessionResolver(platform, config.wallet_address, config.fee_percent),
            collector=FundCollector(executor),
            dispatcher=FulfillmentDispatcher(executor, platform),
        )

    # --- Shared helpers ---

    def _error(self, error: FacilitatorError, state: Optional[OrderState] = None) -> OrderOutcome:
        level = logging.ERROR if error.status_code >= 500 else logging.WARNING
        order_logger(logger, error.order_id).log(
            level, f"Request rejected with {error.status_code} {error.code}: {error.message}"
        )
        return OrderOutcome(
            status_code=error.status_code,
            body=error.to_body(expose_details=not self.config.is_production),
            state=state,
        )

    def _resolve_request_asset(
        self,
        network: str,
        currency: str,
    ) -> Union[AssetInfo, FacilitatorError]:
        if not self.config.is_supported_network(network):
            logger.error(
                f"Unsupported network requested: {network} "
                f"(supported: {', '.join(self.config.supported_networks)})"
            )
            return validation_error(
                "unsupported_network",
                "Unsupported network",
                f'Network "{network}" is not supported. '
                f"Supported networks: {', '.join(self.config.supported_networks)}",
                supportedNetworks=list(self.config.supported_networks),
            )
        if not self.config.is_supported_currency(currency):
            logger.error(
                f"Unsupported currency requested: {currency} "
                f"(supported: {', '.join(self.config.supported_currencies)})"
            )
            return validation_error(
                "unsupported_currency",
                "Unsupported currency",
                f'Currency "{currency}" is not supported. '
                f"Supported currencies: {', '.join(self.config.supported_currencies)}",
                supportedCurrencies=list(self.config.supported_currencies),
            )
        asset = resolve_asset(network, currency)
        if isinstance(asset, FacilitatorError):
            return asset
        return require_token_asset(asset) or asset

    def _network_and_currency(self, request: OrderRequest):
        network = (request.network or self.config.default_network).lower()
        currency = (request.currency or DEFAULT_CURRENCY).lower()
        return network, currency

    # --- Phase 1: challenge ---

    def request_payment(self, request: OrderRequest, resource: str = "/orders") -> OrderOutcome:
        """Create a priced order and return the 402 payment challenge."""
        network, currency = self._network_and_currency(request)
        logger.info(
            f"No payment header - creating order for product {request.product_locator} "
            f"(network={network}, currency={currency})"
        )

        asset = self._resolve_request_asset(network, currency)
        if isinstance(asset, FacilitatorError):
            return self._error(asset)

        progress = OrderProgress()
        session = self.resolver.create_priced(
            request.product_locator, request.recipient, network, currency
        )
        if isinstance(session, FacilitatorError):
            return self._error(session, progress.state)
        progress.order_id = session.order_id
        progress.advance(OrderState.PRICED)

        requirements = challenge.build(
            session,
            pay_to=self.config.wallet_address,
            timeout_seconds=self.config.payment_timeout_seconds,
            resource=resource,
        )
        if isinstance(requirements, FacilitatorError):
            return self._error(requirements, progress.state)
        progress.advance(OrderState.CHALLENGE_ISSUED)

        order_logger(logger, session.order_id).info(
            f"Payment challenge issued: {requirements.max_amount_required} atomic units "
            f"on {requirements.network}"
        )
        return OrderOutcome(
            status_code=402,
            body={
                "x402Version": X402_VERSION,
                "error": PAYMENT_REQUIRED_MESSAGE,
                "accepts": [requirements.to_dict()],
            },
            state=progress.state,
        )

    # --- Phase 2: payment ---

    def submit_payment(self, request: OrderRequest, payment_header: str) -> OrderOutcome:
        """Verify, collect and fulfil a paid order."""
        network, currency = self._network_and_currency(request)

        requested = self._resolve_request_asset(network, currency)
        if isinstance(requested, FacilitatorError):
            return self._error(requested)

        payload = decode_payment_header(payment_header)
        if isinstance(payload, FacilitatorError):
            return self._error(payload)

        if not payload.order_id:
            return self._error(verification_error(
                "missing_order_id",
                "Missing order ID",
                "Payment payload must include orderId in extra field",
            ))

        order_id = payload.order_id
        log = order_logger(logger, order_id)

        session = self.resolver.reload(order_id, network=network, currency=currency)
        if isinstance(session, FacilitatorError):
            return self._error(session)
        progress = OrderProgress(OrderState.CHALLENGE_ISSUED, order_id=order_id)

        session_asset = resolve_asset(session.network, session.currency)
        if isinstance(session_asset, FacilitatorError):
            return self._error(session_asset.with_order(order_id), progress.state)
        not_token = require_token_asset(session_asset)
        if not_token is not None:
            return self._error(not_token.with_order(order_id), progress.state)

        verified = verify_payload(payload, session, session_asset, self.config.wallet_address)
        if isinstance(verified, FacilitatorError):
            return self._error(verified, progress.state)
        progress.advance(OrderState.PAYMENT_VERIFIED)

        log.info("Executing x402 payment to collect user funds")
        collected = self.collector.collect(
            verified.authorization,
            verified.signature,
            verified.network,
            session_asset.contract_address,
            order_id,
        )
        if isinstance(collected, FacilitatorError):
            if collected.kind != ErrorKind.COLLECTION_FAILED:
                return self._error(collected, progress.state)
            return self._collection_failed(session, collected, progress)
        progress.advance(OrderState.FUNDS_COLLECTED)
        if collected.already_submitted:
            log.info("x402 payment was collected by an earlier request - continuing to fulfillment")
        else:
            log.info("x402 payment executed - user funds collected")

        try:
            result = self.dispatcher.dispatch(session, session.prepared_transaction, order_id)
        except Exception as e:  # noqa: BLE001 - funds are already collected
            log.critical(f"Unexpected error during fulfillment dispatch: {e}", exc_info=True)
            result = fulfillment_failed(f"Unexpected fulfillment error: {e}", order_id)

        if isinstance(result, FacilitatorError):
            progress.advance(OrderState.FULFILLMENT_FAILED)
            return self._fulfillment_failed(verified.authorization.to_dict(), collected, result, progress)

        progress.advance(OrderState.FULFILLED)
        return self._fulfilled(session, collected, result, progress)

    def _collection_failed(
        self,
        session: OrderSession,
        error: FacilitatorError,
        progress: OrderProgress,
    ) -> OrderOutcome:
        order_logger(logger, session.order_id).error(
            f"x402 payment execution failed: {error.message}"
        )
        message = error.message if not self.config.is_production else "Payment could not be collected"
        return OrderOutcome(
            status_code=200,
            body={
                "message": "Payment verification completed",
                "order": _session_summary(session),
                "payment": {
                    "verified": True,
                    "collected": False,
                    "error": {"code": error.code, "message": message},
                },
                "state": progress.state.value,
            },
            state=progress.state,
        )

    def _fulfillment_failed(
        self,
        authorization: Dict[str, Any],
        collected: TransactionResult,
        error: FacilitatorError,
        progress: OrderProgress,
    ) -> OrderOutcome:
        order_logger(logger, error.order_id).critical(
            "Payment collected but order fulfillment failed - manual intervention required"
        )
        body = error.to_body(expose_details=True)
        body.update({
            "message": "Your payment was received but order fulfillment failed. Please contact support.",
            "payment": _collected_summary(
                collected,
                amount=collected.amount_transferred,
                authorization=authorization,
            ),
            "fulfillment": {
                "status": "failed",
                "success": False,
                "error": error.message if not self.config.is_production else "Fulfillment could not be completed",
            },
            "critical": True,
            "retryable": False,
            "state": progress.state.value,
        })
        return OrderOutcome(status_code=error.status_code, body=body, state=progress.state)

    def _fulfilled(
        self,
        session: OrderSession,
        collected: TransactionResult,
        result: FulfillmentResult,
        progress: OrderProgress,
    ) -> OrderOutcome:
        if result.already_settled:
            message = "Payment received successfully, check your email for confirmation"
            order = _session_summary(session)
        else:
            message = (
                "Payment received and order fulfilled successfully, "
                "check your email for confirmation"
            )
            order = _platform_summary(result.order) if result.order else _session_summary(session)
        order_logger(logger, session.order_id).info("Order fulfilled")
        headers = {}
        if collected.transaction_hash:
            headers[PAYMENT_RESPONSE_HEADER] = payment_response_header(collected, session.network)
        return OrderOutcome(
            status_code=200,
            body={
                "message": message,
                "order": order,
                "fulfillment": result.to_dict(),
                "payment": _collected_summary(collected),
                "state": progress.state.value,
            },
            state=progress.state,
            headers=headers,
        )

    # --- Status ---

    def order_status(self, order_id: str) -> OrderOutcome:
        order_logger(logger, order_id).info("Fetching order status")
        order = self.resolver.fetch_status(order_id)
        if isinstance(order, FacilitatorError):
            return self._error(order)
        return OrderOutcome(status_code=200, body={"success": True, "order": order.raw})

    def supported(self) -> Dict[str, Any]:
        return {
            "supportedNetworks": list(self.config.supported_networks),
            "supportedCurrencies": list(self.config.supported_currencies),
        }

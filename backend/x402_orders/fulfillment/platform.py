"""
HTTP client for the order-fulfillment platform.

Creates product orders and reads them back. The platform is the owner of
order price and status; this client never caches either.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import requests

from x402_orders.errors import UpstreamHTTPError
from x402_orders.logger import dump, order_logger
from x402_orders.payment.models import Recipient

logger = logging.getLogger(__name__)

API_VERSION_PATH = "/api/2022-06-09"


class PlatformError(UpstreamHTTPError):
    """Raised when the fulfillment platform is unavailable or rejects a call."""


@dataclass(frozen=True)
class PlatformOrder:
    """An order as returned by the platform."""
    order_id: str
    phase: Optional[str] = None
    payment_status: Optional[str] = None
    network: Optional[str] = None
    currency: Optional[str] = None
    total_price: Optional[Dict[str, Any]] = None
    prepared_transaction: Optional[str] = None
    locale: Optional[str] = None
    line_items: List[Dict[str, Any]] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def quoted_amount(self) -> Optional[Decimal]:
        """Authoritative total price, or None when the order is not priced."""
        amount = (self.total_price or {}).get("amount")
        if amount in (None, ""):
            return None
        try:
            return Decimal(str(amount))
        except InvalidOperation:
            return None

    @property
    def status(self) -> Optional[str]:
        return self.payment_status or self.phase

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "PlatformOrder":
        # create returns {"order": {...}}, get returns the order itself
        order = payload.get("order") if isinstance(payload.get("order"), dict) else payload
        payment = order.get("payment") or {}
        preparation = payment.get("preparation") or {}
        quote = order.get("quote") or {}
        return cls(
            order_id=order.get("orderId") or "",
            phase=order.get("phase"),
            payment_status=payment.get("status"),
            network=payment.get("method"),
            currency=payment.get("currency"),
            total_price=quote.get("totalPrice"),
            prepared_transaction=preparation.get("serializedTransaction"),
            locale=order.get("locale"),
            line_items=list(order.get("lineItems") or []),
            raw=order,
        )


class FulfillmentPlatformClient:
    """requests-based client for the platform's order endpoints."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "X-API-KEY": api_key,
            "Content-Type": "application/json",
        })

    @property
    def orders_url(self) -> str:
        return f"{self.base_url}{API_VERSION_PATH}/orders"

    def create_order(
        self,
        product_locator: str,
        recipient: Recipient,
        payer_address: str,
        network: str,
        currency: str,
    ) -> PlatformOrder:
        """Create an order paid from ``payer_address``.

        Raises:
            PlatformError: If the platform rejects the order or is unavailable
        """
        address = recipient.shipping_address
        logger.info(
            f"Creating platform order for product {product_locator} "
            f"(network={network}, currency={currency}, "
            f"ship to {address.name}, {address.city}, {address.country})"
        )
        body = {
            "recipient": {
                "email": recipient.email,
                "physicalAddress": address.to_platform(),
            },
            "payment": {
                "method": network,
                "currency": currency,
                "payerAddress": payer_address,
            },
            "lineItems": [{"productLocator": product_locator}],
        }
        payload = self._request("POST", self.orders_url, json=body)
        order = PlatformOrder.from_response(payload)
        order_logger(logger, order.order_id).info("Platform order created")
        return order

    def get_order(self, order_id: str) -> PlatformOrder:
        """Fetch an order by id.

        Raises:
            PlatformError: With ``status_code`` 404 if the order does not exist
        """
        payload = self._request("GET", f"{self.orders_url}/{order_id}", order_id=order_id)
        order = PlatformOrder.from_response(payload)
        order_logger(logger, order_id).debug(
            f"Order status retrieved: phase={order.phase}, payment={order.payment_status}"
        )
        return order

    def _request(
        self,
        method: str,
        url: str,
        order_id: Optional[str] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        log = order_logger(logger, order_id)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise PlatformError(f"Fulfillment platform timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise PlatformError(f"Fulfillment platform unreachable: {e}") from e

        if response.status_code >= 400:
            log.error(f"{method} {url} failed with HTTP {response.status_code}")
            raise PlatformError(
                _describe_failure(response, order_id),
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise PlatformError(
                f"Fulfillment platform returned invalid JSON: {response.text[:200]}"
            ) from e

        log.debug(f"{method} {url} -> {response.status_code}: {dump(payload)}")
        if not isinstance(payload, dict):
            raise PlatformError("Fulfillment platform returned an unexpected payload")
        return payload


def _describe_failure(response: requests.Response, order_id: Optional[str]) -> str:
    try:
        message = response.json().get("message")
    except (ValueError, AttributeError):
        message = None
    status = response.status_code
    if status == 400:
        return f"Invalid request: {message or 'Bad request'}"
    if status == 401:
        return "Authentication failed: Check your fulfillment platform API key"
    if status == 403:
        return "Access denied: Insufficient permissions for this operation"
    if status == 404:
        return f"Order not found: {order_id}" if order_id else "Resource not found"
    if status == 429:
        return "Rate limit exceeded: Too many requests"
    if status >= 500:
        return "Fulfillment platform error: Please try again later"
    return f"Fulfillment platform request failed: {message or response.reason}"

"""
Fulfillment dispatcher.

After funds are collected, submits the platform's prepared settlement
transaction (custodial wallet → platform) keyed by the bare order id, then
re-reads the order. Collection and dispatch are not transactional: a dispatch
failure here is reported, never rolled back and never retried automatically.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from x402_orders.errors import ErrorKind, FacilitatorError
from x402_orders.fulfillment.platform import FulfillmentPlatformClient, PlatformError, PlatformOrder
from x402_orders.logger import order_logger
from x402_orders.payment.models import OrderSession, TransactionResult
from x402_orders.wallet.executor import WalletError, WalletExecutor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FulfillmentResult:
    """Outcome of a successful dispatch."""
    success: bool
    transaction: Optional[TransactionResult] = None
    order: Optional[PlatformOrder] = None
    already_settled: bool = False
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.transaction is not None:
            data["data"] = {
                "id": self.transaction.transaction_id,
                "createdAt": self.transaction.created_at,
                "transactionHash": self.transaction.transaction_hash,
            }
        if self.already_settled:
            data["alreadySettled"] = True
        return data


def fulfillment_failed(message: str, order_id: str) -> FacilitatorError:
    return FacilitatorError(
        ErrorKind.FULFILLMENT_FAILED,
        "fulfillment_failed",
        "Payment received but fulfillment failed",
        message,
        order_id=order_id,
    )


class FulfillmentDispatcher:
    """Submits the platform settlement and reports final order status."""

    def __init__(self, executor: WalletExecutor, platform: FulfillmentPlatformClient):
        self.executor = executor
        self.platform = platform

    def dispatch(
        self,
        session: OrderSession,
        prepared_transaction: Optional[str],
        order_id: str,
    ) -> Union[FulfillmentResult, FacilitatorError]:
        log = order_logger(logger, order_id)

        if not prepared_transaction:
            log.info("No fulfillment transaction needed - order already settled by the platform")
            return FulfillmentResult(success=True, already_settled=True)

        log.info(f"Executing order fulfillment on {session.network}")
        try:
            call = self.executor.prepared_call(prepared_transaction)
            submission = self.executor.submit([call], session.network, order_id)
        except WalletError as e:
            log.critical(f"Order fulfillment failed after payment was collected: {e}")
            return fulfillment_failed(str(e), order_id)

        transaction = TransactionResult(
            transaction_hash=submission.transaction_hash,
            status=submission.status,
            idempotency_key=order_id,
            transaction_id=submission.transaction_id,
            created_at=submission.created_at,
            raw=submission.raw,
        )
        log.info(f"Order fulfillment executed: hash={transaction.transaction_hash}")

        try:
            updated = self.platform.get_order(order_id)
        except PlatformError as e:
            # the settlement went through; only the status refresh failed
            log.warning(f"Could not refresh order status after fulfillment: {e}")
            updated = None

        return FulfillmentResult(success=True, transaction=transaction, order=updated)

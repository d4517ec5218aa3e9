"""
Order session resolver.

Creates or re-reads a priced order on the fulfillment platform and turns it
into an ``OrderSession``. The price always comes from the platform so a 402
challenge references a real, trackable order, and the payment leg never trusts
client-supplied price or order state.
"""

import logging
from decimal import Decimal
from typing import Optional, Union

from x402_orders.errors import FacilitatorError, upstream_error, validation_error
from x402_orders.fulfillment.platform import FulfillmentPlatformClient, PlatformError, PlatformOrder
from x402_orders.logger import order_logger
from x402_orders.payment.models import OrderSession, Recipient

logger = logging.getLogger(__name__)


def _platform_failure(error: PlatformError, order_id: Optional[str] = None) -> FacilitatorError:
    if error.status_code == 400:
        return validation_error("order_rejected", "Invalid request", str(error))
    return upstream_error(error.status_code, str(error), order_id=order_id)


class OrderSessionResolver:
    """Builds ``OrderSession`` values from the fulfillment platform."""

    def __init__(
        self,
        platform: FulfillmentPlatformClient,
        payer_address: str,
        fee_percent: Decimal,
    ):
        self.platform = platform
        self.payer_address = payer_address
        self.fee_percent = fee_percent

    def create_priced(
        self,
        product_locator: str,
        recipient: Recipient,
        network: str,
        currency: str,
    ) -> Union[OrderSession, FacilitatorError]:
        """Create a platform order and return it with its authoritative price."""
        try:
            order = self.platform.create_order(
                product_locator,
                recipient,
                self.payer_address,
                network,
                currency,
            )
        except PlatformError as e:
            logger.error(f"Platform order creation failed: {e}")
            return _platform_failure(e)

        if not order.order_id:
            return upstream_error(None, "Fulfillment platform did not return an order id")

        session = self._to_session(
            order,
            network=network,
            currency=currency,
            product_locator=product_locator,
            recipient=recipient,
        )
        if session is None:
            return upstream_error(
                None,
                "Fulfillment platform did not quote a price for the order",
                order_id=order.order_id,
            )
        order_logger(logger, session.order_id).info(
            f"Priced order created: base price {session.base_price} {currency}"
        )
        return session

    def reload(
        self,
        order_id: str,
        network: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Union[OrderSession, FacilitatorError]:
        """Re-read an existing order's current price and status.

        ``network``/``currency`` are only used when the platform's order does
        not record its payment method.
        """
        log = order_logger(logger, order_id)
        try:
            order = self.platform.get_order(order_id)
        except PlatformError as e:
            log.error(f"Failed to reload order: {e}")
            return _platform_failure(e, order_id=order_id)

        if not order.order_id:
            return upstream_error(404, f"Order {order_id} not found", order_id=order_id)

        session = self._to_session(order, network=network, currency=currency)
        if session is None:
            return upstream_error(
                None,
                "Fulfillment platform returned the order without a price",
                order_id=order_id,
            )
        log.info(f"Order reloaded: status={session.status}, base price {session.base_price}")
        return session

    def fetch_status(self, order_id: str) -> Union[PlatformOrder, FacilitatorError]:
        """Passthrough read of an order for status reporting."""
        try:
            return self.platform.get_order(order_id)
        except PlatformError as e:
            order_logger(logger, order_id).error(f"Error fetching order status: {e}")
            return _platform_failure(e, order_id=order_id)

    def _to_session(
        self,
        order: PlatformOrder,
        network: Optional[str] = None,
        currency: Optional[str] = None,
        product_locator: Optional[str] = None,
        recipient: Optional[Recipient] = None,
    ) -> Optional[OrderSession]:
        base_price = order.quoted_amount
        if base_price is None:
            return None
        return OrderSession(
            order_id=order.order_id,
            network=(order.network or network or "").lower(),
            currency=(order.currency or currency or "").lower(),
            base_price=base_price,
            fee_percent=self.fee_percent,
            product_locator=product_locator or _first_locator(order),
            recipient_email=recipient.email if recipient else None,
            shipping_address=recipient.shipping_address.to_platform() if recipient else None,
            status=order.status,
            prepared_transaction=order.prepared_transaction,
            locale=order.locale,
            line_items=order.line_items,
            total_price=order.total_price,
        )


def _first_locator(order: PlatformOrder) -> Optional[str]:
    for item in order.line_items:
        locator = item.get("productLocator")
        if locator:
            return locator
    return None

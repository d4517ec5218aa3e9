"""
Fulfillment Module

Talks to the order-fulfillment platform: creating and re-reading priced
orders, and settling them once the buyer's funds are collected.
"""

from x402_orders.fulfillment.dispatcher import FulfillmentDispatcher, FulfillmentResult
from x402_orders.fulfillment.platform import FulfillmentPlatformClient, PlatformError, PlatformOrder
from x402_orders.fulfillment.sessions import OrderSessionResolver

__all__ = [
    "FulfillmentDispatcher",
    "FulfillmentResult",
    "FulfillmentPlatformClient",
    "PlatformError",
    "PlatformOrder",
    "OrderSessionResolver",
]

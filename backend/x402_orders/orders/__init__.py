"""Order flow orchestration and the ``/orders`` HTTP routes."""

from x402_orders.orders.routes import router
from x402_orders.orders.service import OrderOutcome, OrderRequest, OrderService
from x402_orders.orders.state import OrderProgress, OrderState

__all__ = [
    "router",
    "OrderOutcome",
    "OrderRequest",
    "OrderService",
    "OrderProgress",
    "OrderState",
]

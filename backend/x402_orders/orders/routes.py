"""
Orders API routes.

Handlers are plain ``def`` so the blocking platform and wallet calls run in
FastAPI's threadpool.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse

from x402_orders.orders.schemas import OrderRequestModel
from x402_orders.orders.service import OrderOutcome, OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def _respond(outcome: OrderOutcome) -> JSONResponse:
    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.body,
        headers=outcome.headers or None,
    )


@router.post("")
def create_order(
    body: OrderRequestModel,
    request: Request,
    x_payment: Optional[str] = Header(None, alias="X-PAYMENT"),
    service: OrderService = Depends(get_order_service),
) -> JSONResponse:
    """Create an order and require payment, or settle a paid order.

    Without ``X-PAYMENT`` the response is a 402 challenge for a freshly
    created order. With it, the payment is verified and collected and the
    order is fulfilled.
    """
    order_request = body.to_domain()
    if not x_payment:
        return _respond(service.request_payment(order_request, resource=request.url.path))
    return _respond(service.submit_payment(order_request, x_payment))


@router.get("/facilitator/health")
def facilitator_health(service: OrderService = Depends(get_order_service)) -> dict:
    """Report which networks and currencies this facilitator accepts."""
    return {"status": "ok", **service.supported()}


@router.get("/{order_id}/status")
def order_status(
    order_id: str,
    service: OrderService = Depends(get_order_service),
) -> JSONResponse:
    """Fetch the current platform status of an order."""
    return _respond(service.order_status(order_id))

"""
Main FastAPI application entry point.

Builds the facilitator app: configuration, collaborators, middleware,
exception handlers and routers. ``x402_orders.main:app`` is resolved lazily so
importing this module never requires a configured environment.
"""

import logging
import traceback
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from x402_orders import __version__
from x402_orders.config import FacilitatorConfig, load_config
from x402_orders.fulfillment.platform import FulfillmentPlatformClient
from x402_orders.logger import configure_logging
from x402_orders.orders.routes import router as orders_router
from x402_orders.orders.service import OrderService
from x402_orders.wallet.executor import CustodialWalletClient, WalletExecutor, create_wallet_executor

logger = logging.getLogger(__name__)

SERVICE_NAME = "x402-order-facilitator"

ENDPOINTS = {
    "POST /orders": "Create order (402 challenge) or pay for it with X-PAYMENT",
    "GET /orders/{orderId}/status": "Get order status",
    "GET /orders/facilitator/health": "Supported networks and currencies",
    "GET /health": "Service health check",
    "GET /api": "API documentation",
}


def _first_error_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Request body is invalid"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


def register_exception_handlers(app: FastAPI, config: FacilitatorConfig) -> None:
    """Map framework errors onto the facilitator's JSON error shapes."""

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        # 422 is reserved for paid-but-unfulfilled orders
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "message": _first_error_message(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Not found",
                    "message": f"Route {request.method} {request.url.path} not found",
                    "availableEndpoints": ENDPOINTS,
                },
            )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        body = {
            "error": "Internal server error",
            "message": "An unexpected error occurred" if config.is_production else str(exc),
        }
        if not config.is_production:
            body["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return JSONResponse(status_code=500, content=body)


def create_app(
    config: Optional[FacilitatorConfig] = None,
    platform: Optional[FulfillmentPlatformClient] = None,
    executor: Optional[WalletExecutor] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Validated configuration, loaded from the environment if omitted
        platform: Fulfillment platform client, built from ``config`` if omitted
        executor: Custodial wallet executor, built from ``config`` if omitted

    Returns:
        Configured FastAPI application instance

    Raises:
        ConfigError: If no config is given and the environment is invalid
    """
    if config is None:
        load_dotenv()
        config = load_config()
    configure_logging(config.debug)

    if platform is None:
        platform = FulfillmentPlatformClient(
            config.fulfillment_base_url,
            config.fulfillment_api_key,
            timeout=config.request_timeout,
        )
    if executor is None:
        executor = create_wallet_executor(
            config.wallet_backend,
            CustodialWalletClient(
                config.fulfillment_base_url,
                config.fulfillment_api_key,
                config.wallet_locator,
                timeout=config.request_timeout,
            ),
        )

    app = FastAPI(
        title="x402 Order Facilitator",
        description="Pay for real-world product orders with x402 payments",
        version=__version__,
    )
    app.state.config = config
    app.state.order_service = OrderService.from_components(config, platform, executor)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if config.is_production else ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-PAYMENT-RESPONSE"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"{request.method} {request.url.path}")
        return await call_next(request)

    register_exception_handlers(app, config)

    @app.get("/health")
    def health_check() -> dict:
        """Health check endpoint for monitoring and load balancers."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "environment": config.environment,
        }

    @app.get("/api")
    def api_docs() -> dict:
        """Self-describing endpoint documentation."""
        return {
            "name": SERVICE_NAME,
            "version": __version__,
            "endpoints": ENDPOINTS,
            "payment": {
                "protocol": "x402",
                "x402Version": 1,
                "scheme": "exact",
                "header": "X-PAYMENT",
                "supportedNetworks": list(config.supported_networks),
                "supportedCurrencies": list(config.supported_currencies),
            },
        }

    app.include_router(orders_router)

    logger.info(
        f"{SERVICE_NAME} ready ({config.environment}): payTo={config.wallet_address}, "
        f"wallet backend={config.wallet_backend.value}, "
        f"networks={','.join(config.supported_networks)}"
    )
    return app


@lru_cache(maxsize=1)
def get_app() -> FastAPI:
    """Process-wide application built from the environment."""
    return create_app()


def __getattr__(name: str):
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def run() -> None:
    """Start uvicorn on the configured port."""
    import uvicorn

    app = get_app()
    uvicorn.run(app, host="0.0.0.0", port=app.state.config.port)


if __name__ == "__main__":
    run()

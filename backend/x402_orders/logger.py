"""
Logging helpers.

Every log line about an order carries ``[OrderId: ...]`` so a purchase can be
followed across the challenge and payment requests.
"""

import json
import logging
from typing import Any, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(debug: bool = False) -> None:
    """Configure root logging once at process start."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
    )
    # requests/urllib3 are noisy at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class OrderLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every message with the order id it concerns."""

    def process(self, msg, kwargs):
        order_id = self.extra.get("order_id") if self.extra else None
        if order_id:
            return f"[OrderId: {order_id}] {msg}", kwargs
        return msg, kwargs


def order_logger(logger: logging.Logger, order_id: Optional[str]) -> OrderLoggerAdapter:
    return OrderLoggerAdapter(logger, {"order_id": order_id})


def dump(data: Any) -> str:
    """Render a payload for DEBUG logging."""
    try:
        return json.dumps(data, indent=2, default=str)
    except (TypeError, ValueError):
        return repr(data)

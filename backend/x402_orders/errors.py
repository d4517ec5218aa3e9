"""
Error taxonomy for the x402 order facilitator.

Component functions return a ``FacilitatorError`` value instead of raising, so
every failure path shows up in the signature as ``Union[T, FacilitatorError]``.
Only the HTTP collaborators raise (``PlatformError``, ``WalletError``); those
exceptions are converted to error values where the component catches them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Error categories and the HTTP status each one maps to."""
    VALIDATION = "validation"
    VERIFICATION = "verification"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UPSTREAM = "upstream"
    COLLECTION_FAILED = "collection_failed"
    FULFILLMENT_FAILED = "fulfillment_failed"
    INTERNAL = "internal"


_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.VERIFICATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.UPSTREAM: 502,
    ErrorKind.COLLECTION_FAILED: 200,
    ErrorKind.FULFILLMENT_FAILED: 422,
    ErrorKind.INTERNAL: 500,
}

_RETRYABLE_KINDS = {ErrorKind.RATE_LIMITED, ErrorKind.UPSTREAM}


@dataclass(frozen=True)
class FacilitatorError:
    """A failure returned (not raised) by a facilitator component."""
    kind: ErrorKind
    code: str  # stable machine-readable code, e.g. "amount_mismatch"
    title: str  # short human-readable error name
    message: str
    order_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self.kind]

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE_KINDS

    def with_order(self, order_id: Optional[str]) -> "FacilitatorError":
        """Return a copy tagged with ``order_id`` for correlation."""
        return FacilitatorError(
            kind=self.kind,
            code=self.code,
            title=self.title,
            message=self.message,
            order_id=order_id,
            details=dict(self.details),
        )

    def to_body(self, expose_details: bool = True) -> Dict[str, Any]:
        """Render as a JSON response body.

        Args:
            expose_details: When False, upstream messages are replaced by a
                generic message so raw third-party payloads never leak.
        """
        message = self.message
        if not expose_details and self.kind in _RETRYABLE_KINDS:
            message = "Upstream service error: please try again later"
        body: Dict[str, Any] = {
            "error": self.title,
            "code": self.code,
            "message": message,
        }
        if self.order_id:
            body["orderId"] = self.order_id
        if self.retryable:
            body["retryable"] = True
        if self.details and (expose_details or self.kind not in _RETRYABLE_KINDS):
            body.update(self.details)
        return body


def validation_error(code: str, title: str, message: str, **details: Any) -> FacilitatorError:
    return FacilitatorError(ErrorKind.VALIDATION, code, title, message, details=details)


def verification_error(
    code: str,
    title: str,
    message: str,
    order_id: Optional[str] = None,
) -> FacilitatorError:
    return FacilitatorError(ErrorKind.VERIFICATION, code, title, message, order_id=order_id)


def upstream_error(
    status_code: Optional[int],
    message: str,
    order_id: Optional[str] = None,
) -> FacilitatorError:
    """Map an upstream HTTP status to the nearest meaningful error kind."""
    if status_code == 429:
        return FacilitatorError(
            ErrorKind.RATE_LIMITED,
            "rate_limited",
            "Rate limit exceeded",
            message,
            order_id=order_id,
        )
    if status_code == 404:
        return FacilitatorError(
            ErrorKind.NOT_FOUND,
            "order_not_found",
            "Order not found",
            message,
            order_id=order_id,
        )
    return FacilitatorError(
        ErrorKind.UPSTREAM,
        "upstream_error",
        "Upstream service error",
        message,
        order_id=order_id,
    )


class ConfigError(Exception):
    """Raised at startup when the supplied configuration is invalid."""


class UpstreamHTTPError(Exception):
    """Base exception for failed calls to an external HTTP collaborator."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

"""
Data model shared by the challenge, verification and collection steps.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

X402_VERSION = 1
SCHEME_EXACT = "exact"


@dataclass(frozen=True)
class ShippingAddress:
    name: str
    line1: str
    city: str
    state: str
    postal_code: str
    country: str
    line2: str = ""

    def to_platform(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "state": self.state,
            "postalCode": self.postal_code,
            "country": self.country,
        }


@dataclass(frozen=True)
class Recipient:
    email: str
    shipping_address: ShippingAddress


@dataclass(frozen=True)
class OrderSession:
    """A priced order as last read from the fulfillment platform.

    Never mutated or stored locally; re-read on every request.
    """
    order_id: str
    network: str
    currency: str
    base_price: Decimal
    fee_percent: Decimal
    product_locator: Optional[str] = None
    recipient_email: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None
    status: Optional[str] = None
    prepared_transaction: Optional[str] = None
    locale: Optional[str] = None
    line_items: List[Dict[str, Any]] = field(default_factory=list)
    total_price: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class PaymentRequirements:
    """The x402 challenge returned with a 402 response."""
    network: str
    max_amount_required: str  # decimal string, atomic units
    pay_to: str
    asset: str
    max_timeout_seconds: int
    order_id: str
    resource: str = "/orders"
    description: str = ""
    mime_type: str = "application/json"
    token_name: str = ""
    token_version: str = ""
    scheme: str = SCHEME_EXACT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scheme": self.scheme,
            "network": self.network,
            "maxAmountRequired": self.max_amount_required,
            "resource": self.resource,
            "description": self.description,
            "mimeType": self.mime_type,
            "payTo": self.pay_to,
            "maxTimeoutSeconds": self.max_timeout_seconds,
            "asset": self.asset,
            "extra": {
                "name": self.token_name,
                "version": self.token_version,
                "orderId": self.order_id,
            },
        }


@dataclass(frozen=True)
class PaymentAuthorization:
    """An EIP-3009 signed transfer intent: a message, not a transaction."""
    from_address: str
    to_address: str
    value: str
    valid_after: str
    valid_before: str
    nonce: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentAuthorization":
        return cls(
            from_address=str(data["from"]),
            to_address=str(data["to"]),
            value=str(data["value"]),
            valid_after=str(data.get("validAfter") or 0),
            valid_before=str(data["validBefore"]),
            nonce=str(data["nonce"]),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "from": self.from_address,
            "to": self.to_address,
            "value": self.value,
            "validAfter": self.valid_after,
            "validBefore": self.valid_before,
            "nonce": self.nonce,
        }


@dataclass(frozen=True)
class PaymentPayload:
    """Decoded ``X-PAYMENT`` header."""
    x402_version: int
    scheme: str
    network: str
    authorization: Dict[str, Any]
    signature: str
    order_id: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VerifiedPayment:
    """A payload that passed every verification step."""
    authorization: PaymentAuthorization
    signature: str
    network: str
    order_id: str


@dataclass(frozen=True)
class TransactionResult:
    """Outcome of a custodial wallet submission that was accepted."""
    transaction_hash: Optional[str]
    status: str
    idempotency_key: str
    transaction_id: Optional[str] = None
    created_at: Optional[str] = None
    amount_transferred: Optional[str] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    # True when the wallet reported the idempotency key as already used
    already_submitted: bool = False
    raw: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "transactionHash": self.transaction_hash,
            "status": self.status,
            "id": self.transaction_id,
            "createdAt": self.created_at,
        }
        if self.already_submitted:
            data["alreadySubmitted"] = True
        return data

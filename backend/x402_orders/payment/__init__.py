"""
Payment Module - x402 challenge, verification and collection

Prices orders into exact atomic amounts, verifies ``X-PAYMENT`` headers and
collects EIP-3009 transfer authorizations through the custodial wallet.
"""

from x402_orders.payment.challenge import build, compute_atomic_amount
from x402_orders.payment.collector import FundCollector, encode_transfer_with_authorization
from x402_orders.payment.models import (
    OrderSession,
    PaymentAuthorization,
    PaymentPayload,
    PaymentRequirements,
    TransactionResult,
    VerifiedPayment,
)
from x402_orders.payment.registry import AssetInfo, resolve_asset
from x402_orders.payment.verifier import decode_payment_header, verify, verify_payload

__all__ = [
    "build",
    "compute_atomic_amount",
    "FundCollector",
    "encode_transfer_with_authorization",
    "OrderSession",
    "PaymentAuthorization",
    "PaymentPayload",
    "PaymentRequirements",
    "TransactionResult",
    "VerifiedPayment",
    "AssetInfo",
    "resolve_asset",
    "decode_payment_header",
    "verify",
    "verify_payload",
]

"""
Payment verifier for the x402 ``exact`` scheme.

Validates a client-submitted ``X-PAYMENT`` header against the order it pays
for. Every step is a hard failure and nothing moves funds until all of them
pass.
"""

import base64
import binascii
import json
import logging
import time
from typing import Any, Dict, List, Optional, Union

from eth_utils import is_0x_prefixed, is_hexstr
from web3 import Web3

from x402_orders.errors import FacilitatorError, verification_error
from x402_orders.logger import order_logger
from x402_orders.payment.challenge import compute_atomic_amount
from x402_orders.payment.models import (
    SCHEME_EXACT,
    X402_VERSION,
    OrderSession,
    PaymentAuthorization,
    PaymentPayload,
    VerifiedPayment,
)
from x402_orders.payment.registry import AssetInfo

logger = logging.getLogger(__name__)

REQUIRED_AUTHORIZATION_FIELDS = ("from", "to", "value", "validBefore", "nonce")


def _invalid_header(reason: str) -> FacilitatorError:
    return verification_error(
        "invalid_payment_header",
        "Invalid X-PAYMENT header",
        f"Invalid X-PAYMENT header format: {reason}",
    )


def decode_payment_header(header: str) -> Union[PaymentPayload, FacilitatorError]:
    """Decode and structurally validate an ``X-PAYMENT`` header.

    Covers base64/JSON decoding, protocol version, scheme and the presence of
    the authorization and signature.
    """
    try:
        decoded = base64.b64decode(header, validate=True).decode("utf-8")
        data = json.loads(decoded)
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        return _invalid_header(f"not base64-encoded JSON ({e})")

    if not isinstance(data, dict):
        return _invalid_header("payload must be a JSON object")

    version = data.get("x402Version")
    if type(version) is not int or version != X402_VERSION:
        return verification_error(
            "invalid_version",
            "Invalid x402Version",
            f"Invalid x402Version - must be {X402_VERSION}",
        )

    if data.get("scheme") != SCHEME_EXACT:
        return verification_error(
            "invalid_scheme",
            "Invalid scheme",
            f'Invalid scheme - must be "{SCHEME_EXACT}"',
        )

    payload = data.get("payload")
    if (
        not isinstance(payload, dict)
        or not isinstance(payload.get("authorization"), dict)
        or not payload.get("signature")
    ):
        return _invalid_header("missing authorization or signature")

    extra = data.get("extra") if isinstance(data.get("extra"), dict) else {}

    return PaymentPayload(
        x402_version=data["x402Version"],
        scheme=data["scheme"],
        network=str(data.get("network") or ""),
        authorization=payload["authorization"],
        signature=str(payload["signature"]),
        order_id=extra.get("orderId"),
        raw=data,
    )


def _is_unix_seconds(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value >= 0
    return isinstance(value, str) and value.isascii() and value.isdigit()


def _is_nonce(value: Any) -> bool:
    return isinstance(value, str) and is_0x_prefixed(value) and is_hexstr(value) and len(value) == 66


def _authorization_problems(authorization: Dict[str, Any]) -> List[str]:
    problems = []
    for name in ("from", "to"):
        if not isinstance(authorization[name], str) or not Web3.is_address(authorization[name]):
            problems.append(f"{name} is not an address")
    if not isinstance(authorization["value"], str):
        problems.append("value must be a decimal string")
    for name in ("validAfter", "validBefore"):
        if authorization.get(name) is not None and not _is_unix_seconds(authorization[name]):
            problems.append(f"{name} must be unix seconds")
    if not _is_nonce(authorization["nonce"]):
        problems.append("nonce must be 32 bytes of 0x-prefixed hex")
    return problems


def _parse_authorization(
    authorization: Dict[str, Any],
    order_id: str,
) -> Union[PaymentAuthorization, FacilitatorError]:
    missing = [f for f in REQUIRED_AUTHORIZATION_FIELDS if authorization.get(f) in (None, "")]
    if missing:
        return verification_error(
            "invalid_authorization",
            "Invalid authorization",
            f"Authorization is missing fields: {', '.join(missing)}",
            order_id=order_id,
        )
    problems = _authorization_problems(authorization)
    if problems:
        return verification_error(
            "invalid_authorization",
            "Invalid authorization",
            f"Malformed authorization: {'; '.join(problems)}",
            order_id=order_id,
        )
    return PaymentAuthorization.from_dict(authorization)


def verify_payload(
    payload: PaymentPayload,
    session: OrderSession,
    asset: AssetInfo,
    pay_to: str,
    now: Optional[int] = None,
) -> Union[VerifiedPayment, FacilitatorError]:
    """Check an already-decoded payload against the freshly reloaded order."""
    order_id = session.order_id
    log = order_logger(logger, order_id)

    if not payload.order_id:
        return verification_error(
            "missing_order_id",
            "Missing order ID",
            "Payment payload must include orderId in extra field",
        )

    if payload.order_id != order_id:
        return verification_error(
            "order_id_mismatch",
            "Order ID mismatch",
            f"Payment is for order {payload.order_id} but was submitted for order {order_id}",
            order_id=order_id,
        )

    if payload.network != session.network:
        log.error(
            f"Payment network mismatch: requested={session.network}, "
            f"payment={payload.network}"
        )
        return verification_error(
            "network_mismatch",
            "Payment network mismatch",
            f"Payment was made on {payload.network} but order was requested for {session.network}",
            order_id=order_id,
        )

    authorization = _parse_authorization(payload.authorization, order_id)
    if isinstance(authorization, FacilitatorError):
        return authorization

    expected_amount = compute_atomic_amount(
        session.base_price, session.fee_percent, asset.decimals
    )
    if authorization.value != expected_amount:
        log.error(
            f"Payment amount mismatch: expected={expected_amount}, "
            f"received={authorization.value}"
        )
        return verification_error(
            "amount_mismatch",
            "Payment amount mismatch",
            f"Expected payment amount: {expected_amount}, received: {authorization.value}",
            order_id=order_id,
        )

    if authorization.to_address.lower() != pay_to.lower():
        log.error(f"Payment recipient mismatch: expected={pay_to}, received={authorization.to_address}")
        return verification_error(
            "recipient_mismatch",
            "Payment recipient mismatch",
            f"Payment must be authorized to {pay_to}, got {authorization.to_address}",
            order_id=order_id,
        )

    now = int(time.time()) if now is None else now
    valid_before = int(authorization.valid_before)
    if valid_before <= now:
        return verification_error(
            "authorization_expired",
            "Authorization expired",
            f"Authorization expired at {valid_before} (now {now})",
            order_id=order_id,
        )

    log.info(
        f"Payment verified for payer {authorization.from_address} on {payload.network}"
    )
    return VerifiedPayment(
        authorization=authorization,
        signature=payload.signature,
        network=payload.network,
        order_id=order_id,
    )


def verify(
    header: str,
    session: OrderSession,
    asset: AssetInfo,
    pay_to: str,
    now: Optional[int] = None,
) -> Union[VerifiedPayment, FacilitatorError]:
    """Decode ``header`` and verify it against ``session`` in one call."""
    payload = decode_payment_header(header)
    if isinstance(payload, FacilitatorError):
        return payload.with_order(session.order_id)
    return verify_payload(payload, session, asset, pay_to, now=now)

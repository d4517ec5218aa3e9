import base64
import json
from dataclasses import replace
from decimal import Decimal

import pytest

from fakes import PAY_TO, PAYER_ADDRESS
from x402_orders.errors import ErrorKind, FacilitatorError
from x402_orders.payment.models import OrderSession, VerifiedPayment
from x402_orders.payment.registry import resolve_asset
from x402_orders.payment.verifier import decode_payment_header, verify

NOW = 1_700_000_000
SIGNATURE = "0x" + "ab" * 65
NONCE = "0x" + "00" * 31 + "01"

USDC = resolve_asset("ethereum-sepolia", "usdc")


@pytest.fixture
def session():
    return OrderSession(
        order_id="order-123",
        network="ethereum-sepolia",
        currency="usdc",
        base_price=Decimal("1.80"),
        fee_percent=Decimal("0"),
    )


def _payload(**overrides):
    authorization = {
        "from": PAYER_ADDRESS,
        "to": PAY_TO,
        "value": "1800000",
        "validAfter": str(NOW - 600),
        "validBefore": str(NOW + 600),
        "nonce": NONCE,
    }
    authorization.update(overrides.pop("authorization", {}))
    payload = {
        "x402Version": 1,
        "scheme": "exact",
        "network": "ethereum-sepolia",
        "payload": {"signature": SIGNATURE, "authorization": authorization},
        "extra": {"orderId": "order-123"},
    }
    payload.update(overrides)
    return payload


def _header(payload):
    return base64.b64encode(json.dumps(payload).encode()).decode()


def test_valid_payment(session):
    result = verify(_header(_payload()), session, USDC, PAY_TO, now=NOW)

    assert isinstance(result, VerifiedPayment)
    assert result.order_id == "order-123"
    assert result.authorization.value == "1800000"
    assert result.authorization.from_address == PAYER_ADDRESS
    assert result.signature == SIGNATURE


def test_recipient_compared_case_insensitively(session):
    payload = _payload(authorization={"to": PAY_TO.lower()})

    assert isinstance(verify(_header(payload), session, USDC, PAY_TO, now=NOW), VerifiedPayment)


def test_network_mismatch_rejected(session):
    result = verify(_header(_payload(network="base-sepolia")), session, USDC, PAY_TO, now=NOW)

    assert isinstance(result, FacilitatorError)
    assert result.code == "network_mismatch"
    assert result.status_code == 400


@pytest.mark.parametrize("value", ["1799999", "1800001", "1800000.0", "1.80"])
def test_amount_must_match_exactly(session, value):
    payload = _payload(authorization={"value": value})

    result = verify(_header(payload), session, USDC, PAY_TO, now=NOW)

    assert isinstance(result, FacilitatorError)
    assert result.code == "amount_mismatch"
    assert "1800000" in result.message


def test_amount_includes_fee(session):
    with_fee = replace(session, fee_percent=Decimal("5"))

    rejected = verify(_header(_payload()), with_fee, USDC, PAY_TO, now=NOW)
    accepted = verify(
        _header(_payload(authorization={"value": "1890000"})), with_fee, USDC, PAY_TO, now=NOW
    )

    assert rejected.code == "amount_mismatch"
    assert isinstance(accepted, VerifiedPayment)


def test_wrong_recipient_rejected(session):
    payload = _payload(authorization={"to": PAYER_ADDRESS})

    result = verify(_header(payload), session, USDC, PAY_TO, now=NOW)

    assert result.code == "recipient_mismatch"


def test_expired_authorization_rejected(session):
    payload = _payload(authorization={"validBefore": str(NOW)})

    result = verify(_header(payload), session, USDC, PAY_TO, now=NOW)

    assert result.code == "authorization_expired"
    assert result.kind == ErrorKind.VERIFICATION


def test_order_id_mismatch_rejected(session):
    payload = _payload(extra={"orderId": "order-999"})

    result = verify(_header(payload), session, USDC, PAY_TO, now=NOW)

    assert result.code == "order_id_mismatch"


def test_missing_order_id_rejected(session):
    payload = _payload(extra={})

    result = verify(_header(payload), session, USDC, PAY_TO, now=NOW)

    assert result.code == "missing_order_id"


def test_missing_authorization_field_rejected(session):
    payload = _payload()
    del payload["payload"]["authorization"]["nonce"]

    result = verify(_header(payload), session, USDC, PAY_TO, now=NOW)

    assert result.code == "invalid_authorization"
    assert "nonce" in result.message


def test_decode_rejects_non_base64():
    result = decode_payment_header("not base64!!")

    assert isinstance(result, FacilitatorError)
    assert result.code == "invalid_payment_header"


def test_decode_rejects_non_json():
    result = decode_payment_header(base64.b64encode(b"hello").decode())

    assert result.code == "invalid_payment_header"


def test_decode_rejects_wrong_version():
    assert decode_payment_header(_header(_payload(x402Version=2))).code == "invalid_version"


def test_decode_rejects_wrong_scheme():
    assert decode_payment_header(_header(_payload(scheme="upto"))).code == "invalid_scheme"


def test_decode_requires_signature():
    payload = _payload()
    payload["payload"]["signature"] = ""

    assert decode_payment_header(_header(payload)).code == "invalid_payment_header"


def test_decode_extracts_order_id():
    decoded = decode_payment_header(_header(_payload()))

    assert decoded.order_id == "order-123"
    assert decoded.network == "ethereum-sepolia"
    assert decoded.authorization["value"] == "1800000"


@pytest.mark.parametrize(
    "field, value",
    [
        ("from", "0x1234"),
        ("to", "not-an-address"),
        ("nonce", "0x1234"),
        ("nonce", "00" * 32),
        ("validAfter", "soon"),
        ("validBefore", "1700000600.5"),
        ("validBefore", True),
        ("value", 1800000),
    ],
)
def test_malformed_authorization_rejected(session, field, value):
    payload = _payload(authorization={field: value})

    result = verify(_header(payload), session, USDC, PAY_TO, now=NOW)

    assert isinstance(result, FacilitatorError)
    assert result.code == "invalid_authorization"
    assert result.status_code == 400
    assert field in result.message


def test_integer_timestamps_accepted(session):
    payload = _payload(authorization={"validAfter": NOW - 600, "validBefore": NOW + 600})

    assert isinstance(verify(_header(payload), session, USDC, PAY_TO, now=NOW), VerifiedPayment)


@pytest.mark.parametrize("version", [True, 1.0, "1"])
def test_decode_rejects_non_integer_version(version):
    assert decode_payment_header(_header(_payload(x402Version=version))).code == "invalid_version"

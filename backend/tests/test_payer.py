import base64
import json

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from fakes import PAY_TO, PAYER_ADDRESS, PAYER_KEY, SEPOLIA_USDC
from x402_orders.payer import (
    TRANSFER_WITH_AUTHORIZATION_TYPES,
    build_payment_payload,
    encode_payment_header,
    main,
    select_requirements,
)
from x402_orders.payment.verifier import decode_payment_header

NOW = 1_700_000_000
NONCE = bytes(range(32))

REQUIREMENTS = {
    "scheme": "exact",
    "network": "ethereum-sepolia",
    "maxAmountRequired": "1800000",
    "resource": "/orders",
    "payTo": PAY_TO,
    "maxTimeoutSeconds": 600,
    "asset": SEPOLIA_USDC,
    "extra": {"name": "USDC", "version": "2", "orderId": "order-123"},
}


def test_payload_fields():
    payload = build_payment_payload(REQUIREMENTS, PAYER_KEY, now=NOW, nonce=NONCE)

    authorization = payload["payload"]["authorization"]
    assert payload["x402Version"] == 1
    assert payload["extra"] == {"orderId": "order-123"}
    assert authorization == {
        "from": PAYER_ADDRESS,
        "to": PAY_TO,
        "value": "1800000",
        "validAfter": str(NOW - 600),
        "validBefore": str(NOW + 600),
        "nonce": "0x" + NONCE.hex(),
    }


def test_signature_recovers_payer():
    payload = build_payment_payload(REQUIREMENTS, PAYER_KEY, now=NOW, nonce=NONCE)
    authorization = payload["payload"]["authorization"]

    signable = encode_typed_data(full_message={
        "types": TRANSFER_WITH_AUTHORIZATION_TYPES,
        "primaryType": "TransferWithAuthorization",
        "domain": {
            "name": "USDC",
            "version": "2",
            "chainId": 11155111,
            "verifyingContract": SEPOLIA_USDC,
        },
        "message": {
            "from": PAYER_ADDRESS,
            "to": PAY_TO,
            "value": 1800000,
            "validAfter": NOW - 600,
            "validBefore": NOW + 600,
            "nonce": NONCE,
        },
    })

    recovered = Account.recover_message(signable, signature=payload["payload"]["signature"])
    assert recovered == authorization["from"]


def test_header_decodes_on_facilitator_side():
    header = encode_payment_header(build_payment_payload(REQUIREMENTS, PAYER_KEY, now=NOW))

    decoded = decode_payment_header(header)

    assert decoded.order_id == "order-123"
    assert decoded.authorization["value"] == "1800000"


def test_unknown_network_without_chain_id():
    with pytest.raises(ValueError):
        build_payment_payload({**REQUIREMENTS, "network": "solana"}, PAYER_KEY)


def test_select_requirements_from_challenge():
    challenge = {"x402Version": 1, "error": "X-PAYMENT header is required", "accepts": [REQUIREMENTS]}

    assert select_requirements(challenge) is REQUIREMENTS


def test_select_requirements_missing_fields():
    with pytest.raises(ValueError):
        select_requirements({"accepts": [{"network": "base"}]})


def test_cli_prints_header(tmp_path, capsys):
    path = tmp_path / "challenge.json"
    path.write_text(json.dumps({"accepts": [REQUIREMENTS]}))

    assert main([str(path), "--private-key", PAYER_KEY]) == 0

    header = capsys.readouterr().out.strip()
    payload = json.loads(base64.b64decode(header))
    assert payload["payload"]["authorization"]["from"] == PAYER_ADDRESS


def test_cli_reports_bad_input(tmp_path, capsys):
    path = tmp_path / "challenge.json"
    path.write_text("{}")

    assert main([str(path), "--private-key", PAYER_KEY]) == 1
    assert "missing" in capsys.readouterr().err

"""
Payer-side helper: turn a 402 challenge into an ``X-PAYMENT`` header.

Signs an EIP-712 ``TransferWithAuthorization`` for the exact amount the
challenge asks for. Used by scripts and tests; the facilitator itself never
holds a payer key.
"""

from __future__ import annotations

import argparse
import base64
import json
import secrets
import sys
import time
from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from hexbytes import HexBytes

from x402_orders.payment.models import SCHEME_EXACT, X402_VERSION
from x402_orders.payment.registry import chain_id_for

__all__ = [
    "build_payment_payload",
    "encode_payment_header",
    "main",
]

BACKDATE_SECONDS = 600
DEFAULT_TIMEOUT_SECONDS = 3600
REQUIRED_FIELDS = ("network", "maxAmountRequired", "payTo", "asset", "scheme")

TRANSFER_WITH_AUTHORIZATION_TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "TransferWithAuthorization": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ],
}


def select_requirements(challenge: Dict[str, Any]) -> Dict[str, Any]:
    """Pick the payment requirements out of a 402 response body."""
    accepts = challenge.get("accepts")
    if isinstance(accepts, list) and accepts:
        requirements = accepts[0]
    elif isinstance(challenge.get("paymentRequirements"), dict):
        requirements = challenge["paymentRequirements"]
    else:
        requirements = challenge

    missing = [f for f in REQUIRED_FIELDS if not requirements.get(f)]
    if missing:
        raise ValueError(f"Invalid payment requirements: missing {', '.join(missing)}")
    return requirements


def build_payment_payload(
    requirements: Dict[str, Any],
    private_key: str,
    chain_id: Optional[int] = None,
    *,
    now: Optional[int] = None,
    nonce: Optional[bytes] = None,
) -> Dict[str, Any]:
    """Sign a transfer authorization that satisfies ``requirements``.

    Args:
        requirements: One entry of the challenge's ``accepts`` list
        private_key: Payer key used for the EIP-712 signature
        chain_id: Chain of the token contract, looked up from the network if omitted
        now: Unix time to sign at (for deterministic tests)
        nonce: 32-byte authorization nonce, random if omitted

    Returns:
        The decoded ``X-PAYMENT`` payload

    Raises:
        ValueError: If the requirements are incomplete or the network is unknown
    """
    network = requirements["network"]
    chain_id = chain_id if chain_id is not None else chain_id_for(network)
    if chain_id is None:
        raise ValueError(f"Unsupported network: {network}")

    now = int(time.time()) if now is None else now
    nonce_bytes = nonce if nonce is not None else secrets.token_bytes(32)
    valid_after = now - BACKDATE_SECONDS
    valid_before = now + int(requirements.get("maxTimeoutSeconds") or DEFAULT_TIMEOUT_SECONDS)

    account = Account.from_key(private_key)
    extra = requirements.get("extra") or {}
    value = int(requirements["maxAmountRequired"])

    typed_data = {
        "types": TRANSFER_WITH_AUTHORIZATION_TYPES,
        "primaryType": "TransferWithAuthorization",
        "domain": {
            "name": extra.get("name") or "USDC",
            "version": extra.get("version") or "2",
            "chainId": chain_id,
            "verifyingContract": requirements["asset"],
        },
        "message": {
            "from": account.address,
            "to": requirements["payTo"],
            "value": value,
            "validAfter": valid_after,
            "validBefore": valid_before,
            "nonce": HexBytes(nonce_bytes),
        },
    }
    signed = account.sign_message(encode_typed_data(full_message=typed_data))

    return {
        "x402Version": X402_VERSION,
        "scheme": requirements.get("scheme") or SCHEME_EXACT,
        "network": network,
        "payload": {
            "signature": "0x" + bytes(signed.signature).hex(),
            "authorization": {
                "from": account.address,
                "to": requirements["payTo"],
                "value": str(value),
                "validAfter": str(valid_after),
                "validBefore": str(valid_before),
                "nonce": "0x" + nonce_bytes.hex(),
            },
        },
        "extra": {"orderId": extra.get("orderId")},
    }


def encode_payment_header(payload: Dict[str, Any]) -> str:
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="x402-orders-sign",
        description="Sign an x402 payment challenge and print the X-PAYMENT header.",
    )
    parser.add_argument("challenge", help="Path to the JSON body of a 402 response ('-' for stdin)")
    parser.add_argument("--private-key", required=True, help="Payer private key (0x...)")
    parser.add_argument("--chain-id", type=int, default=None, help="Override the chain id")
    args = parser.parse_args(argv)

    try:
        if args.challenge == "-":
            challenge = json.load(sys.stdin)
        else:
            with open(args.challenge, encoding="utf-8") as fh:
                challenge = json.load(fh)
        requirements = select_requirements(challenge)
        payload = build_payment_payload(requirements, args.private_key, args.chain_id)
    except (OSError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return 1

    print(encode_payment_header(payload))
    return 0


if __name__ == "__main__":
    sys.exit(main())

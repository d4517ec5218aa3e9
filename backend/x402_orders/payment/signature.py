"""
Signature helpers for EIP-3009 transferWithAuthorization.

The token contract expects ``v`` in {27, 28}. Wallets produce the same logical
signature with ``v`` in {0, 1}, {27, 28} or EIP-155 chain-adjusted form
(``chain_id * 2 + 35 + parity``), so ``v`` is normalized before encoding.
"""

from dataclasses import dataclass
from typing import Optional

from hexbytes import HexBytes

SIGNATURE_LENGTH = 65
EIP155_OFFSET = 35


class SignatureFormatError(ValueError):
    """Raised when a signature cannot be parsed into (r, s, v)."""


@dataclass(frozen=True)
class SignatureParts:
    r: bytes
    s: bytes
    v: int

    @property
    def r_hex(self) -> str:
        return "0x" + self.r.hex()

    @property
    def s_hex(self) -> str:
        return "0x" + self.s.hex()


def normalize_v(raw_v: int, chain_id: Optional[int] = None) -> int:
    """Map a recovery byte to the {27, 28} form expected by the token.

    Args:
        raw_v: The last byte of the signature
        chain_id: When given, a chain-adjusted ``v`` must belong to this chain

    Raises:
        SignatureFormatError: If ``raw_v`` is not a recognised encoding
    """
    if raw_v in (27, 28):
        return raw_v
    if raw_v in (0, 1):
        return raw_v + 27
    if raw_v >= EIP155_OFFSET:
        parity = (raw_v - EIP155_OFFSET) % 2
        # chains whose adjusted v cannot fit in one byte are not checked
        fits_byte = chain_id is not None and chain_id * 2 + EIP155_OFFSET + 1 <= 0xFF
        if fits_byte and (raw_v - EIP155_OFFSET) // 2 != chain_id:
            raise SignatureFormatError(
                f"Signature v={raw_v} is chain-adjusted for chain "
                f"{(raw_v - EIP155_OFFSET) // 2}, expected chain {chain_id}"
            )
        return parity + 27
    raise SignatureFormatError(f"Unrecognised signature recovery value v={raw_v}")


def split_signature(signature: str, chain_id: Optional[int] = None) -> SignatureParts:
    """Split a 65-byte hex signature into r, s and a normalized v."""
    try:
        raw = bytes(HexBytes(signature))
    except (TypeError, ValueError) as exc:
        raise SignatureFormatError(f"Signature is not valid hex: {exc}") from exc

    if len(raw) != SIGNATURE_LENGTH:
        raise SignatureFormatError(
            f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(raw)}"
        )

    return SignatureParts(
        r=raw[:32],
        s=raw[32:64],
        v=normalize_v(raw[64], chain_id),
    )

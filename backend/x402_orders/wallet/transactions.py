"""
Decoding of serialized EVM transactions.

The fulfillment platform hands back a prepared settlement transaction as a
hex-serialized (unsigned) transaction. Single-call wallet backends need its
``to`` and ``data`` fields instead of the serialized blob.
"""

from dataclasses import dataclass

import rlp
from eth_utils import to_checksum_address
from hexbytes import HexBytes

# Field layout per transaction type: index of (to, value, data)
_LEGACY_FIELDS = (3, 4, 5)  # [nonce, gasPrice, gas, to, value, data, ...]
_EIP2930_FIELDS = (4, 5, 6)  # [chainId, nonce, gasPrice, gas, to, value, data, accessList, ...]
_EIP1559_FIELDS = (5, 6, 7)  # [chainId, nonce, tip, maxFee, gas, to, value, data, accessList, ...]

_TYPED_FIELDS = {
    0x01: _EIP2930_FIELDS,
    0x02: _EIP1559_FIELDS,
}


class TransactionDecodeError(ValueError):
    """Raised when a serialized transaction cannot be decoded."""


@dataclass(frozen=True)
class DecodedTransaction:
    to: str
    data: str
    value: int


def decode_serialized_transaction(serialized: str) -> DecodedTransaction:
    """Decode ``to``, ``value`` and ``data`` from a serialized transaction."""
    try:
        raw = bytes(HexBytes(serialized))
    except (TypeError, ValueError) as e:
        raise TransactionDecodeError(f"Transaction is not valid hex: {e}") from e

    if not raw:
        raise TransactionDecodeError("Transaction is empty")

    if raw[0] in _TYPED_FIELDS:
        layout = _TYPED_FIELDS[raw[0]]
        body = raw[1:]
    elif raw[0] >= 0xC0:
        layout = _LEGACY_FIELDS
        body = raw
    else:
        raise TransactionDecodeError(f"Unsupported transaction type 0x{raw[0]:02x}")

    try:
        fields = rlp.decode(body)
    except rlp.exceptions.DecodingError as e:
        raise TransactionDecodeError(f"Invalid RLP payload: {e}") from e

    to_index, value_index, data_index = layout
    if not isinstance(fields, list) or len(fields) <= data_index:
        raise TransactionDecodeError("Invalid transaction format")

    to_bytes = fields[to_index]
    if len(to_bytes) != 20:
        raise TransactionDecodeError("Transaction has no recipient (contract creation)")

    value_bytes = fields[value_index]
    return DecodedTransaction(
        to=to_checksum_address(to_bytes),
        data="0x" + bytes(fields[data_index]).hex(),
        value=int.from_bytes(value_bytes, "big") if value_bytes else 0,
    )

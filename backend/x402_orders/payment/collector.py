"""
Fund collector.

Executes a verified EIP-3009 ``transferWithAuthorization`` against the token
contract through the custodial wallet. The wallet submission is keyed by
``{order_id}-inbound`` so a client retrying the payment request never collects
twice. Expiry and nonce reuse are enforced by the token contract; a revert
surfaces here as a collection failure.
"""

import logging
from typing import Optional, Union

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector
from hexbytes import HexBytes
from web3 import Web3

from x402_orders.errors import ErrorKind, FacilitatorError
from x402_orders.logger import order_logger
from x402_orders.payment.models import PaymentAuthorization, TransactionResult
from x402_orders.payment.registry import chain_id_for, unsupported_asset_type
from x402_orders.payment.signature import SignatureFormatError, split_signature
from x402_orders.wallet.executor import WalletError, WalletExecutor

logger = logging.getLogger(__name__)

TRANSFER_WITH_AUTHORIZATION = (
    "transferWithAuthorization(address,address,uint256,uint256,uint256,bytes32,uint8,bytes32,bytes32)"
)
TRANSFER_WITH_AUTHORIZATION_TYPES = [
    "address", "address", "uint256", "uint256", "uint256", "bytes32", "uint8", "bytes32", "bytes32",
]
INBOUND_SUFFIX = "-inbound"


def inbound_idempotency_key(order_id: str) -> str:
    return f"{order_id}{INBOUND_SUFFIX}"


def encode_transfer_with_authorization(
    authorization: PaymentAuthorization,
    signature: str,
    chain_id: Optional[int] = None,
) -> str:
    """Build the calldata for ``transferWithAuthorization``.

    Raises:
        SignatureFormatError: If the signature is malformed
        ValueError: If an authorization field cannot be encoded
    """
    parts = split_signature(signature, chain_id)
    nonce = bytes(HexBytes(authorization.nonce))
    if len(nonce) != 32:
        raise ValueError(f"Authorization nonce must be 32 bytes, got {len(nonce)}")

    args = [
        Web3.to_checksum_address(authorization.from_address),
        Web3.to_checksum_address(authorization.to_address),
        int(authorization.value),
        int(authorization.valid_after or 0),
        int(authorization.valid_before),
        nonce,
        parts.v,
        parts.r,
        parts.s,
    ]
    selector = function_signature_to_4byte_selector(TRANSFER_WITH_AUTHORIZATION)
    return "0x" + (selector + encode(TRANSFER_WITH_AUTHORIZATION_TYPES, args)).hex()


def _collection_failed(code: str, message: str, order_id: str) -> FacilitatorError:
    return FacilitatorError(
        ErrorKind.COLLECTION_FAILED,
        code,
        "Payment collection failed",
        message,
        order_id=order_id,
    )


class FundCollector:
    """Pulls the authorized funds into the custodial wallet."""

    def __init__(self, executor: WalletExecutor):
        self.executor = executor

    def collect(
        self,
        authorization: PaymentAuthorization,
        signature: str,
        network: str,
        contract_address: Optional[str],
        order_id: str,
    ) -> Union[TransactionResult, FacilitatorError]:
        """Execute the signed transfer authorization.

        Args:
            authorization: Verified EIP-3009 authorization
            signature: 65-byte hex signature over the authorization
            network: Network the authorization was signed for
            contract_address: Token contract, None for native assets
            order_id: Order being paid, used for the idempotency key

        Returns:
            TransactionResult on success, FacilitatorError otherwise
        """
        log = order_logger(logger, order_id)
        log.info(
            f"Executing transferWithAuthorization: amount={authorization.value}, "
            f"from={authorization.from_address}, to={authorization.to_address}, network={network}"
        )

        if not contract_address:
            log.error("Native asset collection requested, rejecting")
            return unsupported_asset_type(f"native ({network})").with_order(order_id)

        try:
            call_data = encode_transfer_with_authorization(
                authorization, signature, chain_id_for(network)
            )
        except SignatureFormatError as e:
            log.error(f"Invalid payment signature: {e}")
            return _collection_failed("invalid_signature", str(e), order_id)
        except (TypeError, ValueError) as e:
            log.error(f"Failed to encode transferWithAuthorization: {e}")
            return _collection_failed("invalid_authorization", str(e), order_id)

        idempotency_key = inbound_idempotency_key(order_id)
        call = self.executor.contract_call(Web3.to_checksum_address(contract_address), call_data)
        try:
            submission = self.executor.submit([call], network, idempotency_key)
        except WalletError as e:
            log.error(f"EIP-3009 transfer execution failed: {e}")
            if e.status_code == 422:
                return _collection_failed(
                    "execution_reverted",
                    f"EIP-3009 execution reverted: {e} (authorization may be invalid or expired)",
                    order_id,
                )
            if e.status_code == 409:
                log.warning("EIP-3009 transfer already submitted for this order, treating as collected")
                return TransactionResult(
                    transaction_hash=None,
                    status="already_submitted",
                    idempotency_key=idempotency_key,
                    amount_transferred=authorization.value,
                    from_address=authorization.from_address,
                    to_address=authorization.to_address,
                    already_submitted=True,
                )
            return _collection_failed("transfer_failed", f"Transfer execution failed: {e}", order_id)

        log.info(
            f"EIP-3009 transfer executed: hash={submission.transaction_hash}, "
            f"amount={authorization.value}"
        )
        return TransactionResult(
            transaction_hash=submission.transaction_hash,
            status=submission.status,
            idempotency_key=idempotency_key,
            transaction_id=submission.transaction_id,
            created_at=submission.created_at,
            amount_transferred=authorization.value,
            from_address=authorization.from_address,
            to_address=authorization.to_address,
            raw=submission.raw,
        )

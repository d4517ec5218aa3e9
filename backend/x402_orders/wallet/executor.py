"""
Custodial wallet execution.

The custodial wallet API accepts transactions in one of two shapes depending
on the wallet backend: MPC wallets take a single ``call`` object with
``to``/``data``, smart wallets take an array of ``calls``. This is a backend
capability, so it is modelled as two ``WalletExecutor`` implementations chosen
by configuration (``WALLET_BACKEND``).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import requests

from x402_orders.errors import UpstreamHTTPError
from x402_orders.logger import dump
from x402_orders.wallet.transactions import TransactionDecodeError, decode_serialized_transaction

logger = logging.getLogger(__name__)

API_VERSION_PATH = "/api/2022-06-09"
IDEMPOTENCY_HEADER = "x-idempotency-key"
FAILED_STATUSES = {"failed", "reverted", "rejected"}


class WalletBackend(str, Enum):
    SINGLE_CALL = "single_call"
    BATCH_CALL = "batch_call"


class WalletError(UpstreamHTTPError):
    """Raised when the custodial wallet rejects or fails a transaction."""


@dataclass(frozen=True)
class WalletSubmission:
    """Response of the wallet transactions endpoint."""
    transaction_hash: Optional[str]
    status: str
    transaction_id: Optional[str] = None
    created_at: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "WalletSubmission":
        on_chain = payload.get("onChain") or {}
        return cls(
            transaction_hash=payload.get("transactionHash") or on_chain.get("txId"),
            status=str(payload.get("status") or "pending"),
            transaction_id=payload.get("id"),
            created_at=payload.get("createdAt"),
            raw=payload,
        )

    @property
    def failed(self) -> bool:
        return self.status.lower() in FAILED_STATUSES


class CustodialWalletClient:
    """Thin HTTP wrapper around the wallet transactions endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        wallet_locator: str,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.wallet_locator = wallet_locator
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "X-API-KEY": api_key,
            "Content-Type": "application/json",
        })

    @property
    def transactions_url(self) -> str:
        return f"{self.base_url}{API_VERSION_PATH}/wallets/{self.wallet_locator}/transactions"

    def post_transaction(self, params: Dict[str, Any], idempotency_key: str) -> WalletSubmission:
        try:
            response = self.session.post(
                self.transactions_url,
                json={"params": params},
                headers={IDEMPOTENCY_HEADER: idempotency_key},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise WalletError(f"Wallet request timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise WalletError(f"Wallet request failed: {e}") from e

        if response.status_code >= 400:
            raise WalletError(_describe_failure(response), status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise WalletError(f"Wallet returned invalid JSON: {response.text[:200]}") from e

        logger.debug(
            f"Wallet transaction response for key {idempotency_key} "
            f"({response.status_code}): {dump(payload)}"
        )
        return WalletSubmission.from_response(payload)


def _describe_failure(response: requests.Response) -> str:
    try:
        message = response.json().get("message")
    except ValueError:
        message = None
    status = response.status_code
    if status == 400:
        return f"Invalid transaction: {message or 'Bad request'}"
    if status == 409:
        return "Transaction already exists (idempotency)"
    if status == 422:
        return f"Transaction failed: {message or 'Execution reverted'}"
    if status == 429:
        return "Rate limit exceeded: Too many requests"
    return f"Wallet transaction failed with HTTP {status}: {message or response.reason}"


class WalletExecutor(ABC):
    """Submits calls through the custodial wallet in its native shape."""

    backend: WalletBackend

    def __init__(self, client: CustodialWalletClient):
        self.client = client

    @abstractmethod
    def contract_call(self, to: str, data: str) -> Dict[str, Any]:
        """Shape a contract invocation for this backend."""

    @abstractmethod
    def prepared_call(self, serialized_transaction: str) -> Dict[str, Any]:
        """Shape a platform-prepared serialized transaction for this backend."""

    @abstractmethod
    def build_params(self, calls: List[Dict[str, Any]], network: str) -> Dict[str, Any]:
        """Wrap shaped calls into the request ``params`` object."""

    def submit(
        self,
        calls: List[Dict[str, Any]],
        network: str,
        idempotency_key: str,
    ) -> WalletSubmission:
        """Submit ``calls`` and fail on a wallet-reported failure status.

        Raises:
            WalletError: If the wallet rejects the request or the transaction failed
        """
        params = self.build_params(calls, network)
        logger.info(
            f"Submitting {self.backend.value} wallet transaction on {network} "
            f"(idempotency key {idempotency_key})"
        )
        submission = self.client.post_transaction(params, idempotency_key)
        if submission.failed:
            raise WalletError(
                f"Wallet transaction ended with status {submission.status}",
                status_code=422,
            )
        logger.info(
            f"Wallet transaction accepted for key {idempotency_key}: hash={submission.transaction_hash}, "
            f"status={submission.status}"
        )
        return submission


class SingleCallWalletExecutor(WalletExecutor):
    """MPC wallets: one ``call`` object carrying ``to`` and ``data``."""

    backend = WalletBackend.SINGLE_CALL

    def contract_call(self, to: str, data: str) -> Dict[str, Any]:
        return {"to": to, "data": data}

    def prepared_call(self, serialized_transaction: str) -> Dict[str, Any]:
        try:
            tx = decode_serialized_transaction(serialized_transaction)
        except TransactionDecodeError as e:
            raise WalletError(f"Failed to decode transaction for single-call wallet: {e}") from e
        return self.contract_call(tx.to, tx.data)

    def build_params(self, calls: List[Dict[str, Any]], network: str) -> Dict[str, Any]:
        if len(calls) != 1:
            raise ValueError(f"Single-call wallets accept exactly one call, got {len(calls)}")
        return {"chain": network, "call": calls[0]}


class BatchCallWalletExecutor(WalletExecutor):
    """Smart wallets: an array of ``calls``."""

    backend = WalletBackend.BATCH_CALL

    def contract_call(self, to: str, data: str) -> Dict[str, Any]:
        return {"to": to, "value": "0", "data": data}

    def prepared_call(self, serialized_transaction: str) -> Dict[str, Any]:
        return {"transaction": serialized_transaction}

    def build_params(self, calls: List[Dict[str, Any]], network: str) -> Dict[str, Any]:
        return {"chain": network, "calls": list(calls)}


_EXECUTORS = {
    WalletBackend.SINGLE_CALL: SingleCallWalletExecutor,
    WalletBackend.BATCH_CALL: BatchCallWalletExecutor,
}


def create_wallet_executor(backend: WalletBackend, client: CustodialWalletClient) -> WalletExecutor:
    """Factory selecting the executor for the configured backend."""
    return _EXECUTORS[WalletBackend(backend)](client)

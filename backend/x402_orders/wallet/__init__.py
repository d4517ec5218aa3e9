"""Custodial wallet clients and per-backend executors."""

from x402_orders.wallet.executor import (
    BatchCallWalletExecutor,
    CustodialWalletClient,
    SingleCallWalletExecutor,
    WalletBackend,
    WalletError,
    WalletExecutor,
    create_wallet_executor,
)

__all__ = [
    "BatchCallWalletExecutor",
    "CustodialWalletClient",
    "SingleCallWalletExecutor",
    "WalletBackend",
    "WalletError",
    "WalletExecutor",
    "create_wallet_executor",
]

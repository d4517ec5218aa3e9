"""Pytest fixtures for the order facilitator tests."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from fakes import PAY_TO, FakePlatform, FakeWalletClient
from x402_orders.config import FacilitatorConfig
from x402_orders.main import create_app
from x402_orders.orders.service import OrderService
from x402_orders.wallet.executor import BatchCallWalletExecutor, WalletBackend


@pytest.fixture
def config():
    """Validated configuration without touching the environment."""
    return FacilitatorConfig(
        fulfillment_api_key="sk_test_key",
        fulfillment_base_url="https://staging.platform.test",
        wallet_address=PAY_TO,
        wallet_locator="evm:smart:facilitator",
        wallet_backend=WalletBackend.BATCH_CALL,
        fee_percent=Decimal("0"),
        payment_timeout_seconds=600,
        supported_networks=("ethereum-sepolia", "base-sepolia"),
        supported_currencies=("usdc",),
        environment="test",
    )


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def wallet_client():
    return FakeWalletClient()


@pytest.fixture
def executor(wallet_client):
    return BatchCallWalletExecutor(wallet_client)


@pytest.fixture
def service(config, platform, executor):
    return OrderService.from_components(config, platform, executor)


@pytest.fixture
def client(config, platform, executor):
    app = create_app(config=config, platform=platform, executor=executor)
    return TestClient(app)

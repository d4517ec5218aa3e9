from decimal import Decimal

import pytest

from fakes import PAY_TO
from x402_orders.config import FacilitatorSettings, load_config
from x402_orders.errors import ConfigError
from x402_orders.wallet.executor import WalletBackend

ENV_KEYS = [
    "PORT",
    "NODE_ENV",
    "DEBUG",
    "FULFILLMENT_API_KEY",
    "FULFILLMENT_ENVIRONMENT",
    "FULFILLMENT_BASE_URL",
    "CUSTODIAL_WALLET_ADDRESS",
    "CUSTODIAL_WALLET_LOCATOR",
    "WALLET_BACKEND",
    "ORDER_FEE_PERCENTAGE",
    "ORDER_PAYMENT_TIMEOUT_MINUTES",
    "SUPPORTED_NETWORKS",
    "SUPPORTED_CURRENCIES",
    "HTTP_TIMEOUT_SECONDS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _settings(**overrides):
    values = {
        "_env_file": None,
        "fulfillment_api_key": "sk_test",
        "fulfillment_environment": "staging",
        "custodial_wallet_address": PAY_TO.lower(),
        "custodial_wallet_locator": "evm:smart:abc",
    }
    values.update(overrides)
    return values


def test_defaults():
    config = load_config(**_settings())

    assert config.fulfillment_base_url == "https://staging.crossmint.com"
    assert config.wallet_address == PAY_TO
    assert config.wallet_backend == WalletBackend.BATCH_CALL
    assert config.fee_percent == Decimal("0")
    assert config.payment_timeout_seconds == 600
    assert config.supported_networks == ("ethereum-sepolia", "base-sepolia")
    assert config.supported_currencies == ("usdc",)
    assert config.default_network == "ethereum-sepolia"
    assert config.request_timeout == 30
    assert config.port == 3000
    assert not config.is_production


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("FULFILLMENT_API_KEY", "sk_env")
    monkeypatch.setenv("FULFILLMENT_ENVIRONMENT", "production")
    monkeypatch.setenv("CUSTODIAL_WALLET_ADDRESS", PAY_TO)
    monkeypatch.setenv("CUSTODIAL_WALLET_LOCATOR", "evm:mpc:abc")
    monkeypatch.setenv("WALLET_BACKEND", "SINGLE_CALL")
    monkeypatch.setenv("ORDER_FEE_PERCENTAGE", "2.5")
    monkeypatch.setenv("SUPPORTED_NETWORKS", "Base, ethereum")
    monkeypatch.setenv("NODE_ENV", "production")

    config = load_config(_env_file=None)

    assert config.fulfillment_api_key == "sk_env"
    assert config.fulfillment_base_url == "https://www.crossmint.com"
    assert config.wallet_backend == WalletBackend.SINGLE_CALL
    assert config.fee_percent == Decimal("2.5")
    assert config.supported_networks == ("base", "ethereum")
    assert config.is_production


def test_base_url_override():
    config = load_config(**_settings(fulfillment_base_url="http://localhost:9000/"))

    assert config.fulfillment_base_url == "http://localhost:9000"


def test_request_timeout_capped_by_payment_window():
    config = load_config(**_settings(order_payment_timeout_minutes=1, http_timeout_seconds=45))

    assert config.request_timeout == 45
    assert config.payment_timeout_seconds == 60


@pytest.mark.parametrize(
    "overrides, fragment",
    [
        ({"fulfillment_api_key": ""}, "FULFILLMENT_API_KEY"),
        ({"fulfillment_environment": ""}, "FULFILLMENT_ENVIRONMENT"),
        ({"fulfillment_environment": "sandbox"}, "FULFILLMENT_ENVIRONMENT"),
        ({"custodial_wallet_locator": ""}, "CUSTODIAL_WALLET_LOCATOR"),
        ({"custodial_wallet_address": "0x1234"}, "CUSTODIAL_WALLET_ADDRESS"),
        ({"wallet_backend": "multisig"}, "WALLET_BACKEND"),
        ({"order_fee_percentage": "abc"}, "ORDER_FEE_PERCENTAGE"),
        ({"order_fee_percentage": "100"}, "ORDER_FEE_PERCENTAGE"),
        ({"order_fee_percentage": "-1"}, "ORDER_FEE_PERCENTAGE"),
        ({"http_timeout_seconds": 900}, "HTTP_TIMEOUT_SECONDS"),
        ({"supported_networks": "ethereum-sepolia,solana"}, "solana"),
        ({"supported_networks": " , "}, "SUPPORTED_NETWORKS"),
        ({"supported_currencies": "usdc,dai"}, "dai"),
        ({"node_env": "staging"}, "NODE_ENV"),
    ],
)
def test_invalid_configuration(overrides, fragment):
    settings = FacilitatorSettings(**_settings(**overrides))

    with pytest.raises(ConfigError) as excinfo:
        settings.validate()

    assert fragment in str(excinfo.value)


def test_config_is_frozen():
    config = load_config(**_settings())

    with pytest.raises(AttributeError):
        config.fee_percent = Decimal("10")

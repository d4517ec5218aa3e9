"""
Configuration for the x402 order facilitator.

Settings are read once at startup from the environment (and ``.env``) by
``FacilitatorSettings``, validated, and frozen into a ``FacilitatorConfig``
that is passed explicitly to every component. Nothing reads configuration from
global state at call time.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

from web3 import Web3
from pydantic_settings import BaseSettings, SettingsConfigDict

from x402_orders.errors import ConfigError
from x402_orders.payment.registry import ALL_CURRENCIES, ALL_NETWORKS
from x402_orders.wallet.executor import WalletBackend

FULFILLMENT_BASE_URLS = {
    "production": "https://www.crossmint.com",
    "staging": "https://staging.crossmint.com",
}

DEFAULT_NETWORKS = "ethereum-sepolia,base-sepolia"
DEFAULT_CURRENCIES = "usdc"


def _split_list(raw: str) -> Tuple[str, ...]:
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class FacilitatorConfig:
    """Immutable, validated configuration handed to each component."""
    fulfillment_api_key: str
    fulfillment_base_url: str
    wallet_address: str
    wallet_locator: str
    wallet_backend: WalletBackend
    fee_percent: Decimal
    payment_timeout_seconds: int
    supported_networks: Tuple[str, ...]
    supported_currencies: Tuple[str, ...]
    http_timeout_seconds: int = 30
    environment: str = "development"
    debug: bool = False
    port: int = 3000

    @property
    def default_network(self) -> str:
        return self.supported_networks[0]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def request_timeout(self) -> int:
        """Outbound request timeout, never longer than the challenge window."""
        return min(self.http_timeout_seconds, self.payment_timeout_seconds)

    def is_supported_network(self, network: str) -> bool:
        return network.lower() in self.supported_networks

    def is_supported_currency(self, currency: str) -> bool:
        return currency.lower() in self.supported_currencies


class FacilitatorSettings(BaseSettings):
    """Raw environment settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    port: int = 3000
    node_env: str = "development"
    debug: bool = False

    # Fulfillment platform
    fulfillment_api_key: str = ""
    fulfillment_environment: str = ""
    fulfillment_base_url: Optional[str] = None

    # Custodial wallet
    custodial_wallet_address: str = ""
    custodial_wallet_locator: str = ""
    wallet_backend: str = WalletBackend.BATCH_CALL.value

    # Orders
    order_fee_percentage: str = "0"
    order_payment_timeout_minutes: int = 10
    supported_networks: str = DEFAULT_NETWORKS
    supported_currencies: str = DEFAULT_CURRENCIES
    http_timeout_seconds: int = 30

    def validate(self) -> None:
        """Validate required configuration.

        Raises:
            ConfigError: If required configuration is missing or invalid
        """
        if not self.fulfillment_api_key:
            raise ConfigError("FULFILLMENT_API_KEY environment variable is required")

        if not self.fulfillment_base_url:
            if not self.fulfillment_environment:
                raise ConfigError(
                    'FULFILLMENT_ENVIRONMENT must be set to "staging" or "production"'
                )
            if self.fulfillment_environment.lower() not in FULFILLMENT_BASE_URLS:
                raise ConfigError(
                    f'Invalid FULFILLMENT_ENVIRONMENT: "{self.fulfillment_environment}". '
                    'Must be "staging" or "production"'
                )

        if not self.custodial_wallet_locator:
            raise ConfigError("CUSTODIAL_WALLET_LOCATOR environment variable is required")

        if not Web3.is_address(self.custodial_wallet_address):
            raise ConfigError(
                f"CUSTODIAL_WALLET_ADDRESS must be a valid EVM address: "
                f"{self.custodial_wallet_address!r}"
            )

        try:
            WalletBackend(self.wallet_backend.lower())
        except ValueError:
            raise ConfigError(
                f"WALLET_BACKEND must be one of "
                f"{', '.join(b.value for b in WalletBackend)}, got {self.wallet_backend!r}"
            )

        try:
            fee = Decimal(self.order_fee_percentage)
        except InvalidOperation:
            raise ConfigError(
                f"ORDER_FEE_PERCENTAGE must be a decimal number, got {self.order_fee_percentage!r}"
            )
        if not fee.is_finite() or fee < 0 or fee >= 100:
            raise ConfigError(f"ORDER_FEE_PERCENTAGE must be in [0, 100), got {fee}")

        if self.order_payment_timeout_minutes <= 0:
            raise ConfigError("ORDER_PAYMENT_TIMEOUT_MINUTES must be positive")

        if self.http_timeout_seconds <= 0:
            raise ConfigError("HTTP_TIMEOUT_SECONDS must be positive")
        if self.http_timeout_seconds > self.order_payment_timeout_minutes * 60:
            raise ConfigError(
                "HTTP_TIMEOUT_SECONDS must not exceed the payment timeout window"
            )

        networks = _split_list(self.supported_networks)
        if not networks:
            raise ConfigError("SUPPORTED_NETWORKS must list at least one network")
        for network in networks:
            if network not in ALL_NETWORKS:
                raise ConfigError(
                    f'Unsupported network in SUPPORTED_NETWORKS: "{network}". '
                    f"Supported networks: {', '.join(ALL_NETWORKS)}"
                )

        currencies = _split_list(self.supported_currencies)
        if not currencies:
            raise ConfigError("SUPPORTED_CURRENCIES must list at least one currency")
        for currency in currencies:
            if currency not in ALL_CURRENCIES:
                raise ConfigError(
                    f'Unsupported currency in SUPPORTED_CURRENCIES: "{currency}". '
                    f"Supported currencies: {', '.join(ALL_CURRENCIES)}"
                )

        if self.node_env not in ("development", "production", "test"):
            raise ConfigError(
                f"NODE_ENV must be development, production or test, got {self.node_env!r}"
            )

    def to_config(self) -> FacilitatorConfig:
        """Validate and freeze into a ``FacilitatorConfig``."""
        self.validate()
        base_url = self.fulfillment_base_url or FULFILLMENT_BASE_URLS[
            self.fulfillment_environment.lower()
        ]
        return FacilitatorConfig(
            fulfillment_api_key=self.fulfillment_api_key,
            fulfillment_base_url=base_url.rstrip("/"),
            wallet_address=Web3.to_checksum_address(self.custodial_wallet_address),
            wallet_locator=self.custodial_wallet_locator,
            wallet_backend=WalletBackend(self.wallet_backend.lower()),
            fee_percent=Decimal(self.order_fee_percentage),
            payment_timeout_seconds=self.order_payment_timeout_minutes * 60,
            supported_networks=_split_list(self.supported_networks),
            supported_currencies=_split_list(self.supported_currencies),
            http_timeout_seconds=self.http_timeout_seconds,
            environment=self.node_env,
            debug=self.debug,
            port=self.port,
        )


def load_config(**overrides) -> FacilitatorConfig:
    """Build the process configuration from the environment.

    Keyword overrides take precedence over environment values, which is how
    tests construct a configuration without touching ``os.environ``.
    """
    return FacilitatorSettings(**overrides).to_config()

"""
Static network/asset registry.

Single source of truth for which {network, currency} pairs the facilitator can
price and collect, with the token contract and decimals for each. Lookups fail
closed: an unknown network or currency is always an error, never a default.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from x402_orders.errors import FacilitatorError, validation_error


@dataclass(frozen=True)
class NetworkInfo:
    name: str
    chain_id: int
    testnet: bool


@dataclass(frozen=True)
class AssetInfo:
    """A currency as deployed on one network."""
    network: str
    currency: str
    decimals: int
    contract_address: Optional[str] = None  # None for the native gas token
    token_name: str = ""
    token_version: str = ""
    chain_id: int = 0

    @property
    def is_native(self) -> bool:
        return self.contract_address is None


NETWORKS: Dict[str, NetworkInfo] = {
    # Testnets
    "ethereum-sepolia": NetworkInfo("ethereum-sepolia", 11155111, True),
    "base-sepolia": NetworkInfo("base-sepolia", 84532, True),
    "polygon-mumbai": NetworkInfo("polygon-mumbai", 80001, True),
    "arbitrum-sepolia": NetworkInfo("arbitrum-sepolia", 421614, True),
    # Mainnets
    "ethereum": NetworkInfo("ethereum", 1, False),
    "polygon": NetworkInfo("polygon", 137, False),
    "base": NetworkInfo("base", 8453, False),
    "arbitrum": NetworkInfo("arbitrum", 42161, False),
}

USDC_CONTRACTS: Dict[str, str] = {
    "ethereum-sepolia": "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
    "base-sepolia": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
    "polygon-mumbai": "0xe6b8a5CF854791412c1f6EFC7CAf629f5Df1c747",
    "arbitrum-sepolia": "0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d",
    "ethereum": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    "polygon": "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
    "base": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    "arbitrum": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
}

USDC_DECIMALS = 6
NATIVE_DECIMALS = 18

# EIP-712 domain used by the USDC contracts for transferWithAuthorization
USDC_TOKEN_NAME = "USDC"
USDC_TOKEN_VERSION = "2"


def _build_assets() -> Dict[Tuple[str, str], AssetInfo]:
    assets: Dict[Tuple[str, str], AssetInfo] = {}
    for network, info in NETWORKS.items():
        assets[(network, "usdc")] = AssetInfo(
            network=network,
            currency="usdc",
            decimals=USDC_DECIMALS,
            contract_address=USDC_CONTRACTS[network],
            token_name=USDC_TOKEN_NAME,
            token_version=USDC_TOKEN_VERSION,
            chain_id=info.chain_id,
        )
        assets[(network, "eth")] = AssetInfo(
            network=network,
            currency="eth",
            decimals=NATIVE_DECIMALS,
            chain_id=info.chain_id,
        )
    return assets


ASSETS: Dict[Tuple[str, str], AssetInfo] = _build_assets()

ALL_NETWORKS: Tuple[str, ...] = tuple(NETWORKS)
ALL_CURRENCIES: Tuple[str, ...] = tuple(sorted({currency for _, currency in ASSETS}))


def resolve_asset(network: str, currency: str) -> Union[AssetInfo, FacilitatorError]:
    """Look up the asset for a network/currency pair."""
    network_key = (network or "").lower()
    currency_key = (currency or "").lower()

    if network_key not in NETWORKS:
        return validation_error(
            "unsupported_network",
            "Unsupported network",
            f'Network "{network}" is not supported. '
            f"Supported networks: {', '.join(ALL_NETWORKS)}",
            supportedNetworks=list(ALL_NETWORKS),
        )

    asset = ASSETS.get((network_key, currency_key))
    if asset is None:
        return validation_error(
            "unsupported_currency",
            "Unsupported currency",
            f'Currency "{currency}" is not supported on network "{network}"',
            supportedCurrencies=list(ALL_CURRENCIES),
        )
    return asset


def require_token_asset(asset: AssetInfo) -> Optional[FacilitatorError]:
    """Authorization-based collection needs a token contract to call."""
    if asset.is_native:
        return unsupported_asset_type(asset.currency)
    return None


def unsupported_asset_type(currency: str) -> FacilitatorError:
    return validation_error(
        "unsupported_asset_type",
        "Unsupported asset type",
        f'Asset "{currency}" is native and cannot be paid with a transfer authorization. '
        "Please use a token such as USDC.",
    )


def chain_id_for(network: str) -> Optional[int]:
    info = NETWORKS.get((network or "").lower())
    return info.chain_id if info else None

from x402_orders.errors import FacilitatorError
from x402_orders.payment import registry


def test_resolve_usdc_on_sepolia():
    asset = registry.resolve_asset("ethereum-sepolia", "usdc")

    assert asset.decimals == 6
    assert asset.contract_address == "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"
    assert asset.chain_id == 11155111
    assert asset.token_name == "USDC"
    assert asset.token_version == "2"
    assert not asset.is_native


def test_lookup_is_case_insensitive():
    asset = registry.resolve_asset("Base-Sepolia", "USDC")

    assert asset.network == "base-sepolia"
    assert asset.chain_id == 84532


def test_native_asset_has_no_contract():
    asset = registry.resolve_asset("base", "eth")

    assert asset.is_native
    assert asset.decimals == 18
    assert registry.require_token_asset(asset).code == "unsupported_asset_type"


def test_unknown_network_fails_closed():
    result = registry.resolve_asset("solana", "usdc")

    assert isinstance(result, FacilitatorError)
    assert result.code == "unsupported_network"
    assert result.status_code == 400
    assert "ethereum-sepolia" in result.details["supportedNetworks"]


def test_unknown_currency_fails_closed():
    result = registry.resolve_asset("ethereum", "dai")

    assert isinstance(result, FacilitatorError)
    assert result.code == "unsupported_currency"


def test_every_network_has_usdc():
    for network in registry.ALL_NETWORKS:
        asset = registry.resolve_asset(network, "usdc")
        assert asset.contract_address
        assert registry.chain_id_for(network) == asset.chain_id


def test_chain_id_for_unknown_network():
    assert registry.chain_id_for("solana") is None

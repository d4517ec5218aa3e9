from decimal import Decimal

import pytest

from fakes import PREPARED_TX, make_order
from x402_orders.errors import ErrorKind, FacilitatorError
from x402_orders.fulfillment.dispatcher import FulfillmentDispatcher, FulfillmentResult
from x402_orders.fulfillment.platform import PlatformError
from x402_orders.payment.models import OrderSession
from x402_orders.wallet.executor import WalletError


@pytest.fixture
def session():
    return OrderSession(
        order_id="order-123",
        network="ethereum-sepolia",
        currency="usdc",
        base_price=Decimal("1.80"),
        fee_percent=Decimal("0"),
        prepared_transaction=PREPARED_TX,
    )


@pytest.fixture
def dispatcher(executor, platform):
    platform.add(make_order("order-123", status="completed"))
    return FulfillmentDispatcher(executor, platform)


def test_dispatch_submits_prepared_transaction(dispatcher, session, wallet_client):
    result = dispatcher.dispatch(session, PREPARED_TX, "order-123")

    assert isinstance(result, FulfillmentResult)
    assert result.success
    params, key = wallet_client.posted[0]
    assert key == "order-123"
    assert params == {"chain": "ethereum-sepolia", "calls": [{"transaction": PREPARED_TX}]}
    assert result.order.status == "completed"
    assert result.to_dict()["data"]["transactionHash"] == result.transaction.transaction_hash


def test_dispatch_without_prepared_transaction(dispatcher, session, wallet_client):
    result = dispatcher.dispatch(session, None, "order-123")

    assert result.already_settled
    assert result.to_dict() == {"success": True, "alreadySettled": True}
    assert wallet_client.posted == []


def test_dispatch_failure_is_fulfillment_failed(dispatcher, session, wallet_client):
    wallet_client.failures["order-123"] = WalletError("Transaction failed: reverted", status_code=422)

    result = dispatcher.dispatch(session, PREPARED_TX, "order-123")

    assert isinstance(result, FacilitatorError)
    assert result.kind == ErrorKind.FULFILLMENT_FAILED
    assert result.status_code == 422
    assert not result.retryable


def test_refresh_failure_still_succeeds(dispatcher, session, platform):
    platform.get_error = PlatformError("Fulfillment platform error", status_code=503)

    result = dispatcher.dispatch(session, PREPARED_TX, "order-123")

    assert result.success
    assert result.order is None

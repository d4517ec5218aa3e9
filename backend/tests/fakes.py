"""Hand-written fakes for the fulfillment platform and the custodial wallet."""

import copy

from eth_account import Account

from x402_orders.fulfillment.platform import PlatformError, PlatformOrder
from x402_orders.payment.models import Recipient, ShippingAddress
from x402_orders.wallet.executor import WalletSubmission

PAYER_KEY = "0x" + "11" * 32
PAYER_ADDRESS = Account.from_key(PAYER_KEY).address
PAY_TO = Account.from_key("0x" + "22" * 32).address

PREPARED_TX = "0x02f86b83aa36a780843b9aca00"  # opaque to the batch-call backend

SEPOLIA_USDC = "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"

RECIPIENT = Recipient(
    email="buyer@example.com",
    shipping_address=ShippingAddress(
        name="Ada Lovelace",
        line1="1 Main St",
        city="Austin",
        state="TX",
        postal_code="78701",
        country="US",
    ),
)


def make_order(
    order_id="order-123",
    amount="1.80",
    network="ethereum-sepolia",
    currency="usdc",
    prepared=PREPARED_TX,
    status="awaiting-payment",
    locator="amazon:B0CXM1N3B3",
):
    """An order as the platform's GET endpoint returns it."""
    payment = {"method": network, "currency": currency, "status": status}
    if prepared is not None:
        payment["preparation"] = {"serializedTransaction": prepared}
    quote = {"totalPrice": {"amount": amount, "currency": currency}} if amount is not None else {}
    return {
        "orderId": order_id,
        "phase": "payment",
        "locale": "en-US",
        "lineItems": [
            {
                "chain": network,
                "productLocator": locator,
                "metadata": {"name": "USB-C cable", "imageUrl": "https://img.test/1.png"},
                "delivery": {
                    "status": "awaiting-payment",
                    "recipient": {"email": "buyer@example.com"},
                },
                "quantity": 1,
            }
        ],
        "quote": quote,
        "payment": payment,
    }


class FakePlatform:
    """In-memory stand-in for ``FulfillmentPlatformClient``."""

    def __init__(self, amount="1.80", prepared=PREPARED_TX):
        self.amount = amount
        self.prepared = prepared
        self.orders = {}
        self.created = []
        self.create_error = None
        self.get_error = None
        self.get_calls = []

    def add(self, order):
        self.orders[order["orderId"]] = order
        return order

    def create_order(self, product_locator, recipient, payer_address, network, currency):
        if self.create_error is not None:
            raise self.create_error
        order_id = f"order-{len(self.created) + 1}"
        order = make_order(
            order_id,
            amount=self.amount,
            network=network,
            currency=currency,
            prepared=self.prepared,
            locator=product_locator,
        )
        self.created.append({
            "product_locator": product_locator,
            "recipient": recipient,
            "payer_address": payer_address,
            "network": network,
            "currency": currency,
        })
        self.orders[order_id] = order
        return PlatformOrder.from_response({"order": copy.deepcopy(order)})

    def get_order(self, order_id):
        self.get_calls.append(order_id)
        if self.get_error is not None:
            raise self.get_error
        if order_id not in self.orders:
            raise PlatformError(f"Order not found: {order_id}", status_code=404)
        return PlatformOrder.from_response(copy.deepcopy(self.orders[order_id]))


class FakeWalletClient:
    """Stand-in for ``CustodialWalletClient`` that replays by idempotency key."""

    def __init__(self):
        self.submissions = {}
        self.posted = []
        self.failures = {}
        self.statuses = {}

    def post_transaction(self, params, idempotency_key):
        self.posted.append((params, idempotency_key))
        if idempotency_key in self.failures:
            raise self.failures[idempotency_key]
        if idempotency_key not in self.submissions:
            n = len(self.submissions) + 1
            self.submissions[idempotency_key] = WalletSubmission.from_response({
                "id": f"tx-{n}",
                "transactionHash": "0x" + f"{n:064x}",
                "status": self.statuses.get(idempotency_key, "success"),
                "createdAt": "2024-01-01T00:00:00Z",
            })
        return self.submissions[idempotency_key]

    @property
    def executed_keys(self):
        return list(self.submissions)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text="", reason="OK"):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.reason = reason

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """Records outgoing requests and answers from a queue of responses."""

    def __init__(self, *responses):
        self.headers = {}
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def request(self, method, url, **kwargs):
        return self._next(method, url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)

"""
Payment challenge builder.

Derives the exact atomic amount due for an order and builds the x402
``PaymentRequirements``. The amount is computed in two steps that must always
run in this order: round the decimal total to 6 places, then truncate to the
asset's atomic units. The verifier recomputes the same string and compares it
verbatim, so both sides call ``compute_atomic_amount``.
"""

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Union

from x402_orders.errors import FacilitatorError
from x402_orders.payment.models import OrderSession, PaymentRequirements
from x402_orders.payment.registry import AssetInfo, require_token_asset, resolve_asset

PRICE_QUANTUM = Decimal("0.000001")
ONE_HUNDRED = Decimal(100)


def compute_total(base_price: Decimal, fee_percent: Decimal) -> Decimal:
    """Base price plus fee, rounded half-up to 6 decimal places."""
    total = Decimal(base_price) * (1 + Decimal(fee_percent) / ONE_HUNDRED)
    return total.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)


def to_atomic_units(amount: Decimal, decimals: int) -> int:
    """Truncate a decimal amount to the asset's smallest unit."""
    scaled = Decimal(amount).scaleb(decimals)
    return int(scaled.to_integral_value(rounding=ROUND_FLOOR))


def compute_atomic_amount(base_price: Decimal, fee_percent: Decimal, decimals: int) -> str:
    return str(to_atomic_units(compute_total(base_price, fee_percent), decimals))


def describe(fee_percent: Decimal) -> str:
    if fee_percent:
        return f"Product purchase via fulfillment platform (includes {fee_percent.normalize():f}% fee)"
    return "Product purchase via fulfillment platform"


def build_requirements(
    session: OrderSession,
    asset: AssetInfo,
    pay_to: str,
    timeout_seconds: int,
    resource: str = "/orders",
) -> PaymentRequirements:
    """Build the challenge for a session whose asset is already resolved."""
    return PaymentRequirements(
        network=session.network,
        max_amount_required=compute_atomic_amount(
            session.base_price, session.fee_percent, asset.decimals
        ),
        pay_to=pay_to,
        asset=asset.contract_address or "",
        max_timeout_seconds=timeout_seconds,
        order_id=session.order_id,
        resource=resource,
        description=describe(session.fee_percent),
        token_name=asset.token_name,
        token_version=asset.token_version,
    )


def build(
    session: OrderSession,
    pay_to: str,
    timeout_seconds: int,
    resource: str = "/orders",
) -> Union[PaymentRequirements, FacilitatorError]:
    """Resolve the session's asset and build its payment challenge."""
    asset = resolve_asset(session.network, session.currency)
    if isinstance(asset, FacilitatorError):
        return asset.with_order(session.order_id)
    native = require_token_asset(asset)
    if native is not None:
        return native.with_order(session.order_id)
    return build_requirements(session, asset, pay_to, timeout_seconds, resource)

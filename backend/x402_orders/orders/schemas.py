"""
Request models for the orders API.

Field names follow the public JSON contract (camelCase) so the models can be
used directly as FastAPI request bodies.
"""

from typing import Optional

from pydantic import BaseModel, Field

from x402_orders.orders.service import OrderRequest
from x402_orders.payment.models import Recipient, ShippingAddress

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class PhysicalAddressModel(BaseModel):
    """Shipping address for physical products."""
    name: str = Field(..., min_length=1)
    line1: str = Field(..., min_length=1)
    line2: Optional[str] = ""
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postalCode: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)

    def to_domain(self) -> ShippingAddress:
        return ShippingAddress(
            name=self.name,
            line1=self.line1,
            line2=self.line2 or "",
            city=self.city,
            state=self.state,
            postal_code=self.postalCode,
            country=self.country,
        )


class PaymentOptionsModel(BaseModel):
    """Network (``method``) and currency the buyer wants to pay with."""
    method: Optional[str] = None
    currency: Optional[str] = None


class OrderRequestModel(BaseModel):
    """Body of ``POST /orders``."""
    productLocator: str = Field(..., min_length=1, description="e.g. amazon:B0CXM1N3B3")
    email: str = Field(..., pattern=EMAIL_PATTERN)
    physicalAddress: PhysicalAddressModel
    payment: Optional[PaymentOptionsModel] = None

    def to_domain(self) -> OrderRequest:
        payment = self.payment or PaymentOptionsModel()
        return OrderRequest(
            product_locator=self.productLocator,
            recipient=Recipient(
                email=self.email,
                shipping_address=self.physicalAddress.to_domain(),
            ),
            network=payment.method,
            currency=payment.currency,
        )

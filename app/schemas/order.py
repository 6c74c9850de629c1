# app/schemas/order.py
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import ConfigDict, Field, StrictInt, field_validator
from pydantic.alias_generators import to_camel

from app.schemas.common import ApiModel


class ShippingAddress(ApiModel):
    """
    Delivery address.

    Required: street, city, state, zipCode, country.
    Postal code format is checked per country by the order service.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    first_name: str | None = None
    last_name: str | None = None
    street: str
    city: str
    state: str
    zip_code: str
    country: str

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def normalize_optional(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = str(v).strip()
        return v or None


class OrderLineCreate(ApiModel):
    product_id: uuid.UUID
    quantity: StrictInt = Field(gt=0)


class OrderCreate(ApiModel):
    """
    Checkout payload.

    User provides:
      - shippingAddress
      - paymentMethod (optional)
      - items (optional; defaults to the current cart)

    Backend derives:
      - user_id from token
      - status / paymentStatus = 'pending'
      - prices and totalAmount from the product ledger
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    shipping_address: ShippingAddress
    payment_method: str | None = Field(default=None, max_length=50)
    items: list[OrderLineCreate] | None = None

    @field_validator("payment_method")
    @classmethod
    def normalize_payment_method(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderItemRead(ApiModel):
    """
    Representation of a single order line item.
    """

    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str | None = None
    quantity: int
    price_snapshot: Decimal
    line_total: Decimal


class OrderRead(ApiModel):
    """
    Full order view including items.
    """

    id: uuid.UUID
    user_id: uuid.UUID
    total_amount: Decimal
    status: str
    payment_status: str
    tracking_number: str | None = None
    shipping_address: dict
    payment_method: str | None = None
    items: list[OrderItemRead]
    created_at: datetime
    updated_at: datetime


class OrderStatusUpdate(ApiModel):
    """
    Admin payload to change order status. Values are checked by the service.
    """

    status: str


class PaymentStatusUpdate(ApiModel):
    """
    Admin payload to change payment status.
    """

    payment_status: str


class TrackingNumberUpdate(ApiModel):
    tracking_number: str = Field(min_length=1, max_length=100)

    @field_validator("tracking_number")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("trackingNumber cannot be empty")
        return v

# app/schemas/cart.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import Field, StrictInt, field_validator

from app.schemas.common import ApiModel


class CartItemCreate(ApiModel):
    """
    Payload for adding to cart.
    """

    product_id: uuid.UUID
    quantity: StrictInt = Field(default=1, gt=0)


class CartItemUpdate(ApiModel):
    """
    Payload for setting the quantity of a cart line.

    quantity <= 0 removes the line.
    """

    quantity: StrictInt


class CartMergeRequest(ApiModel):
    """
    Payload sent right after login to fold the guest cart into the user's.
    """

    guest_session_id: str = Field(min_length=1, max_length=128)

    @field_validator("guest_session_id")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("guestSessionId cannot be empty")
        return v


class CartLineRead(ApiModel):
    """
    Read model for a single cart line, priced at the live product price.
    """

    product_id: uuid.UUID
    product_name: str | None = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    available: int
    is_active: bool


class CartRead(ApiModel):
    """
    Full cart response model with totals.

    id / timestamps are None for an owner who has no cart yet.
    """

    id: uuid.UUID | None = None
    user_id: uuid.UUID | None = None
    session_id: str | None = None
    items: list[CartLineRead]
    total: Decimal
    item_count: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CartIssue(ApiModel):
    type: Literal["insufficient_inventory", "unavailable"]
    product_id: uuid.UUID
    product_name: str | None = None
    message: str
    requested: int | None = None
    available: int | None = None


class CartValidationRead(ApiModel):
    cart: CartRead
    issues: list[CartIssue]
    is_valid: bool

# app/models/product.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Catalog entry as seen by the cart/order pipeline.

    The catalog itself (CRUD, images) is owned elsewhere; this table is
    the shared ledger of price, stock and availability that carts and
    orders read and that order placement/cancellation mutates.
    """

    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("inventory >= 0", name="ck_products_inventory_non_negative"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=255,
        index=True,
        description="Display name of the product",
    )

    price: Decimal = Field(
        max_digits=10,
        decimal_places=2,
        ge=0,
        description="Current unit price",
    )

    inventory: int = Field(
        default=0,
        ge=0,
        description="Units currently in stock, shared across all carts/orders",
    )

    is_active: bool = Field(
        default=True,
        index=True,
        description="Whether this product can be added to carts and ordered",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last stock/price change (UTC)",
    )

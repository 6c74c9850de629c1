# app/models/order.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Order(SQLModel, table=True):
    """
    Committed purchase.

    Only status, payment_status, tracking_number (and updated_at) change
    after creation; lines and total_amount are fixed.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # Sum of quantity * price_snapshot over the order's lines
    total_amount: Decimal = Field(
        max_digits=12,
        decimal_places=2,
        description="Final amount for this order",
    )

    # pending | confirmed | shipped | delivered | cancelled
    status: str = Field(
        default=OrderStatus.PENDING.value,
        index=True,
        description="Order status lifecycle",
    )

    # pending | completed | failed
    payment_status: str = Field(
        default=PaymentStatus.PENDING.value,
        index=True,
        description="Payment lifecycle, independent of status",
    )

    tracking_number: str | None = Field(
        default=None,
        max_length=100,
    )

    shipping_address: dict = Field(
        sa_column=Column(JSON, nullable=False),
        description="street, city, state, zipCode, country (+ optional name fields)",
    )

    payment_method: str | None = Field(
        default=None,
        max_length=50,
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last status/payment/tracking change (UTC)",
    )


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order.

    price_snapshot is the product price read when the order was placed
    and is never recomputed.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    price_snapshot: Decimal = Field(
        max_digits=10,
        decimal_places=2,
        description="Unit price at time of order",
    )

    product_name: str | None = Field(
        default=None,
        description="Product name at time of order",
    )

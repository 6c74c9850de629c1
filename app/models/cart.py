# app/models/cart.py
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


@dataclass(frozen=True)
class GuestOwner:
    """Cart owner before login: a client-held session key."""

    session_key: str


@dataclass(frozen=True)
class UserOwner:
    """Cart owner after login."""

    user_id: uuid.UUID


CartOwner = GuestOwner | UserOwner


class Cart(SQLModel, table=True):
    """
    Shopping cart header, one per owner.

    Exactly one of user_id / session_key is set, and it never changes
    after creation.
    """

    __tablename__ = "carts"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="users.id",
        unique=True,
        index=True,
    )

    session_key: str | None = Field(
        default=None,
        max_length=128,
        unique=True,
        index=True,
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class CartItem(SQLModel, table=True):
    """
    One line of a cart.
    A cart cannot have 2 rows for the same product, and a line with
    quantity <= 0 is deleted rather than stored.
    """

    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_cart_items_cart_product"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    cart_id: uuid.UUID = Field(
        foreign_key="carts.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    quantity: int = Field(
        gt=0,
        description="Must be >= 1",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

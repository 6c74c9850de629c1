# app/repositories/cart_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import delete, update
from sqlmodel import Session, select

from app.models.cart import Cart, CartItem, CartOwner, GuestOwner, UserOwner


class CartRepository:
    """
    Data access layer for carts and cart_items.

    NOTE:
      - No commits here; the service wraps each operation in a
        transaction so read-modify-write steps land together.
    """

    # ---- Carts ----

    def get_for_owner(self, session: Session, owner: CartOwner) -> Cart | None:
        stmt = select(Cart)
        if isinstance(owner, UserOwner):
            stmt = stmt.where(Cart.user_id == owner.user_id)
        else:
            stmt = stmt.where(Cart.session_key == owner.session_key)
        return session.exec(stmt).first()

    def create_for_owner(self, session: Session, owner: CartOwner) -> Cart:
        if isinstance(owner, UserOwner):
            cart = Cart(user_id=owner.user_id)
        else:
            cart = Cart(session_key=owner.session_key)
        session.add(cart)
        session.flush()
        return cart

    def get_or_create(self, session: Session, owner: CartOwner) -> Cart:
        cart = self.get_for_owner(session, owner)
        if cart is None:
            cart = self.create_for_owner(session, owner)
        return cart

    def touch(self, session: Session, cart: Cart) -> None:
        cart.updated_at = datetime.now(timezone.utc)
        session.add(cart)

    def delete_cart(self, session: Session, cart_id: uuid.UUID) -> bool:
        """
        Delete a cart and its lines.

        Returns True only for the caller whose DELETE actually removed the
        cart row, so it can be used to claim a cart exactly once.
        """
        session.execute(
            delete(CartItem)
            .where(CartItem.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(
            delete(Cart)
            .where(Cart.id == cart_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ---- Lines ----

    def list_items(self, session: Session, cart_id: uuid.UUID) -> list[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.cart_id == cart_id)
            .order_by(CartItem.created_at)
        )
        return session.exec(stmt).all()

    def get_item(
        self, session: Session, cart_id: uuid.UUID, product_id: uuid.UUID
    ) -> CartItem | None:
        stmt = select(CartItem).where(
            CartItem.cart_id == cart_id, CartItem.product_id == product_id
        )
        return session.exec(stmt).first()

    def insert_item(
        self,
        session: Session,
        cart_id: uuid.UUID,
        product_id: uuid.UUID,
        quantity: int,
    ) -> CartItem:
        item = CartItem(cart_id=cart_id, product_id=product_id, quantity=quantity)
        session.add(item)
        session.flush()
        return item

    def increment_item(
        self,
        session: Session,
        cart_id: uuid.UUID,
        product_id: uuid.UUID,
        quantity: int,
        ceiling,
    ) -> bool:
        """
        UPDATE cart_items SET quantity = quantity + :qty
        WHERE cart_id = :cart AND product_id = :product
          AND quantity + :qty <= :ceiling

        `ceiling` may be a literal or a SQL expression (e.g. the product's
        current inventory). Returns True if the line was updated.
        """
        stmt = (
            update(CartItem)
            .where(
                CartItem.cart_id == cart_id,
                CartItem.product_id == product_id,
                CartItem.quantity + quantity <= ceiling,
            )
            .values(quantity=CartItem.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    def set_item_quantity(
        self,
        session: Session,
        cart_id: uuid.UUID,
        product_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        stmt = (
            update(CartItem)
            .where(CartItem.cart_id == cart_id, CartItem.product_id == product_id)
            .values(quantity=quantity)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    def delete_item(
        self,
        session: Session,
        cart_id: uuid.UUID,
        product_id: uuid.UUID,
    ) -> bool:
        stmt = (
            delete(CartItem)
            .where(CartItem.cart_id == cart_id, CartItem.product_id == product_id)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1


def owner_label(owner: CartOwner) -> str:
    """Short log-friendly description of a cart owner."""
    if isinstance(owner, GuestOwner):
        return f"guest:{owner.session_key[:8]}"
    return f"user:{owner.user_id}"

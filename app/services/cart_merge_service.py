# app/services/cart_merge_service.py
import logging
import uuid

from sqlmodel import Session

from app.database import transaction
from app.models.cart import GuestOwner, UserOwner
from app.repositories.cart_repo import CartRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.cart import CartRead
from app.services.cart_service import CartService
from app.services.inventory_guard import InventoryGuard

logger = logging.getLogger(__name__)


class CartMergeService:
    """
    Folds a guest cart into a user's cart at login.

    The guest cart is claimed by deleting it first; only the request
    whose DELETE removed the row applies the lines, so repeating the
    merge (or racing two merges) never double-counts.
    """

    def __init__(
        self,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
        guard: InventoryGuard,
        cart_service: CartService,
    ):
        self.cart_repo = cart_repo
        self.product_repo = product_repo
        self.guard = guard
        self.cart_service = cart_service

    def merge(
        self,
        session: Session,
        guest_key: str,
        user_id: uuid.UUID,
    ) -> CartRead:
        """
        Merge guest cart `guest_key` into the cart of `user_id`.

        Rules:
          - quantities for the same product are summed
          - the sum is capped at the product's current inventory
          - lines for missing/inactive products are dropped
          - the guest cart is deleted in every case
          - no guest cart => no-op
        """
        guest = GuestOwner(guest_key)
        user = UserOwner(user_id)

        with transaction(session):
            guest_cart = self.cart_repo.get_for_owner(session, guest)
            if guest_cart is None:
                logger.debug(f"No guest cart for {guest_key[:8]}, nothing to merge")
            else:
                guest_lines = [
                    (it.product_id, it.quantity)
                    for it in self.cart_repo.list_items(session, guest_cart.id)
                ]
                if self.cart_repo.delete_cart(session, guest_cart.id):
                    merged = self._apply_lines(session, user, guest_lines)
                    logger.info(
                        f"Merged {merged}/{len(guest_lines)} guest lines into cart of user {user_id}"
                    )

        return self.cart_service.get_cart(session, user)

    def _apply_lines(
        self,
        session: Session,
        user: UserOwner,
        lines: list[tuple[uuid.UUID, int]],
    ) -> int:
        if not lines:
            return 0

        user_cart = self.cart_repo.get_or_create(session, user)
        products = self.product_repo.get_many(session, [pid for pid, _ in lines])
        applied = 0

        for product_id, quantity in lines:
            product = products.get(product_id)
            if product is None or not product.is_active:
                continue

            existing = self.cart_repo.get_item(session, user_cart.id, product_id)
            current = existing.quantity if existing is not None else 0
            allowed = min(quantity, product.inventory - current)
            if allowed <= 0:
                continue

            if existing is None:
                self.cart_repo.insert_item(session, user_cart.id, product_id, allowed)
                applied += 1
            elif self.cart_repo.increment_item(
                session,
                user_cart.id,
                product_id,
                allowed,
                ceiling=self.guard.stock_limit(product_id),
            ):
                applied += 1

        self.cart_repo.touch(session, user_cart)
        return applied

# app/services/inventory_guard.py
import logging
import uuid
from collections.abc import Iterable

from sqlmodel import Session

from app.core.errors import ConflictError, NotFoundError
from app.models.product import Product
from app.repositories.product_repo import ProductRepository

logger = logging.getLogger(__name__)


class InventoryGuard:
    """
    Single policy point for stock decisions.

    Two tiers:
      - soft checks (cart): compare a requested quantity with current
        stock, reserve nothing. Several carts may hold more than exists.
      - hard reservation (orders): one conditional UPDATE per product;
        must run inside the caller's transaction so a later failure
        rolls back earlier decrements.
    """

    def __init__(self, product_repo: ProductRepository):
        self.product_repo = product_repo

    # ---- soft tier ----

    def get_orderable_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if product is None:
            raise NotFoundError(
                f"Product {product_id} not found",
                code="PRODUCT_NOT_FOUND",
            )
        if not product.is_active:
            raise ConflictError(
                f"Product {product.name} is not available",
                code="PRODUCT_INACTIVE",
            )
        return product

    def check(self, product: Product, requested_qty: int) -> None:
        """Raise INSUFFICIENT_INVENTORY if requested_qty exceeds current stock."""
        if requested_qty > product.inventory:
            raise ConflictError(
                f"Only {product.inventory} of {product.name} in stock "
                f"(requested {requested_qty})",
                code="INSUFFICIENT_INVENTORY",
            )

    def stock_limit(self, product_id: uuid.UUID):
        """SQL expression for the product's stock at statement execution time."""
        return self.product_repo.inventory_of(product_id)

    # ---- hard tier ----

    def reserve(
        self,
        session: Session,
        lines: Iterable[tuple[uuid.UUID, int]],
        names: dict[uuid.UUID, str] | None = None,
    ) -> None:
        """
        Decrement stock for every (product_id, quantity) line.

        Products are locked in id order to keep concurrent checkouts from
        deadlocking. Raises INSUFFICIENT_INVENTORY on the first line that
        cannot be satisfied; the caller's transaction discards the rest.
        """
        names = names or {}
        for product_id, quantity in sorted(lines, key=lambda line: str(line[0])):
            if not self.product_repo.try_decrement(session, product_id, quantity):
                label = names.get(product_id, str(product_id))
                logger.info(f"Reservation failed for {label} x{quantity}")
                raise ConflictError(
                    f"Insufficient inventory for product {label}",
                    code="INSUFFICIENT_INVENTORY",
                )

    def release(
        self,
        session: Session,
        lines: Iterable[tuple[uuid.UUID, int]],
    ) -> None:
        """Return stock for every (product_id, quantity) line."""
        for product_id, quantity in sorted(lines, key=lambda line: str(line[0])):
            if not self.product_repo.increment(session, product_id, quantity):
                # Product row is gone; nothing to restore into.
                logger.warning(
                    f"Could not restore {quantity} units to missing product {product_id}"
                )

# app/repositories/product_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import update
from sqlmodel import Session, select

from app.models.product import Product


class ProductRepository:
    """
    Data access layer for the product ledger.

    - Pure DB operations (queries + atomic stock updates).
    - No FastAPI, no business logic.

    NOTE:
      - try_decrement / increment do not commit; they are meant to run
        inside the caller's transaction.
    """

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def get_many(
        self,
        session: Session,
        product_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, Product]:
        if not product_ids:
            return {}
        stmt = select(Product).where(Product.id.in_(product_ids))
        return {p.id: p for p in session.exec(stmt).all()}

    def list(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        only_active: bool = True,
    ) -> list[Product]:
        stmt = select(Product)
        if only_active:
            stmt = stmt.where(Product.is_active == True)  # noqa: E712
        stmt = stmt.order_by(Product.name).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def create(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def inventory_of(self, product_id: uuid.UUID):
        """
        Scalar subquery for a product's current stock, evaluated inside
        whatever statement embeds it.
        """
        return (
            select(Product.inventory)
            .where(Product.id == product_id)
            .scalar_subquery()
        )

    # ----- Atomic stock mutations -----

    def try_decrement(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        """
        UPDATE products SET inventory = inventory - :qty
        WHERE id = :id AND inventory >= :qty

        Returns True only if a row was affected.
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.inventory >= quantity)
            .values(
                inventory=Product.inventory - quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        return result.rowcount == 1

    def increment(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        """
        UPDATE products SET inventory = inventory + :qty WHERE id = :id

        Returns False if the product no longer exists.
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(
                inventory=Product.inventory + quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        return result.rowcount == 1

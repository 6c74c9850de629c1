# app/services/cart_service.py
import logging
import uuid
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.database import transaction
from app.models.cart import Cart, CartItem, CartOwner, UserOwner
from app.models.product import Product
from app.repositories.cart_repo import CartRepository, owner_label
from app.repositories.product_repo import ProductRepository
from app.schemas.cart import (
    CartIssue,
    CartLineRead,
    CartRead,
    CartValidationRead,
)
from app.services.inventory_guard import InventoryGuard

logger = logging.getLogger(__name__)


class CartService:
    """
    Business logic for cart operations.

    Responsibilities:
      - one cart per owner (guest session key or user id), created on
        first mutation
      - validate product existence and active flag
      - soft-check quantities against current stock (no reservation)
      - price lines and totals at the live product price
    """

    def __init__(
        self,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
        guard: InventoryGuard,
    ):
        self.cart_repo = cart_repo
        self.product_repo = product_repo
        self.guard = guard

    # ---- internal helpers ----

    @staticmethod
    def _require_positive(quantity: int) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(
                "Quantity must be a positive integer",
                code="INVALID_QUANTITY",
            )

    def _require_cart(self, session: Session, owner: CartOwner) -> Cart:
        cart = self.cart_repo.get_for_owner(session, owner)
        if cart is None:
            raise NotFoundError("Item not found in cart", code="ITEM_NOT_FOUND")
        return cart

    def _lines_with_products(
        self, session: Session, cart: Cart | None
    ) -> list[tuple[CartItem, Product | None]]:
        if cart is None:
            return []
        items = self.cart_repo.list_items(session, cart.id)
        products = self.product_repo.get_many(session, [it.product_id for it in items])
        return [(it, products.get(it.product_id)) for it in items]

    def _build_cart_dto(self, session: Session, owner: CartOwner) -> CartRead:
        cart = self.cart_repo.get_for_owner(session, owner)
        lines: list[CartLineRead] = []
        total = Decimal("0.00")
        count = 0

        for item, product in self._lines_with_products(session, cart):
            unit_price = product.price if product is not None else Decimal("0.00")
            line_total = unit_price * item.quantity
            total += line_total
            count += item.quantity
            lines.append(
                CartLineRead(
                    product_id=item.product_id,
                    product_name=product.name if product is not None else None,
                    quantity=item.quantity,
                    unit_price=unit_price,
                    line_total=line_total,
                    available=product.inventory if product is not None else 0,
                    is_active=bool(product is not None and product.is_active),
                )
            )

        return CartRead(
            id=cart.id if cart else None,
            user_id=owner.user_id if isinstance(owner, UserOwner) else None,
            session_id=None if isinstance(owner, UserOwner) else owner.session_key,
            items=lines,
            total=total.quantize(Decimal("0.01")),
            item_count=count,
            created_at=cart.created_at if cart else None,
            updated_at=cart.updated_at if cart else None,
        )

    # ---- public operations ----

    def get_or_create(self, session: Session, owner: CartOwner) -> Cart:
        """
        Return the owner's cart, creating an empty one if needed.
        """
        with transaction(session):
            cart = self.cart_repo.get_or_create(session, owner)
        return cart

    def get_cart(self, session: Session, owner: CartOwner) -> CartRead:
        """
        Current cart view. Reading never creates a cart.
        """
        return self._build_cart_dto(session, owner)

    def get_total(self, session: Session, owner: CartOwner) -> Decimal:
        """Sum of quantity * live product price."""
        return self._build_cart_dto(session, owner).total

    def get_item_count(self, session: Session, owner: CartOwner) -> int:
        """Sum of line quantities."""
        return self._build_cart_dto(session, owner).item_count

    def add_item(
        self,
        session: Session,
        owner: CartOwner,
        product_id: uuid.UUID,
        quantity: int,
    ) -> CartRead:
        """
        Add a product to the owner's cart.

        Rules:
          - quantity must be a positive integer
          - product must exist and be active
          - an existing line is incremented (sum), never overwritten
          - resulting quantity <= current inventory
        """
        self._require_positive(quantity)
        self.guard.get_orderable_product(session, product_id)

        try:
            self._add_item_once(session, owner, product_id, quantity)
        except IntegrityError:
            # A concurrent request created the cart or the line first;
            # the retry takes the increment path.
            logger.info(f"Retrying add_item for {owner_label(owner)} after insert race")
            self._add_item_once(session, owner, product_id, quantity)

        return self._build_cart_dto(session, owner)

    def _add_item_once(
        self,
        session: Session,
        owner: CartOwner,
        product_id: uuid.UUID,
        quantity: int,
    ) -> None:
        with transaction(session):
            cart = self.cart_repo.get_or_create(session, owner)

            incremented = self.cart_repo.increment_item(
                session,
                cart.id,
                product_id,
                quantity,
                ceiling=self.guard.stock_limit(product_id),
            )
            if not incremented:
                if self.cart_repo.get_item(session, cart.id, product_id) is not None:
                    raise ConflictError(
                        "Not enough stock to increase quantity",
                        code="INSUFFICIENT_INVENTORY",
                    )
                product = self.guard.get_orderable_product(session, product_id)
                self.guard.check(product, quantity)
                self.cart_repo.insert_item(session, cart.id, product_id, quantity)

            self.cart_repo.touch(session, cart)

    def update_quantity(
        self,
        session: Session,
        owner: CartOwner,
        product_id: uuid.UUID,
        quantity: int,
    ) -> CartRead:
        """
        Set a cart line to exactly `quantity`.

        quantity <= 0 removes the line. The stock check is against the
        new total, not an increment.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("Valid quantity is required", code="INVALID_QUANTITY")
        if quantity <= 0:
            return self.remove_item(session, owner, product_id)

        product = self.guard.get_orderable_product(session, product_id)
        self.guard.check(product, quantity)

        with transaction(session):
            cart = self._require_cart(session, owner)
            if not self.cart_repo.set_item_quantity(session, cart.id, product_id, quantity):
                raise NotFoundError("Item not found in cart", code="ITEM_NOT_FOUND")
            self.cart_repo.touch(session, cart)

        return self._build_cart_dto(session, owner)

    def remove_item(
        self,
        session: Session,
        owner: CartOwner,
        product_id: uuid.UUID,
    ) -> CartRead:
        """
        Remove a product line from the cart.

        Raises ITEM_NOT_FOUND if the line does not exist.
        """
        with transaction(session):
            cart = self._require_cart(session, owner)
            if not self.cart_repo.delete_item(session, cart.id, product_id):
                raise NotFoundError("Item not found in cart", code="ITEM_NOT_FOUND")
            self.cart_repo.touch(session, cart)

        return self._build_cart_dto(session, owner)

    def clear(self, session: Session, owner: CartOwner) -> CartRead:
        """
        Empty and delete the owner's cart. Clearing a missing cart is a no-op.
        """
        with transaction(session):
            cart = self.cart_repo.get_for_owner(session, owner)
            if cart is not None:
                self.cart_repo.delete_cart(session, cart.id)

        return self._build_cart_dto(session, owner)

    def validate(self, session: Session, owner: CartOwner) -> CartValidationRead:
        """
        Re-check every line against current product state.

        Advisory only: the cart is not modified.
        """
        cart = self.cart_repo.get_for_owner(session, owner)
        issues: list[CartIssue] = []

        for item, product in self._lines_with_products(session, cart):
            if product is None or not product.is_active:
                issues.append(
                    CartIssue(
                        type="unavailable",
                        product_id=item.product_id,
                        product_name=product.name if product is not None else None,
                        message="Product is no longer available",
                    )
                )
            elif item.quantity > product.inventory:
                issues.append(
                    CartIssue(
                        type="insufficient_inventory",
                        product_id=item.product_id,
                        product_name=product.name,
                        requested=item.quantity,
                        available=product.inventory,
                        message=f"Only {product.inventory} items available",
                    )
                )

        return CartValidationRead(
            cart=self._build_cart_dto(session, owner),
            issues=issues,
            is_valid=not issues,
        )

    def lines_for_checkout(
        self, session: Session, owner: CartOwner
    ) -> list[tuple[uuid.UUID, int]]:
        """(product_id, quantity) pairs of the owner's cart, for order creation."""
        cart = self.cart_repo.get_for_owner(session, owner)
        if cart is None:
            return []
        return [(it.product_id, it.quantity) for it in self.cart_repo.list_items(session, cart.id)]

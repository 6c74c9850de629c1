# app/services/order_service.py
import logging
import re
import uuid
from decimal import Decimal

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from app.database import transaction
from app.models.cart import UserOwner
from app.models.order import Order, OrderItem, OrderStatus, PaymentStatus
from app.models.product import Product
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.order import (
    OrderCreate,
    OrderItemRead,
    OrderRead,
    ShippingAddress,
)
from app.services.cart_service import CartService
from app.services.inventory_guard import InventoryGuard
from app.services.notification_service import OrderNotifier

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# Forward-only fulfilment ladder; cancelled sits outside it
STATUS_RANK: dict[str, int] = {
    OrderStatus.PENDING.value: 0,
    OrderStatus.CONFIRMED.value: 1,
    OrderStatus.SHIPPED.value: 2,
    OrderStatus.DELIVERED.value: 3,
}

CANCELLABLE_STATUSES = {OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value}

REQUIRED_ADDRESS_FIELDS = ("street", "city", "state", "zip_code", "country")

POSTAL_CODE_PATTERNS: dict[str, str] = {
    "US": r"^\d{5}(-\d{4})?$",
    "CA": r"^[A-Za-z]\d[A-Za-z][ -]?\d[A-Za-z]\d$",
    "GB": r"^[A-Za-z]{1,2}\d[A-Za-z\d]? ?\d[A-Za-z]{2}$",
    "DE": r"^\d{5}$",
    "FR": r"^\d{5}$",
    "AU": r"^\d{4}$",
    "JP": r"^\d{3}-?\d{4}$",
    "IN": r"^\d{6}$",
    "VN": r"^\d{6}$",
}

# Used for countries without a dedicated rule
GENERIC_POSTAL_CODE = r"^[A-Za-z0-9][A-Za-z0-9 -]{1,9}$"

COUNTRY_ALIASES: dict[str, str] = {
    "USA": "US",
    "UNITED STATES": "US",
    "UNITED STATES OF AMERICA": "US",
    "UK": "GB",
    "UNITED KINGDOM": "GB",
    "CANADA": "CA",
    "GERMANY": "DE",
    "FRANCE": "FR",
    "AUSTRALIA": "AU",
    "JAPAN": "JP",
    "INDIA": "IN",
    "VIETNAM": "VN",
    "VIET NAM": "VN",
}


def normalize_country(country: str) -> str:
    code = country.strip().upper()
    return COUNTRY_ALIASES.get(code, code)


def validate_shipping_address(address: ShippingAddress) -> None:
    """
    Ensure every required field is present and the postal code matches
    the country's format.

    Raises:
        ValidationError(INVALID_ORDER_DATA)
    """
    for field in REQUIRED_ADDRESS_FIELDS:
        value = getattr(address, field, None)
        if value is None or not str(value).strip():
            alias = ShippingAddress.model_fields[field].alias or field
            raise ValidationError(
                f"Missing required address field: {alias}",
                code="INVALID_ORDER_DATA",
            )

    country = normalize_country(address.country)
    pattern = POSTAL_CODE_PATTERNS.get(country, GENERIC_POSTAL_CODE)
    if not re.match(pattern, address.zip_code.strip()):
        raise ValidationError(
            f"Invalid postal code '{address.zip_code}' for country {country}",
            code="INVALID_ORDER_DATA",
        )


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Create an order from explicit lines or the user's cart
      - Reserve inventory for all lines atomically (all or nothing)
      - Snapshot prices into order lines
      - Clear the cart after success (best-effort)
      - Enforce status / payment-status transitions
      - Cancel with inventory restoration
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        product_repo: ProductRepository,
        guard: InventoryGuard,
        cart_service: CartService,
        notifier: OrderNotifier,
    ):
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.guard = guard
        self.cart_service = cart_service
        self.notifier = notifier

    # -------- helpers --------

    def _get_order(self, session: Session, order_id: uuid.UUID) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if order is None:
            raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
        return order

    @staticmethod
    def _ensure_can_access(order: Order, requester: User) -> None:
        if order.user_id != requester.id and not requester.is_admin:
            raise AuthError(
                "Access denied",
                code="ACCESS_DENIED",
                status_code=status.HTTP_403_FORBIDDEN,
            )

    @staticmethod
    def _aggregate_lines(
        lines: list[tuple[uuid.UUID, int]],
    ) -> dict[uuid.UUID, int]:
        """Sum quantities per product, keeping first-seen order."""
        totals: dict[uuid.UUID, int] = {}
        for product_id, quantity in lines:
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
                raise ValidationError(
                    f"Invalid quantity {quantity!r} for product {product_id}",
                    code="INVALID_ORDER_DATA",
                )
            totals[product_id] = totals.get(product_id, 0) + quantity
        return totals

    def _load_products(
        self,
        session: Session,
        product_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, Product]:
        products = self.product_repo.get_many(session, product_ids)
        for product_id in product_ids:
            product = products.get(product_id)
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
        return products

    def _build_order_dto(
        self,
        order: Order,
        items: list[OrderItem],
    ) -> OrderRead:
        return OrderRead(
            id=order.id,
            user_id=order.user_id,
            total_amount=order.total_amount,
            status=order.status,
            payment_status=order.payment_status,
            tracking_number=order.tracking_number,
            shipping_address=order.shipping_address,
            payment_method=order.payment_method,
            items=[
                OrderItemRead(
                    id=it.id,
                    product_id=it.product_id,
                    product_name=it.product_name,
                    quantity=it.quantity,
                    price_snapshot=it.price_snapshot,
                    line_total=(it.price_snapshot * it.quantity).quantize(CENTS),
                )
                for it in items
            ],
            created_at=order.created_at,
            updated_at=order.updated_at,
        )

    def _order_dto(self, session: Session, order: Order) -> OrderRead:
        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_dto(order, items)

    def _notify_status_change(self, session: Session, order: Order, previous: str) -> None:
        customer = session.get(User, order.user_id)
        if customer is not None:
            self.notifier.status_changed(customer, order, previous)

    # -------- User-facing operations --------

    def create_order(
        self,
        session: Session,
        user: User,
        payload: OrderCreate,
    ) -> OrderRead:
        """
        Place an order for `user`.

        Steps:
          1. Validate the shipping address.
          2. Take lines from the payload, or from the user's cart if omitted.
          3. Look up every product (must exist and be active) and
             snapshot its price.
          4. In one transaction: reserve stock for every line, insert the
             Order and its OrderItems. Any shortfall rolls back all of it.
          5. Clear the user's cart (best-effort).
          6. Send a confirmation email (best-effort).
        """
        # 1) Address
        validate_shipping_address(payload.shipping_address)

        # 2) Lines
        owner = UserOwner(user.id)
        if payload.items:
            raw_lines = [(line.product_id, line.quantity) for line in payload.items]
        else:
            raw_lines = self.cart_service.lines_for_checkout(session, owner)
        if not raw_lines:
            raise ValidationError(
                "Order must contain at least one item",
                code="INVALID_ORDER_DATA",
            )
        quantities = self._aggregate_lines(raw_lines)

        # 3) Products + price snapshots
        products = self._load_products(session, list(quantities))
        snapshots = {
            pid: (products[pid].price, products[pid].name) for pid in quantities
        }
        total_amount = sum(
            (price * quantities[pid] for pid, (price, _) in snapshots.items()),
            Decimal("0"),
        ).quantize(CENTS)

        # 4) Reserve + persist atomically
        with transaction(session):
            self.guard.reserve(
                session,
                quantities.items(),
                names={pid: name for pid, (_, name) in snapshots.items()},
            )
            order = self.order_repo.create_order(
                session,
                Order(
                    user_id=user.id,
                    total_amount=total_amount,
                    status=OrderStatus.PENDING.value,
                    payment_status=PaymentStatus.PENDING.value,
                    shipping_address=payload.shipping_address.model_dump(
                        by_alias=True, exclude_none=True
                    ),
                    payment_method=payload.payment_method,
                ),
            )
            self.order_repo.create_items(
                session,
                [
                    OrderItem(
                        order_id=order.id,
                        product_id=pid,
                        quantity=quantities[pid],
                        price_snapshot=price,
                        product_name=name,
                    )
                    for pid, (price, name) in snapshots.items()
                ],
            )

        session.refresh(order)
        logger.info(
            f"Order {order.id} created for user {user.id}: "
            f"{len(quantities)} lines, total {order.total_amount}"
        )

        # 5) Cart cleanup is not part of the order's unit of work
        try:
            self.cart_service.clear(session, owner)
        except SQLAlchemyError as exc:
            logger.warning(f"Failed to clear cart after order {order.id}: {exc}")

        # 6) Confirmation email
        self.notifier.order_created(user, order)

        return self._order_dto(session, order)

    def list_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        status_filter: str | None = None,
        payment_status_filter: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        """
        List orders for the given user, newest first.
        """
        if status_filter is not None:
            status_filter = self._parse_status(status_filter)
        if payment_status_filter is not None:
            payment_status_filter = self._parse_payment_status(payment_status_filter)

        orders = self.order_repo.list_for_user(
            session,
            user_id,
            status=status_filter,
            payment_status=payment_status_filter,
            skip=skip,
            limit=limit,
        )
        return [self._order_dto(session, order) for order in orders]

    def get_order(
        self,
        session: Session,
        order_id: uuid.UUID,
        requester: User,
    ) -> OrderRead:
        """
        Get a single order with items; owner or admin only.
        """
        order = self._get_order(session, order_id)
        self._ensure_can_access(order, requester)
        return self._order_dto(session, order)

    def cancel(
        self,
        session: Session,
        order_id: uuid.UUID,
        requester: User,
    ) -> OrderRead:
        """
        Cancel a pending/confirmed order and put its stock back.

        The status flip is a conditional UPDATE, so two concurrent cancels
        cannot both restore inventory.
        """
        order = self._get_order(session, order_id)
        self._ensure_can_access(order, requester)

        previous = order.status
        if previous not in CANCELLABLE_STATUSES:
            raise StateError(
                f"Cannot cancel an order that is {previous}",
                code="STATE_ERROR",
            )

        items = self.order_repo.list_items_for_order(session, order.id)
        with transaction(session):
            claimed = self.order_repo.transition_status(
                session,
                order.id,
                CANCELLABLE_STATUSES,
                OrderStatus.CANCELLED.value,
            )
            if not claimed:
                raise StateError(
                    "Order status changed concurrently; cannot cancel",
                    code="STATE_ERROR",
                )
            self.guard.release(session, [(it.product_id, it.quantity) for it in items])

        session.refresh(order)
        logger.info(f"Order {order.id} cancelled by {requester.id}; restored {len(items)} lines")

        self._notify_status_change(session, order, previous)
        return self._build_order_dto(order, items)

    # -------- Admin operations --------

    @staticmethod
    def _parse_status(value: str) -> str:
        try:
            return OrderStatus(value).value
        except ValueError:
            raise StateError(
                f"Invalid order status: {value}",
                code="INVALID_STATUS",
                status_code=status.HTTP_400_BAD_REQUEST,
            )

    @staticmethod
    def _parse_payment_status(value: str) -> str:
        try:
            return PaymentStatus(value).value
        except ValueError:
            raise StateError(
                f"Invalid payment status: {value}",
                code="INVALID_PAYMENT_STATUS",
                status_code=status.HTTP_400_BAD_REQUEST,
            )

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        new_status: str,
        admin: User,
    ) -> OrderRead:
        """
        Admin-only status update:

          pending -> confirmed -> shipped -> delivered   (forward only)
          pending | confirmed -> cancelled              (restores stock)

        Setting the current status again is a no-op.
        """
        new = self._parse_status(new_status)
        order = self._get_order(session, order_id)

        if new == OrderStatus.CANCELLED.value:
            return self.cancel(session, order_id, admin)

        current = order.status
        if current == new:
            return self._order_dto(session, order)

        if current not in STATUS_RANK or STATUS_RANK[new] < STATUS_RANK[current]:
            raise StateError(
                f"Invalid status transition: {current} -> {new}",
                code="STATE_ERROR",
            )

        with transaction(session):
            if not self.order_repo.transition_status(session, order.id, {current}, new):
                raise StateError(
                    "Order status changed concurrently",
                    code="STATE_ERROR",
                )

        session.refresh(order)
        logger.info(f"Order {order.id} status {current} -> {new}")
        self._notify_status_change(session, order, current)
        return self._order_dto(session, order)

    def update_payment_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        new_payment_status: str,
    ) -> OrderRead:
        """
        Admin-only payment status update: pending -> completed | failed.
        """
        new = self._parse_payment_status(new_payment_status)
        order = self._get_order(session, order_id)

        current = order.payment_status
        if current == new:
            return self._order_dto(session, order)

        if current != PaymentStatus.PENDING.value:
            raise StateError(
                f"Invalid payment status transition: {current} -> {new}",
                code="STATE_ERROR",
            )

        with transaction(session):
            if not self.order_repo.transition_payment_status(
                session, order.id, {current}, new
            ):
                raise StateError(
                    "Payment status changed concurrently",
                    code="STATE_ERROR",
                )

        session.refresh(order)
        logger.info(f"Order {order.id} payment {current} -> {new}")
        return self._order_dto(session, order)

    def add_tracking_number(
        self,
        session: Session,
        order_id: uuid.UUID,
        tracking_number: str,
    ) -> OrderRead:
        """
        Admin-only: attach or replace the carrier tracking number.
        """
        tracking_number = (tracking_number or "").strip()
        if not tracking_number:
            raise ValidationError(
                "Tracking number is required",
                code="MISSING_TRACKING_NUMBER",
            )

        order = self._get_order(session, order_id)
        if order.status == OrderStatus.CANCELLED.value:
            raise StateError(
                "Cannot add tracking to a cancelled order",
                code="STATE_ERROR",
            )

        with transaction(session):
            order.tracking_number = tracking_number
            self.order_repo.update_order(session, order)

        session.refresh(order)
        return self._order_dto(session, order)

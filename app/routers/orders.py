# app/routers/orders.py
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from app.core.auth import require_admin, require_auth
from app.database import get_session
from app.models.user import User
from app.repositories.cart_repo import CartRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.common import ApiResponse
from app.schemas.order import (
    OrderCreate,
    OrderRead,
    OrderStatusUpdate,
    PaymentStatusUpdate,
    TrackingNumberUpdate,
)
from app.services.cart_service import CartService
from app.services.inventory_guard import InventoryGuard
from app.services.notification_service import OrderNotifier
from app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
cart_repo = CartRepository()
product_repo = ProductRepository()
guard = InventoryGuard(product_repo)
cart_service = CartService(cart_repo, product_repo, guard)
service = OrderService(order_repo, product_repo, guard, cart_service, OrderNotifier())


# -------- User-facing endpoints --------


@router.post(
    "",
    response_model=ApiResponse[OrderRead],
    status_code=status.HTTP_201_CREATED,
)
def create_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Place an order.

    If `items` is omitted the current cart is checked out. Stock for all
    lines is reserved atomically; the cart is cleared afterwards.
    """
    order = service.create_order(session, current_user, payload)
    return ApiResponse(data=order, message="Order created successfully")


@router.get("", response_model=ApiResponse[list[OrderRead]])
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    status_filter: str | None = Query(default=None, alias="status"),
    payment_status: str | None = Query(default=None, alias="paymentStatus"),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
):
    """
    List the authenticated user's orders, newest first.
    """
    orders = service.list_user_orders(
        session,
        current_user.id,
        status_filter=status_filter,
        payment_status_filter=payment_status,
        skip=skip,
        limit=limit,
    )
    return ApiResponse(data=orders)


@router.get("/{order_id}", response_model=ApiResponse[OrderRead])
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Get a single order (owner or admin).
    """
    return ApiResponse(data=service.get_order(session, order_id, current_user))


@router.put("/{order_id}/cancel", response_model=ApiResponse[OrderRead])
def cancel_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Cancel a pending or confirmed order (owner or admin); stock is restored.
    """
    order = service.cancel(session, order_id, current_user)
    return ApiResponse(data=order, message="Order cancelled successfully")


# -------- Admin endpoints --------


@router.put("/{order_id}/status", response_model=ApiResponse[OrderRead])
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    """
    Update order status (admin only).

      pending -> confirmed -> shipped -> delivered

      pending | confirmed -> cancelled (restores stock)
    """
    order = service.update_status(session, order_id, payload.status, admin)
    return ApiResponse(data=order, message="Order status updated successfully")


@router.put(
    "/{order_id}/payment-status",
    response_model=ApiResponse[OrderRead],
    dependencies=[Depends(require_admin)],
)
def update_payment_status(
    order_id: uuid.UUID,
    payload: PaymentStatusUpdate,
    session: Session = Depends(get_session),
):
    """
    Update payment status (admin only): pending -> completed | failed.
    """
    order = service.update_payment_status(session, order_id, payload.payment_status)
    return ApiResponse(data=order, message="Payment status updated successfully")


@router.put(
    "/{order_id}/tracking",
    response_model=ApiResponse[OrderRead],
    dependencies=[Depends(require_admin)],
)
def add_tracking_number(
    order_id: uuid.UUID,
    payload: TrackingNumberUpdate,
    session: Session = Depends(get_session),
):
    """
    Attach a tracking number (admin only).
    """
    order = service.add_tracking_number(session, order_id, payload.tracking_number)
    return ApiResponse(data=order, message="Tracking number added successfully")

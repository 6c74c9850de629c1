# app/routers/cart.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import get_cart_owner, require_auth
from app.database import get_session
from app.models.cart import CartOwner
from app.models.user import User
from app.repositories.cart_repo import CartRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartMergeRequest,
    CartRead,
    CartValidationRead,
)
from app.schemas.common import ApiResponse
from app.services.cart_merge_service import CartMergeService
from app.services.cart_service import CartService
from app.services.inventory_guard import InventoryGuard

router = APIRouter(prefix="/cart", tags=["Cart"])

cart_repo = CartRepository()
product_repo = ProductRepository()
guard = InventoryGuard(product_repo)
service = CartService(cart_repo, product_repo, guard)
merge_service = CartMergeService(cart_repo, product_repo, guard, service)


@router.get("", response_model=ApiResponse[CartRead])
def get_cart(
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
):
    """
    Get the caller's cart (user via bearer token, guest via session id).
    """
    return ApiResponse(data=service.get_cart(session, owner))


@router.post("/items", response_model=ApiResponse[CartRead])
def add_cart_item(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
):
    """
    Add a product to the cart; an existing line is incremented.
    """
    cart = service.add_item(session, owner, payload.product_id, payload.quantity)
    return ApiResponse(data=cart, message="Item added to cart successfully")


@router.put("/items/{product_id}", response_model=ApiResponse[CartRead])
def update_cart_item(
    product_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
):
    """
    Set the quantity of a cart line. quantity <= 0 removes it.
    """
    cart = service.update_quantity(session, owner, product_id, payload.quantity)
    return ApiResponse(data=cart, message="Cart updated successfully")


@router.delete("/items/{product_id}", response_model=ApiResponse[CartRead])
def remove_cart_item(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
):
    """
    Remove a product from the cart.
    """
    cart = service.remove_item(session, owner, product_id)
    return ApiResponse(data=cart, message="Item removed from cart successfully")


@router.delete("", response_model=ApiResponse[CartRead])
def clear_cart(
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
):
    """
    Clear the entire cart.
    """
    return ApiResponse(data=service.clear(session, owner), message="Cart cleared successfully")


@router.get("/validate", response_model=ApiResponse[CartValidationRead])
def validate_cart(
    session: Session = Depends(get_session),
    owner: CartOwner = Depends(get_cart_owner),
):
    """
    Re-check every line against current stock and availability.
    Does not modify the cart.
    """
    return ApiResponse(data=service.validate(session, owner))


@router.post("/merge", response_model=ApiResponse[CartRead])
def merge_guest_cart(
    payload: CartMergeRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Fold a guest cart into the authenticated user's cart (call after login).

    Calling it again with the same guest session id is a no-op.
    """
    cart = merge_service.merge(session, payload.guest_session_id, current_user.id)
    return ApiResponse(data=cart, message="Cart merged successfully")

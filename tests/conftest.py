"""Pytest fixtures for storefront tests."""

import os
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Settings are read at import time; point them at an in-memory database.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["JWT_ALG"] = "HS256"
os.environ.pop("SMTP_HOST", None)

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import Session, SQLModel

from app.database import engine
from app.main import app
from app.models.product import Product
from app.models.user import User
from app.repositories.cart_repo import CartRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.services.cart_merge_service import CartMergeService
from app.services.cart_service import CartService
from app.services.inventory_guard import InventoryGuard
from app.services.notification_service import OrderNotifier
from app.services.order_service import OrderService


@pytest.fixture(autouse=True)
def db():
    """Fresh schema for every test."""
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_product(session):
    repo = ProductRepository()

    def _make(name="Widget", price="10.00", inventory=10, is_active=True) -> Product:
        return repo.create(
            session,
            Product(
                name=name,
                price=Decimal(price),
                inventory=inventory,
                is_active=is_active,
            ),
        )

    return _make


@pytest.fixture
def make_user(session):
    def _make(role="user", email=None) -> User:
        user_id = uuid.uuid4()
        user = User(
            id=user_id,
            email=email or f"{user_id.hex[:8]}@example.com",
            name="Test User",
            role=role,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        token = jwt.encode(
            {
                "sub": str(user.id),
                "email": user.email,
                "exp": datetime.now(timezone.utc) + timedelta(hours=1),
            },
            "test-secret",
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def product_repo():
    return ProductRepository()


@pytest.fixture
def guard(product_repo):
    return InventoryGuard(product_repo)


@pytest.fixture
def cart_service(product_repo, guard):
    return CartService(CartRepository(), product_repo, guard)


@pytest.fixture
def merge_service(product_repo, guard, cart_service):
    return CartMergeService(CartRepository(), product_repo, guard, cart_service)


@pytest.fixture
def order_service(product_repo, guard, cart_service):
    return OrderService(OrderRepository(), product_repo, guard, cart_service, OrderNotifier())


@pytest.fixture
def stock_of(session):
    """Current inventory straight from the database."""

    def _stock(product: Product) -> int:
        session.expire_all()
        return session.get(Product, product.id).inventory

    return _stock

"""Concurrent cart adds and stock reservations against a file-backed database."""

import threading
from decimal import Decimal

import pytest
from sqlmodel import Session, SQLModel

from app.core.errors import ConflictError
from app.database import build_engine, transaction
from app.models.cart import GuestOwner
from app.models.product import Product
from app.repositories.cart_repo import CartRepository
from app.repositories.product_repo import ProductRepository
from app.services.cart_service import CartService
from app.services.inventory_guard import InventoryGuard

WORKERS = 8


@pytest.fixture
def file_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'store.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def seeded_product(file_engine):
    def _seed(inventory: int) -> Product:
        with Session(file_engine) as s:
            return ProductRepository().create(
                s, Product(name="Hot item", price=Decimal("10.00"), inventory=inventory)
            )

    return _seed


def run_together(target, count=WORKERS):
    """Start `count` threads at once; return the exceptions they raised."""
    barrier = threading.Barrier(count)
    errors = []
    lock = threading.Lock()

    def worker(i):
        barrier.wait()
        try:
            target(i)
        except Exception as exc:  # collected for the assertion
            with lock:
                errors.append(exc)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return errors


class TestConcurrentCartAdds:
    def test_parallel_adds_sum_exactly(self, file_engine, seeded_product):
        product = seeded_product(inventory=100)
        product_repo = ProductRepository()
        service = CartService(CartRepository(), product_repo, InventoryGuard(product_repo))
        owner = GuestOwner("shared-guest")

        def add_one(_):
            with Session(file_engine) as s:
                service.add_item(s, owner, product.id, 1)

        errors = run_together(add_one)

        assert errors == []
        with Session(file_engine) as s:
            cart = service.get_cart(s, owner)
        assert [(line.product_id, line.quantity) for line in cart.items] == [
            (product.id, WORKERS)
        ]

    def test_parallel_adds_never_exceed_stock(self, file_engine, seeded_product):
        product = seeded_product(inventory=3)
        product_repo = ProductRepository()
        service = CartService(CartRepository(), product_repo, InventoryGuard(product_repo))
        owner = GuestOwner("shared-guest")

        def add_one(_):
            with Session(file_engine) as s:
                service.add_item(s, owner, product.id, 1)

        errors = run_together(add_one)

        assert len(errors) == WORKERS - 3
        assert all(
            isinstance(e, ConflictError) and e.code == "INSUFFICIENT_INVENTORY" for e in errors
        )
        with Session(file_engine) as s:
            assert service.get_item_count(s, owner) == 3


class TestConcurrentReservations:
    def test_last_unit_goes_to_exactly_one_checkout(self, file_engine, seeded_product):
        product = seeded_product(inventory=1)
        guard = InventoryGuard(ProductRepository())

        def reserve_one(_):
            with Session(file_engine) as s:
                with transaction(s):
                    guard.reserve(s, [(product.id, 1)])

        errors = run_together(reserve_one)

        assert len(errors) == WORKERS - 1
        assert all(
            isinstance(e, ConflictError) and e.code == "INSUFFICIENT_INVENTORY" for e in errors
        )
        with Session(file_engine) as s:
            assert s.get(Product, product.id).inventory == 0

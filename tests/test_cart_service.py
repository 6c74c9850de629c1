"""Tests for CartService."""

import uuid
from decimal import Decimal

import pytest
from sqlmodel import select

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.cart import Cart, GuestOwner, UserOwner


@pytest.fixture
def guest():
    return GuestOwner("guest-session-1")


class TestAddItem:
    def test_creates_cart_lazily(self, session, cart_service, make_product, guest):
        product = make_product()
        assert session.exec(select(Cart)).all() == []

        cart = cart_service.add_item(session, guest, product.id, 2)

        assert cart.id is not None
        assert cart.session_id == "guest-session-1"
        assert [(line.product_id, line.quantity) for line in cart.items] == [(product.id, 2)]

    def test_same_product_sums_quantities(self, session, cart_service, make_product, guest):
        product = make_product(inventory=10)

        cart_service.add_item(session, guest, product.id, 2)
        cart = cart_service.add_item(session, guest, product.id, 3)

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 5
        assert cart.item_count == 5

    def test_rejects_non_positive_quantity(self, session, cart_service, make_product, guest):
        product = make_product()
        for bad in (0, -1):
            with pytest.raises(ValidationError) as exc:
                cart_service.add_item(session, guest, product.id, bad)
            assert exc.value.code == "INVALID_QUANTITY"

    def test_rejects_non_integer_quantity(self, session, cart_service, make_product, guest):
        product = make_product()
        for bad in (True, 2.0, "3"):
            with pytest.raises(ValidationError) as exc:
                cart_service.add_item(session, guest, product.id, bad)
            assert exc.value.code == "INVALID_QUANTITY"
        assert cart_service.get_cart(session, guest).items == []

    def test_cart_insert_race_is_retried_as_increment(
        self, session, cart_service, make_product, guest, monkeypatch
    ):
        product = make_product(inventory=10)
        cart_service.add_item(session, guest, product.id, 2)

        # The first lookup misses the existing cart, as if another request
        # had created it after we looked.
        repo = cart_service.cart_repo
        real_lookup = repo.get_for_owner
        calls = []

        def stale_lookup(s, owner):
            calls.append(owner)
            if len(calls) == 1:
                return None
            return real_lookup(s, owner)

        monkeypatch.setattr(repo, "get_for_owner", stale_lookup)

        cart = cart_service.add_item(session, guest, product.id, 3)

        assert [(line.product_id, line.quantity) for line in cart.items] == [(product.id, 5)]
        assert len(session.exec(select(Cart)).all()) == 1

    def test_unknown_product(self, session, cart_service, guest):
        with pytest.raises(NotFoundError) as exc:
            cart_service.add_item(session, guest, uuid.uuid4(), 1)
        assert exc.value.code == "PRODUCT_NOT_FOUND"

    def test_inactive_product(self, session, cart_service, make_product, guest):
        product = make_product(is_active=False)
        with pytest.raises(ConflictError) as exc:
            cart_service.add_item(session, guest, product.id, 1)
        assert exc.value.code == "PRODUCT_INACTIVE"

    def test_new_line_over_inventory(self, session, cart_service, make_product, guest):
        product = make_product(inventory=3)
        with pytest.raises(ConflictError) as exc:
            cart_service.add_item(session, guest, product.id, 4)
        assert exc.value.code == "INSUFFICIENT_INVENTORY"

    def test_sum_over_inventory_keeps_previous_quantity(
        self, session, cart_service, make_product, guest
    ):
        product = make_product(inventory=5)
        cart_service.add_item(session, guest, product.id, 3)

        with pytest.raises(ConflictError) as exc:
            cart_service.add_item(session, guest, product.id, 3)
        assert exc.value.code == "INSUFFICIENT_INVENTORY"

        cart = cart_service.get_cart(session, guest)
        assert cart.items[0].quantity == 3

    def test_adding_does_not_reserve_stock(
        self, session, cart_service, make_product, stock_of
    ):
        product = make_product(inventory=2)

        cart_service.add_item(session, GuestOwner("a"), product.id, 2)
        cart_service.add_item(session, GuestOwner("b"), product.id, 2)

        assert stock_of(product) == 2


class TestUpdateQuantity:
    def test_sets_exact_quantity(self, session, cart_service, make_product, guest):
        product = make_product(inventory=10)
        cart_service.add_item(session, guest, product.id, 2)

        cart = cart_service.update_quantity(session, guest, product.id, 7)

        assert cart.items[0].quantity == 7

    def test_checks_new_total_not_increment(self, session, cart_service, make_product, guest):
        product = make_product(inventory=5)
        cart_service.add_item(session, guest, product.id, 4)

        cart = cart_service.update_quantity(session, guest, product.id, 5)
        assert cart.items[0].quantity == 5

        with pytest.raises(ConflictError) as exc:
            cart_service.update_quantity(session, guest, product.id, 6)
        assert exc.value.code == "INSUFFICIENT_INVENTORY"

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_removes_line(
        self, session, cart_service, make_product, guest, quantity
    ):
        product = make_product()
        cart_service.add_item(session, guest, product.id, 2)

        cart = cart_service.update_quantity(session, guest, product.id, quantity)

        assert cart.items == []

    def test_missing_line(self, session, cart_service, make_product, guest):
        product = make_product()
        with pytest.raises(NotFoundError) as exc:
            cart_service.update_quantity(session, guest, product.id, 1)
        assert exc.value.code == "ITEM_NOT_FOUND"


class TestRemoveAndClear:
    def test_remove_item(self, session, cart_service, make_product, guest):
        a = make_product(name="A")
        b = make_product(name="B")
        cart_service.add_item(session, guest, a.id, 1)
        cart_service.add_item(session, guest, b.id, 1)

        cart = cart_service.remove_item(session, guest, a.id)

        assert [line.product_id for line in cart.items] == [b.id]

    def test_remove_missing_line(self, session, cart_service, make_product, guest):
        product = make_product()
        cart_service.add_item(session, guest, product.id, 1)
        cart_service.remove_item(session, guest, product.id)

        with pytest.raises(NotFoundError) as exc:
            cart_service.remove_item(session, guest, product.id)
        assert exc.value.code == "ITEM_NOT_FOUND"

    def test_clear_is_idempotent(self, session, cart_service, make_product, guest):
        product = make_product()
        cart_service.add_item(session, guest, product.id, 2)

        first = cart_service.clear(session, guest)
        second = cart_service.clear(session, guest)

        assert first.items == [] and second.items == []
        assert first.total == Decimal("0.00")
        assert session.exec(select(Cart)).all() == []


class TestTotalsAndValidation:
    def test_total_uses_live_prices(self, session, cart_service, make_product, guest):
        a = make_product(name="A", price="10.00", inventory=10)
        b = make_product(name="B", price="5.00", inventory=3)
        cart_service.add_item(session, guest, a.id, 2)
        cart_service.add_item(session, guest, b.id, 1)

        assert cart_service.get_total(session, guest) == Decimal("25.00")
        assert cart_service.get_item_count(session, guest) == 3

        a.price = Decimal("12.50")
        session.add(a)
        session.commit()

        assert cart_service.get_total(session, guest) == Decimal("30.00")

    def test_reading_does_not_create_cart(self, session, cart_service):
        cart = cart_service.get_cart(session, UserOwner(uuid.uuid4()))

        assert cart.id is None
        assert cart.items == []
        assert session.exec(select(Cart)).all() == []

    def test_get_or_create_returns_same_cart(self, session, cart_service, guest):
        first = cart_service.get_or_create(session, guest)
        second = cart_service.get_or_create(session, guest)
        assert first.id == second.id

    def test_validate_reports_issues_without_mutating(
        self, session, cart_service, make_product, guest
    ):
        low = make_product(name="Low", inventory=5)
        gone = make_product(name="Gone", inventory=5)
        fine = make_product(name="Fine", inventory=5)
        cart_service.add_item(session, guest, low.id, 4)
        cart_service.add_item(session, guest, gone.id, 1)
        cart_service.add_item(session, guest, fine.id, 1)

        low.inventory = 2
        gone.is_active = False
        session.add_all([low, gone])
        session.commit()

        result = cart_service.validate(session, guest)

        assert result.is_valid is False
        by_product = {issue.product_id: issue for issue in result.issues}
        assert by_product[low.id].type == "insufficient_inventory"
        assert by_product[low.id].requested == 4
        assert by_product[low.id].available == 2
        assert by_product[gone.id].type == "unavailable"
        assert fine.id not in by_product

        quantities = {line.product_id: line.quantity for line in result.cart.items}
        assert quantities == {low.id: 4, gone.id: 1, fine.id: 1}

    def test_validate_clean_cart(self, session, cart_service, make_product, guest):
        product = make_product()
        cart_service.add_item(session, guest, product.id, 1)

        result = cart_service.validate(session, guest)

        assert result.is_valid is True
        assert result.issues == []

    def test_owners_are_isolated(self, session, cart_service, make_product, make_user):
        product = make_product()
        user = make_user()
        cart_service.add_item(session, GuestOwner("g"), product.id, 1)
        cart_service.add_item(session, UserOwner(user.id), product.id, 3)

        assert cart_service.get_item_count(session, GuestOwner("g")) == 1
        assert cart_service.get_item_count(session, UserOwner(user.id)) == 3

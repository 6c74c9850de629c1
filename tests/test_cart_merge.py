"""Tests for folding a guest cart into a user cart."""

from sqlmodel import select

from app.models.cart import Cart, GuestOwner, UserOwner


def quantities(cart):
    return {line.product_id: line.quantity for line in cart.items}


class TestMerge:
    def test_moves_lines_and_deletes_guest_cart(
        self, session, cart_service, merge_service, make_product, make_user
    ):
        user = make_user()
        a = make_product(name="A")
        b = make_product(name="B")
        cart_service.add_item(session, GuestOwner("g1"), a.id, 2)
        cart_service.add_item(session, GuestOwner("g1"), b.id, 1)

        merged = merge_service.merge(session, "g1", user.id)

        assert quantities(merged) == {a.id: 2, b.id: 1}
        assert merged.user_id == user.id
        assert cart_service.get_cart(session, GuestOwner("g1")).id is None

    def test_sums_with_existing_user_lines(
        self, session, cart_service, merge_service, make_product, make_user
    ):
        user = make_user()
        a = make_product(name="A", inventory=10)
        cart_service.add_item(session, UserOwner(user.id), a.id, 3)
        cart_service.add_item(session, GuestOwner("g1"), a.id, 4)

        merged = merge_service.merge(session, "g1", user.id)

        assert quantities(merged) == {a.id: 7}

    def test_caps_at_inventory(
        self, session, cart_service, merge_service, make_product, make_user
    ):
        user = make_user()
        a = make_product(name="A", inventory=5)
        cart_service.add_item(session, UserOwner(user.id), a.id, 3)
        cart_service.add_item(session, GuestOwner("g1"), a.id, 4)

        merged = merge_service.merge(session, "g1", user.id)

        assert quantities(merged) == {a.id: 5}

    def test_drops_unavailable_products(
        self, session, cart_service, merge_service, make_product, make_user
    ):
        user = make_user()
        keep = make_product(name="Keep")
        drop = make_product(name="Drop")
        cart_service.add_item(session, GuestOwner("g1"), keep.id, 1)
        cart_service.add_item(session, GuestOwner("g1"), drop.id, 1)
        drop.is_active = False
        session.add(drop)
        session.commit()

        merged = merge_service.merge(session, "g1", user.id)

        assert quantities(merged) == {keep.id: 1}
        assert cart_service.get_cart(session, GuestOwner("g1")).id is None

    def test_second_merge_is_noop(
        self, session, cart_service, merge_service, make_product, make_user
    ):
        user = make_user()
        a = make_product(name="A", inventory=10)
        cart_service.add_item(session, GuestOwner("g1"), a.id, 2)

        first = merge_service.merge(session, "g1", user.id)
        second = merge_service.merge(session, "g1", user.id)

        assert quantities(first) == {a.id: 2}
        assert quantities(second) == {a.id: 2}

    def test_missing_guest_cart_is_noop(
        self, session, merge_service, make_user
    ):
        user = make_user()

        merged = merge_service.merge(session, "never-used", user.id)

        assert merged.items == []
        assert session.exec(select(Cart)).all() == []

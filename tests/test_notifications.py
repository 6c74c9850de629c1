"""Tests for best-effort order emails."""

import smtplib
from decimal import Decimal

import pytest

from app.core import email_client
from app.models.order import Order
from app.services.notification_service import OrderNotifier


@pytest.fixture
def order(make_user):
    user = make_user(email="buyer@example.com")
    return user, Order(
        user_id=user.id,
        total_amount=Decimal("25.00"),
        shipping_address={"city": "Springfield"},
    )


class TestOrderNotifier:
    def test_skips_when_smtp_not_configured(self, monkeypatch, order):
        user, o = order
        monkeypatch.setattr(email_client, "is_configured", lambda: False)

        def fail(**kwargs):
            raise AssertionError("send_email should not be called")

        monkeypatch.setattr(email_client, "send_email", fail)

        assert OrderNotifier().order_created(user, o) is False

    def test_sends_order_created(self, monkeypatch, order):
        user, o = order
        sent = []
        monkeypatch.setattr(email_client, "is_configured", lambda: True)
        monkeypatch.setattr(email_client, "send_email", lambda **kwargs: sent.append(kwargs))

        assert OrderNotifier().order_created(user, o) is True
        assert sent[0]["to_email"] == "buyer@example.com"
        assert "25.00" in sent[0]["text_body"]

    def test_status_change_mentions_tracking(self, monkeypatch, order):
        user, o = order
        o.status = "shipped"
        o.tracking_number = "1Z999"
        sent = []
        monkeypatch.setattr(email_client, "is_configured", lambda: True)
        monkeypatch.setattr(email_client, "send_email", lambda **kwargs: sent.append(kwargs))

        OrderNotifier().status_changed(user, o, "confirmed")

        assert "confirmed to shipped" in sent[0]["text_body"]
        assert "1Z999" in sent[0]["text_body"]

    def test_smtp_failure_is_swallowed(self, monkeypatch, order):
        user, o = order
        monkeypatch.setattr(email_client, "is_configured", lambda: True)

        def boom(**kwargs):
            raise smtplib.SMTPException("relay down")

        monkeypatch.setattr(email_client, "send_email", boom)

        assert OrderNotifier().order_created(user, o) is False

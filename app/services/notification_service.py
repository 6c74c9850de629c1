# app/services/notification_service.py
import logging
import smtplib

from app.core import email_client
from app.models.order import Order
from app.models.user import User

logger = logging.getLogger(__name__)


class OrderNotifier:
    """
    Customer emails about orders.

    Delivery is best-effort: an order is never failed or rolled back
    because an email could not be sent.
    """

    def _send(self, to_email: str, subject: str, text_body: str) -> bool:
        if not email_client.is_configured():
            logger.debug(f"SMTP not configured, skipping '{subject}' to {to_email}")
            return False
        try:
            email_client.send_email(to_email=to_email, subject=subject, text_body=text_body)
        except (smtplib.SMTPException, OSError, RuntimeError) as exc:
            logger.warning(f"Failed to send '{subject}' to {to_email}: {exc}")
            return False
        return True

    def order_created(self, user: User, order: Order) -> bool:
        return self._send(
            user.email,
            f"Order {str(order.id)[:8]} received",
            (
                f"Hi {user.name},\n\n"
                f"We received your order {order.id}.\n"
                f"Total: {order.total_amount}\n"
                f"Status: {order.status}\n"
            ),
        )

    def status_changed(self, user: User, order: Order, previous_status: str) -> bool:
        body = (
            f"Hi {user.name},\n\n"
            f"Your order {order.id} moved from {previous_status} to {order.status}.\n"
        )
        if order.tracking_number:
            body += f"Tracking number: {order.tracking_number}\n"
        return self._send(user.email, f"Order {str(order.id)[:8]} is {order.status}", body)

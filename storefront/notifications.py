"""
Outbound customer notifications.

Delivery is best-effort: callers log failures and carry on.
"""
import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from typing import Optional, Protocol

from storefront.config import Settings
from storefront.models import Order

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    def order_confirmed(self, order: Order) -> None:
        ...

    def payment_failed(self, order: Order, reason: Optional[str] = None) -> None:
        ...


class LoggingNotificationDispatcher:
    """Used when no mail server is configured."""

    def order_confirmed(self, order: Order) -> None:
        logger.info(f"Order {order.id} confirmed (email disabled)")

    def payment_failed(self, order: Order, reason: Optional[str] = None) -> None:
        logger.info(f"Order {order.id} payment failed: {reason or 'no reason given'} (email disabled)")


class EmailNotificationDispatcher:
    def __init__(self, settings: Settings):
        self.host = settings.email_host
        self.port = settings.email_port
        self.username = settings.email_user
        self.password = settings.email_password
        self.sender = settings.email_from or settings.email_user

    def order_confirmed(self, order: Order) -> None:
        lines = [
            f"- {item.vinyl.name} (${item.price_at_purchase}) x{item.quantity}"
            for item in order.items
        ]
        body = "\n".join([
            "Thank you for your order!",
            "",
            "Your order has been confirmed and will be processed shortly.",
            "",
            f"Order ID: {order.id}",
            f"Total Amount: ${order.total_amount}",
            f"Status: {order.status.value}",
            "",
            "Items Purchased:",
            *lines,
            "",
            "If you have any questions about your order, please contact our support team.",
            f"(c) {datetime.now().year} Vinyl Store",
        ])
        self._send(order, f"Order Confirmation - #{order.id[:8]}", body)

    def payment_failed(self, order: Order, reason: Optional[str] = None) -> None:
        body = [
            "Unfortunately, your payment could not be processed.",
            "",
            f"Order ID: {order.id}",
        ]
        if reason:
            body.append(f"Reason: {reason}")
        body += [
            "",
            "Please try again or contact your payment provider for more information.",
        ]
        self._send(order, "Payment Failed - Action Required", "\n".join(body))

    def _send(self, order: Order, subject: str, body: str) -> None:
        recipient = order.user.email if order.user else None
        if not recipient:
            logger.warning(f"No email address for the owner of order {order.id}, skipping '{subject}'")
            return

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = recipient
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
            smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)

        logger.info(f"Sent '{subject}' to {recipient}")


def build_notifier(settings: Settings) -> NotificationDispatcher:
    if settings.email_host:
        return EmailNotificationDispatcher(settings)
    return LoggingNotificationDispatcher()

"""
Notification Service
In-app notifications and email notifications

Environment Variables:
- EMAIL_BACKEND, EMAIL_HOST, EMAIL_PORT, EMAIL_HOST_USER, EMAIL_HOST_PASSWORD
- USE_MOCK_NOTIFICATIONS (set to 'True' to log emails instead of sending)
"""

import os
import logging
from smtplib import SMTPException
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils.html import escape

from core.utils.email_service import send_artisashop_email
from ..models import Notification

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Custom exception for notification errors"""
    pass


# ==========================================
# IN-APP NOTIFICATIONS
# ==========================================

def create_notification(
    user,
    notification_type: str,
    title: str,
    message: str,
    related_id: Optional[int] = None
) -> Notification:
    """
    Create an in-app notification

    Raises:
        NotificationError: unknown notification type or missing user
    """
    valid_types = {choice[0] for choice in Notification.TYPE_CHOICES}
    if notification_type not in valid_types:
        raise NotificationError(f'Unknown notification type: {notification_type}')
    if user is None:
        raise NotificationError('Notification recipient is required')

    return Notification.objects.create(
        user=user,
        notification_type=notification_type,
        title=title[:200],
        message=message,
        related_id=related_id,
    )


def notify_admins_new_order(order) -> int:
    """Notify every active admin that an order was placed. Returns the count."""
    User = get_user_model()
    admins = User.objects.filter(role='admin', is_active=True)

    count = 0
    for admin in admins:
        create_notification(
            admin,
            'new_order',
            'New order',
            f'A new order #{order.order_number} for {order.total:.2f}€ has been placed.',
            order.pk,
        )
        count += 1

    if count:
        logger.info(f'Notified {count} admin(s) of order {order.order_number}')
    return count


# ==========================================
# EMAIL
# ==========================================

class EmailService:
    """
    Email notifications through Django's email backend
    """

    def __init__(self):
        self.use_mock = os.getenv('USE_MOCK_NOTIFICATIONS', 'True').lower() == 'true'

    def send_email(self, to_email: str, subject: str, message: str, html_message: Optional[str] = None) -> bool:
        """
        Send an email with a plain text body and an HTML alternative

        Returns:
            True if sent successfully, False otherwise
        """
        if self.use_mock:
            return self._mock_send_email(to_email, subject, message)

        try:
            send_artisashop_email(subject, message, [to_email], html_message=html_message)
        except (SMTPException, OSError, ValueError, RuntimeError) as e:
            logger.error(f'Email send error to {to_email}: {str(e)}')
            return False

        logger.info(f'Email sent to {to_email}: {subject}')
        return True

    def send_order_status_update(self, order) -> bool:
        """
        Email the client when their order status changes
        """
        status_messages = {
            'paid': 'Your payment has been confirmed. Your order is being prepared.',
            'preparing': 'Your order is being prepared.',
            'shipped': (
                f'Your order has been shipped. Tracking: {order.tracking_number}'
                if order.tracking_number else 'Your order has been shipped.'
            ),
            'delivered': "Your order has been delivered. Don't forget to leave a review!",
            'cancelled': 'Your order has been cancelled.',
        }

        message = status_messages.get(order.status, f'Your order status: {order.get_status_display()}')

        return self.send_email(
            to_email=order.user.email,
            subject=f'Order Update - #{order.order_number}',
            message=f"""
Hello {order.user.first_name},

{message}

Order: #{order.order_number}
Total: {order.total:.2f}€

Track your orders: {settings.SITE_URL}/orders

Thank you for shopping on Artisashop!

Best regards,
Artisashop Team
            """,
            html_message=self._order_status_html(order, message),
        )

    def _order_status_html(self, order, message: str) -> str:
        return (
            f'<p>Hello {escape(order.user.first_name)},</p>'
            f'<p>{escape(message)}</p>'
            '<table style="border-collapse: collapse;">'
            f'<tr><td style="padding: 4px 12px 4px 0;">Order</td><td><strong>#{escape(order.order_number)}</strong></td></tr>'
            f'<tr><td style="padding: 4px 12px 4px 0;">Status</td><td>{escape(order.get_status_display())}</td></tr>'
            f'<tr><td style="padding: 4px 12px 4px 0;">Total</td><td>{order.total:.2f}€</td></tr>'
            '</table>'
            f'<p><a href="{escape(settings.SITE_URL)}/orders">Track your orders</a></p>'
        )

    def _mock_send_email(self, to_email: str, subject: str, message: str) -> bool:
        """Mock email sending for testing"""
        logger.info(f'[MOCK EMAIL] To: {to_email} | Subject: {subject}')
        logger.info(f'[MOCK EMAIL] Message: {message.strip()[:100]}...')
        return True


# Singleton instance
email_service = EmailService()

"""
Order lifecycle receivers
Turn order events into system messages and notifications.
Each step runs in its own savepoint so one failure never blocks the others.
"""

import logging

from django.db import transaction
from django.dispatch import receiver

from apps.shop.signals import order_status_changed, order_placed
from .services.messages import send_order_message_to_artisans, send_order_status_message_to_client
from .services.notifications import notify_admins_new_order, email_service

logger = logging.getLogger(__name__)


@receiver(order_status_changed)
def message_artisans_on_status_change(sender, order, old_status, new_status, was_paid, **kwargs):
    """Artisans hear about newly paid orders and orders entering preparation."""
    if new_status == 'paid' and not was_paid:
        with transaction.atomic():
            send_order_message_to_artisans(order, 'new_order')

    if new_status == 'preparing':
        with transaction.atomic():
            send_order_message_to_artisans(order, 'preparing')


@receiver(order_status_changed)
def message_client_on_status_change(sender, order, old_status, new_status, **kwargs):
    with transaction.atomic():
        send_order_status_message_to_client(order, new_status)

    email_service.send_order_status_update(order)


@receiver(order_placed)
def notify_admins_on_order_placed(sender, order, **kwargs):
    with transaction.atomic():
        notify_admins_new_order(order)

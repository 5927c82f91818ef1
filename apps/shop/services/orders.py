"""
Order lifecycle service
Creates orders, validates status transitions and announces status changes
"""

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.db.models import F

from core.utils.api import to_text
from core.utils.validators import is_valid_phone
from ..models import Order, OrderItem, Product
from ..signals import order_status_changed, order_placed

logger = logging.getLogger(__name__)


class OrderError(Exception):
    """Order operation rejected; carries the HTTP status to report"""

    def __init__(self, message, status=400, details=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details


class InvalidTransition(OrderError):
    pass


ALLOWED_TRANSITIONS = {
    Order.STATUS_PENDING: [Order.STATUS_PAID, Order.STATUS_CANCELLED],
    Order.STATUS_PAID: [Order.STATUS_PREPARING, Order.STATUS_CANCELLED],
    Order.STATUS_PREPARING: [Order.STATUS_SHIPPED, Order.STATUS_CANCELLED],
    Order.STATUS_SHIPPED: [Order.STATUS_DELIVERED],
}

VALID_STATUSES = [choice[0] for choice in Order.STATUS_CHOICES]


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, [])


# ==========================================
# ORDER CREATION
# ==========================================

def _normalize_items(items) -> "OrderedDict[int, int]":
    """
    Validate raw items and merge quantities per product.
    Returns {product_id: quantity} in first-seen order.
    """
    if not isinstance(items, list) or not items:
        raise OrderError('Order must contain at least one item', details=[
            {'field': 'items', 'message': 'At least one item is required'}
        ])

    quantities: "OrderedDict[int, int]" = OrderedDict()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise OrderError('Invalid order item', details=[
                {'field': f'items[{index}]', 'message': 'Item must be an object'}
            ])

        product_id = item.get('product_id')
        quantity = item.get('quantity')

        if isinstance(product_id, bool) or not isinstance(product_id, int):
            try:
                product_id = int(str(product_id))
            except (TypeError, ValueError):
                raise OrderError('Invalid order item', details=[
                    {'field': f'items[{index}].product_id', 'message': 'Product id must be an integer'}
                ])

        if isinstance(quantity, bool) or not isinstance(quantity, int):
            try:
                quantity = int(str(quantity))
            except (TypeError, ValueError):
                quantity = 0
        if quantity < 1:
            raise OrderError('Invalid order item', details=[
                {'field': f'items[{index}].quantity', 'message': 'Quantity must be at least 1'}
            ])

        quantities[product_id] = quantities.get(product_id, 0) + quantity

    return quantities


def create_order(client, items: List[Dict], shipping_address: str, shipping_phone: str) -> Order:
    """
    Create a pending, unpaid order for a client.

    Stock is checked against the merged quantity per product and
    decremented under row locks in the same transaction. The total is the
    sum of the line totals plus the flat shipping cost.

    Raises:
        OrderError: invalid items or shipping info, unknown/inactive
            product, insufficient stock
    """
    quantities = _normalize_items(items)

    shipping_address = to_text(shipping_address)
    shipping_phone = to_text(shipping_phone)
    if not shipping_address:
        raise OrderError('Shipping address is required', details=[
            {'field': 'shipping_address', 'message': 'Shipping address is required'}
        ])
    if not shipping_phone:
        raise OrderError('Shipping phone is required', details=[
            {'field': 'shipping_phone', 'message': 'Shipping phone is required'}
        ])
    if not is_valid_phone(shipping_phone):
        raise OrderError('Invalid phone number format', details=[
            {'field': 'shipping_phone', 'message': 'Invalid phone number format'}
        ])

    shipping_cost = Decimal(settings.SHIPPING_COST)

    with transaction.atomic():
        products = {
            p.pk: p for p in Product.objects.select_for_update().filter(pk__in=list(quantities.keys()))
        }

        subtotal = Decimal('0.00')
        for product_id, quantity in quantities.items():
            product = products.get(product_id)
            if product is None or not product.is_active:
                raise OrderError(f'Product {product_id} not found or inactive')
            if product.stock < quantity:
                raise OrderError(f'Insufficient stock for {product.name}', details={
                    'product_id': product_id,
                    'available': product.stock,
                    'requested': quantity,
                })
            subtotal += product.price * quantity

        order = Order.objects.create(
            user=client,
            total=subtotal + shipping_cost,
            shipping_cost=shipping_cost,
            shipping_address=shipping_address,
            shipping_phone=shipping_phone,
        )

        for product_id, quantity in quantities.items():
            product = products[product_id]
            OrderItem.objects.create(
                order=order,
                product=product,
                product_name=product.name,
                quantity=quantity,
                price=product.price,
            )
            Product.objects.filter(pk=product_id).update(stock=F('stock') - quantity)

    logger.info(f'Order {order.order_number} created for {client.email}: total {order.total}')

    for receiver, response in order_placed.send_robust(sender=Order, order=order):
        if isinstance(response, Exception):
            logger.error(f'order_placed receiver {receiver.__name__} failed for order {order.pk}: {response}')

    return order


def _restore_stock(order: Order):
    for item in order.items.all():
        Product.objects.filter(pk=item.product_id).update(stock=F('stock') + item.quantity)


# ==========================================
# STATUS CHANGES
# ==========================================

def _announce(order: Order, old_status: str, was_paid: bool):
    """
    Fire order_status_changed after the change is committed.
    Receiver failures are logged and never undo the status change.
    """
    responses = order_status_changed.send_robust(
        sender=Order,
        order=order,
        old_status=old_status,
        new_status=order.status,
        was_paid=was_paid,
    )
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.error(
                f'order_status_changed receiver {receiver.__name__} failed for order '
                f'{order.pk} ({old_status} -> {order.status}): {response}'
            )


def transition_order(order: Order, new_status: str, tracking_number: Optional[str] = None) -> Tuple[Order, bool]:
    """
    Move an order to `new_status` following ALLOWED_TRANSITIONS.

    Returns:
        (order, changed). `changed` is False when the order already had
        that status; in that case only a given tracking number is stored.

    Raises:
        OrderError: unknown status
        InvalidTransition: transition not allowed from the current status
    """
    if new_status not in VALID_STATUSES:
        raise OrderError('Invalid status', details=[
            {'field': 'status', 'message': f'Status must be one of: {", ".join(VALID_STATUSES)}'}
        ])

    tracking_number = to_text(tracking_number)

    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        old_status = order.status
        was_paid = order.is_paid

        if new_status == old_status:
            if tracking_number:
                order.tracking_number = tracking_number
                order.save(update_fields=['tracking_number', 'updated_at'])
            return order, False

        if not can_transition(old_status, new_status):
            raise InvalidTransition(f'Cannot change order status from {old_status} to {new_status}')

        order.status = new_status
        update_fields = ['status', 'updated_at']
        if tracking_number:
            order.tracking_number = tracking_number
            update_fields.append('tracking_number')
        if new_status == Order.STATUS_PAID:
            order.payment_status = Order.PAYMENT_PAID
            update_fields.append('payment_status')
        order.save(update_fields=update_fields)

        if new_status == Order.STATUS_CANCELLED:
            _restore_stock(order)

    logger.info(f'Order {order.order_number} status changed: {old_status} -> {new_status}')
    _announce(order, old_status, was_paid)
    return order, True


def order_has_artisan_items(order: Order, user) -> bool:
    return order.items.filter(product__artisan__user=user).exists()


def mark_shipped(order: Order, user, tracking_number: Optional[str] = None) -> Order:
    """
    Ship an order that is being prepared.

    Artisans can only ship orders containing their products; admins can
    ship any order.

    Raises:
        OrderError: 404 when the artisan has no items in the order,
            400 when the order is not in `preparing`
    """
    if user.role != 'admin' and not order_has_artisan_items(order, user):
        raise OrderError('Order not found', status=404)

    order.refresh_from_db(fields=['status'])
    if order.status != Order.STATUS_PREPARING:
        raise InvalidTransition('Order must be in preparing status to be shipped')

    order, _changed = transition_order(order, Order.STATUS_SHIPPED, tracking_number)
    return order


def mark_paid(order: Order) -> bool:
    """
    Record a confirmed payment. Idempotent: an already paid order is left
    untouched and nothing is announced.

    Returns:
        True if the order was updated

    Raises:
        OrderError: the order was cancelled
    """
    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.is_paid:
            logger.info(f'Order {order.order_number} already paid; confirmation ignored')
            return False
        if order.status == Order.STATUS_CANCELLED:
            raise OrderError('Order has been cancelled')

        old_status = order.status
        order.payment_status = Order.PAYMENT_PAID
        order.status = Order.STATUS_PAID
        order.save(update_fields=['payment_status', 'status', 'updated_at'])

    logger.info(f'Order {order.order_number} marked paid (was {old_status})')
    _announce(order, old_status, was_paid=False)
    return True

"""
Server-side cart
One cart per client; checkout turns it into an order
"""

import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction

from ..models import Cart, CartItem, Product
from .orders import create_order, OrderError

logger = logging.getLogger(__name__)


def get_cart(user) -> Cart:
    cart, _created = Cart.objects.get_or_create(user=user)
    return cart


def _active_product(product_id) -> Product:
    try:
        return Product.objects.get(pk=product_id, is_active=True)
    except (Product.DoesNotExist, ValueError, TypeError):
        raise OrderError('Product not found', status=404)


def add_item(user, product_id, quantity: int = 1) -> CartItem:
    if quantity < 1:
        raise OrderError('Quantity must be at least 1')

    product = _active_product(product_id)
    cart = get_cart(user)

    item, created = CartItem.objects.get_or_create(
        cart=cart, product=product, defaults={'quantity': quantity}
    )
    if not created:
        item.quantity += quantity
        item.save(update_fields=['quantity'])

    return item


def set_quantity(user, product_id, quantity: int):
    """Set an item's quantity; zero or less removes it. Returns the item or None."""
    cart = get_cart(user)

    if quantity <= 0:
        remove_item(user, product_id)
        return None

    try:
        item = cart.items.get(product_id=product_id)
    except CartItem.DoesNotExist:
        product = _active_product(product_id)
        return CartItem.objects.create(cart=cart, product=product, quantity=quantity)

    item.quantity = quantity
    item.save(update_fields=['quantity'])
    return item


def remove_item(user, product_id) -> bool:
    deleted, _ = get_cart(user).items.filter(product_id=product_id).delete()
    return deleted > 0


def clear_cart(user):
    get_cart(user).items.all().delete()


def cart_summary(user) -> dict:
    cart = get_cart(user)
    items = cart.items.select_related('product', 'product__artisan').all()

    subtotal = sum((item.line_total for item in items), Decimal('0.00'))
    shipping = Decimal(settings.SHIPPING_COST) if items else Decimal('0.00')

    return {
        'items': [
            {
                'product_id': item.product_id,
                'name': item.product.name,
                'price': str(item.product.price),
                'image_url': item.product.image_url,
                'stock': item.product.stock,
                'is_active': item.product.is_active,
                'artisan_name': item.product.artisan.business_name,
                'quantity': item.quantity,
                'line_total': str(item.line_total),
            }
            for item in items
        ],
        'subtotal': str(subtotal),
        'shipping': str(shipping),
        'total': str(subtotal + shipping),
    }


def checkout(user, shipping_address: str, shipping_phone: str):
    """
    Create an order from the cart contents and empty the cart.

    Raises:
        OrderError: empty cart or any order validation failure
    """
    cart = get_cart(user)
    items = [
        {'product_id': item.product_id, 'quantity': item.quantity}
        for item in cart.items.all()
    ]
    if not items:
        raise OrderError('Cart is empty')

    with transaction.atomic():
        order = create_order(user, items, shipping_address, shipping_phone)
        cart.items.all().delete()

    logger.info(f'Cart checked out by {user.email} as order {order.order_number}')
    return order

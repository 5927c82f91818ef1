"""
Moderation Service
Platform statistics and account/catalog moderation for admins
"""

import logging
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone

from apps.shop.models import ArtisanProfile, Category, Order, Product

logger = logging.getLogger(__name__)


class ModerationError(Exception):
    """Moderation action rejected; carries the HTTP status to report"""

    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status


# ==========================================
# STATISTICS
# ==========================================

def platform_stats() -> dict:
    User = get_user_model()
    users = User.objects.filter(is_system=False)
    paid_orders = Order.objects.filter(payment_status=Order.PAYMENT_PAID)

    revenue = paid_orders.aggregate(total=Sum('total'))['total'] or Decimal('0.00')

    return {
        'total_users': users.count(),
        'total_clients': users.filter(role='client').count(),
        'total_artisans': users.filter(role='artisan').count(),
        'total_products': Product.objects.active().count(),
        'total_orders': Order.objects.count(),
        'total_revenue': str(revenue),
        'pending_orders': Order.objects.filter(status=Order.STATUS_PENDING).count(),
        'paid_orders': paid_orders.count(),
    }


def monthly_revenue(months: int = 12) -> list:
    """Paid-order revenue per month, oldest first, over the last `months` months"""
    since = timezone.now() - timedelta(days=31 * months)
    rows = (
        Order.objects
        .filter(payment_status=Order.PAYMENT_PAID, created_at__gte=since)
        .annotate(month=TruncMonth('created_at'))
        .values('month')
        .annotate(revenue=Sum('total'), orders=Count('id'))
        .order_by('month')
    )
    return [
        {
            'month': row['month'].strftime('%Y-%m'),
            'revenue': str(row['revenue'] or Decimal('0.00')),
            'orders': row['orders'],
        }
        for row in rows
    ][-months:]


# ==========================================
# USERS & ARTISANS
# ==========================================

def _target_user(admin, user_id, action):
    User = get_user_model()
    if admin.pk == user_id:
        raise ModerationError(f'You cannot {action} your own account', status=403)
    user = User.objects.filter(pk=user_id, is_system=False).first()
    if user is None:
        raise ModerationError('User not found', status=404)
    return user


def set_user_active(admin, user_id, is_active: bool):
    User = get_user_model()
    if admin.pk == user_id and not is_active:
        raise ModerationError('You cannot deactivate your own account', status=403)

    user = User.objects.filter(pk=user_id, is_system=False).first()
    if user is None:
        raise ModerationError('User not found', status=404)

    user.is_active = is_active
    user.save(update_fields=['is_active'])
    logger.info(f'{admin.email} set is_active={is_active} on {user.email}')
    return user


def change_user_role(admin, user_id, role: str):
    """
    Switch a user's role. Becoming an artisan creates the artisan profile
    (post_save); leaving the artisan role deletes it with its products.

    Raises:
        ModerationError: self change (403), invalid role (400),
            unknown user (404), products referenced by orders (400)
    """
    User = get_user_model()
    valid_roles = [choice[0] for choice in User.ROLE_CHOICES]
    if role not in valid_roles:
        raise ModerationError(f'Role must be one of: {", ".join(valid_roles)}')

    user = _target_user(admin, user_id, 'change the role of')
    old_role = user.role
    if old_role == role:
        return user

    with transaction.atomic():
        user.role = role
        user.save(update_fields=['role'])
        if old_role == User.ROLE_ARTISAN:
            ArtisanProfile.objects.filter(user=user).delete()

    logger.info(f'{admin.email} changed role of {user.email}: {old_role} -> {role}')
    return user


def delete_user(admin, user_id):
    user = _target_user(admin, user_id, 'delete')
    email = user.email
    with transaction.atomic():
        user.delete()
    logger.info(f'{admin.email} deleted user {email}')


def approve_artisan(artisan_id) -> ArtisanProfile:
    profile = ArtisanProfile.objects.select_related('user').filter(pk=artisan_id).first()
    if profile is None:
        raise ModerationError('Artisan not found', status=404)

    if not profile.is_approved:
        profile.is_approved = True
        profile.save(update_fields=['is_approved', 'updated_at'])
        logger.info(f'Artisan {profile.business_name} approved')
    return profile


# ==========================================
# CATALOG
# ==========================================

def delete_category(category_id):
    category = Category.objects.filter(pk=category_id).first()
    if category is None:
        raise ModerationError('Category not found', status=404)
    if category.products.exists():
        raise ModerationError('Cannot delete a category that contains products')
    if category.children.exists():
        raise ModerationError('Cannot delete a category that has subcategories')
    category.delete()


def delete_product(product_id):
    """Delete a product with its favorites, reviews and category links."""
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise ModerationError('Product not found', status=404)
    if product.orderitem_set.exists():
        raise ModerationError('Cannot delete a product that is part of existing orders')

    with transaction.atomic():
        product.categories.clear()
        product.delete()
    logger.info(f'Product {product_id} deleted by moderation')

"""
Admin moderation views for the Artisashop JSON API.
Every view is restricted to the admin role.
"""

import logging

from django.contrib.auth import get_user_model
from django.db.models import Count, ProtectedError
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from apps.shop.forms import CategoryForm
from apps.shop.models import ArtisanProfile, Category, Order, Product, Review
from apps.shop.serializers import serialize_order, serialize_product, serialize_review
from apps.users.decorators import admin_required
from core.utils.api import parse_body, to_bool, to_int, json_error, form_error_response, iso, BadRequest
from .services import (
    ModerationError,
    platform_stats,
    monthly_revenue,
    set_user_active,
    change_user_role,
    delete_user,
    approve_artisan,
    delete_category,
    delete_product,
)

logger = logging.getLogger(__name__)


def moderation_error_response(error: ModerationError):
    return json_error(error.message, status=error.status)


# ==========================================
# DASHBOARD
# ==========================================

@require_http_methods(["GET"])
@admin_required
def stats(request):
    return JsonResponse({
        'stats': platform_stats(),
        'monthly_revenue': monthly_revenue(),
    })


# ==========================================
# USERS & ARTISANS
# ==========================================

@require_http_methods(["GET"])
@admin_required
def users(request):
    User = get_user_model()
    queryset = User.objects.filter(is_system=False).order_by('-date_joined')

    role = request.GET.get('role')
    if role:
        queryset = queryset.filter(role=role)

    return JsonResponse({'users': [u.to_dict() for u in queryset]})


@require_http_methods(["GET"])
@admin_required
def artisans(request):
    queryset = (
        ArtisanProfile.objects
        .select_related('user')
        .annotate(product_count=Count('products', distinct=True))
        .order_by('-created_at')
    )
    return JsonResponse({
        'artisans': [
            {
                'id': profile.pk,
                'user_id': profile.user_id,
                'business_name': profile.business_name,
                'description': profile.description,
                'is_approved': profile.is_approved,
                'email': profile.user.email,
                'first_name': profile.user.first_name,
                'last_name': profile.user.last_name,
                'is_active': profile.user.is_active,
                'product_count': profile.product_count,
                'created_at': iso(profile.created_at),
            }
            for profile in queryset
        ]
    })


@require_http_methods(["PUT"])
@admin_required
def approve_artisan_view(request, artisan_id):
    try:
        profile = approve_artisan(artisan_id)
    except ModerationError as e:
        return moderation_error_response(e)
    return JsonResponse({'message': 'Artisan approved', 'artisan_id': profile.pk, 'is_approved': True})


@require_http_methods(["PUT"])
@admin_required
def user_status(request, user_id):
    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    if 'is_active' not in data:
        return json_error('Validation failed', details=[
            {'field': 'is_active', 'message': 'is_active is required'}
        ])

    try:
        user = set_user_active(request.user, user_id, to_bool(data.get('is_active')))
    except ModerationError as e:
        return moderation_error_response(e)

    return JsonResponse({'message': 'User status updated', 'user': user.to_dict()})


@require_http_methods(["PUT"])
@admin_required
def user_role(request, user_id):
    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    try:
        user = change_user_role(request.user, user_id, data.get('role'))
    except ModerationError as e:
        return moderation_error_response(e)
    except ProtectedError:
        return json_error("Cannot remove the artisan role while the artisan's products are in orders")

    return JsonResponse({'message': 'User role updated', 'user': user.to_dict()})


@require_http_methods(["DELETE"])
@admin_required
def user_detail(request, user_id):
    try:
        delete_user(request.user, user_id)
    except ModerationError as e:
        return moderation_error_response(e)
    except ProtectedError:
        return json_error('Cannot delete a user whose products are part of existing orders')

    return JsonResponse({'message': 'User deleted successfully'})


# ==========================================
# ORDERS
# ==========================================

@require_http_methods(["GET"])
@admin_required
def orders(request):
    queryset = Order.objects.select_related('user').prefetch_related('items__product__artisan').order_by('-created_at')

    status = request.GET.get('status')
    if status:
        queryset = queryset.filter(status=status)
    payment_status = request.GET.get('payment_status')
    if payment_status:
        queryset = queryset.filter(payment_status=payment_status)

    return JsonResponse({
        'orders': [serialize_order(o, items=o.items.all(), client=True) for o in queryset]
    })


# ==========================================
# PRODUCTS
# ==========================================

@require_http_methods(["GET"])
@admin_required
def products(request):
    queryset = (
        Product.objects
        .select_related('artisan')
        .prefetch_related('categories', 'media')
        .with_ratings()
        .order_by('-created_at')
    )

    if 'is_active' in request.GET:
        queryset = queryset.filter(is_active=to_bool(request.GET['is_active']))
    artisan_id = to_int(request.GET.get('artisan_id'))
    if artisan_id is not None:
        queryset = queryset.filter(artisan_id=artisan_id)

    return JsonResponse({'products': [serialize_product(p) for p in queryset]})


@require_http_methods(["PUT"])
@admin_required
def product_status(request, product_id):
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        return json_error('Product not found', status=404)

    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    if 'is_active' not in data:
        return json_error('Validation failed', details=[
            {'field': 'is_active', 'message': 'is_active is required'}
        ])

    product.is_active = to_bool(data.get('is_active'))
    product.save(update_fields=['is_active', 'updated_at'])
    logger.info(f'Product {product.pk} is_active={product.is_active} set by {request.user.email}')

    return JsonResponse({'message': 'Product status updated', 'id': product.pk, 'is_active': product.is_active})


@require_http_methods(["DELETE"])
@admin_required
def product_detail(request, product_id):
    try:
        delete_product(product_id)
    except ModerationError as e:
        return moderation_error_response(e)
    return JsonResponse({'message': 'Product deleted successfully'})


# ==========================================
# CATEGORIES
# ==========================================

@require_http_methods(["GET"])
@admin_required
def categories(request):
    queryset = Category.objects.annotate(
        product_count=Count('products', distinct=True),
        children_count=Count('children', distinct=True),
    ).order_by('name')
    return JsonResponse({
        'categories': [
            dict(c.to_dict(), product_count=c.product_count, children_count=c.children_count)
            for c in queryset
        ]
    })


@require_http_methods(["PUT", "DELETE"])
@admin_required
def category_detail(request, category_id):
    if request.method == 'DELETE':
        try:
            delete_category(category_id)
        except ModerationError as e:
            return moderation_error_response(e)
        return JsonResponse({'message': 'Category deleted successfully'})

    category = Category.objects.filter(pk=category_id).first()
    if category is None:
        return json_error('Category not found', status=404)

    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    if not any(field in data for field in ('name', 'slug', 'description', 'parent_id')):
        return json_error('No fields to update')

    form = CategoryForm(data, instance=category, partial=True)
    if not form.is_valid():
        return form_error_response(form)

    category = form.save()
    return JsonResponse({'message': 'Category updated successfully', 'category': category.to_dict()})


# ==========================================
# REVIEWS
# ==========================================

@require_http_methods(["GET"])
@admin_required
def reviews(request):
    queryset = Review.objects.select_related('user', 'product__artisan').order_by('-created_at')

    product_id = to_int(request.GET.get('product_id'))
    if product_id is not None:
        queryset = queryset.filter(product_id=product_id)
    user_id = to_int(request.GET.get('user_id'))
    if user_id is not None:
        queryset = queryset.filter(user_id=user_id)

    return JsonResponse({
        'reviews': [
            dict(serialize_review(r), product_name=r.product.name, user_email=r.user.email)
            for r in queryset
        ]
    })


@require_http_methods(["DELETE"])
@admin_required
def review_detail(request, review_id):
    deleted, _ = Review.objects.filter(pk=review_id).delete()
    if not deleted:
        return json_error('Review not found', status=404)
    return JsonResponse({'message': 'Review deleted successfully'})

"""
Shop App Views
Catalog, favorites, reviews, orders, payments and cart for the JSON API
"""

import logging
from decimal import Decimal

from django.db import transaction, IntegrityError
from django.db.models import Q, Prefetch, ProtectedError
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from apps.messaging.services.notifications import create_notification
from apps.users.decorators import api_login_required, role_required, admin_required, rate_limit
from core.utils.api import (
    parse_body, get_list, to_int, to_decimal, to_bool, to_text,
    json_error, form_error_response, BadRequest
)
from .decorators import artisan_profile_required, product_owner_or_admin
from .forms import ProductForm, CategoryForm, ReviewForm
from .models import Category, Product, Favorite, Review, Order, OrderItem, Payment
from .serializers import (
    serialize_category_tree, serialize_product, serialize_review,
    serialize_order, serialize_order_summary
)
from .services import cart as cart_service
from .services.media import attach_media
from .services.orders import (
    OrderError, create_order, transition_order, mark_shipped, mark_paid,
    order_has_artisan_items
)
from .services.payments import payment_service

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal('0.01')


def order_error_response(error: OrderError):
    return json_error(error.message, status=error.status, details=error.details)


def _product_queryset():
    return (
        Product.objects
        .select_related('artisan')
        .prefetch_related('categories', 'media')
        .with_ratings()
    )


def _category_ids(data):
    """
    Parse the optional `categories` list.
    Returns None when absent; raises BadRequest on non-integer ids.
    """
    raw = get_list(data, 'categories')
    if raw is None:
        return None
    ids = [to_int(value) for value in raw]
    if any(value is None for value in ids):
        raise BadRequest('Categories must be a list of category ids')
    return ids


# ==========================================
# CATEGORIES
# ==========================================

@require_http_methods(["GET", "POST"])
def categories(request):
    if request.method == 'POST':
        return _create_category(request)

    all_categories = list(Category.objects.order_by('name'))
    return JsonResponse({
        'categories': serialize_category_tree(all_categories),
        'flat': [c.to_dict() for c in all_categories],
    })


@admin_required
def _create_category(request):
    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    form = CategoryForm(data)
    if not form.is_valid():
        return form_error_response(form)

    category = form.save()
    logger.info(f'Category {category.slug} created by {request.user.email}')
    return JsonResponse({'message': 'Category created successfully', 'category': category.to_dict()}, status=201)


# ==========================================
# PRODUCTS
# ==========================================

@require_http_methods(["GET", "POST"])
def products(request):
    """
    Browse active products, or create one (artisans).

    Query params: category (id or slug), search, minPrice, maxPrice,
    featured, limit
    """
    if request.method == 'POST':
        return _create_product(request)

    queryset = _product_queryset().active()
    params = request.GET

    category = params.get('category')
    if category:
        category_id = to_int(category)
        if category_id is not None:
            queryset = queryset.filter(categories__id=category_id)
        else:
            queryset = queryset.filter(categories__slug=category)

    search = (params.get('search') or '').strip()
    if search:
        queryset = queryset.filter(Q(name__icontains=search) | Q(description__icontains=search))

    min_price = to_decimal(params.get('minPrice'))
    if min_price is not None:
        queryset = queryset.filter(price__gte=min_price)

    max_price = to_decimal(params.get('maxPrice'))
    if max_price is not None:
        queryset = queryset.filter(price__lte=max_price)

    if to_bool(params.get('featured', '')):
        queryset = queryset.filter(is_featured=True)

    queryset = queryset.order_by('-created_at')

    limit = to_int(params.get('limit'))
    if limit is not None and limit > 0:
        queryset = queryset[:limit]

    return JsonResponse({'products': [serialize_product(p) for p in queryset]})


@artisan_profile_required
def _create_product(request):
    try:
        data, files = parse_body(request)
        category_ids = _category_ids(data)
    except BadRequest as e:
        return json_error(str(e))

    form = ProductForm(data)
    if not form.is_valid():
        return form_error_response(form)

    cleaned = form.cleaned_data
    with transaction.atomic():
        product = Product.objects.create(
            artisan=request.artisan,
            name=cleaned['name'],
            description=cleaned.get('description') or '',
            price=cleaned['price'],
            stock=cleaned.get('stock') or 0,
            is_active=cleaned['is_active'] if cleaned.get('is_active') is not None else True,
        )
        if category_ids:
            product.categories.set(Category.objects.filter(pk__in=category_ids))

    attach_media(product, files)
    logger.info(f'Product {product.pk} created by {request.user.email}')

    product = _product_queryset().get(pk=product.pk)
    return JsonResponse({'message': 'Product created successfully', 'product': serialize_product(product)}, status=201)


@require_http_methods(["GET"])
@artisan_profile_required
def my_products(request):
    queryset = _product_queryset().filter(artisan=request.artisan).order_by('-created_at')
    return JsonResponse({'products': [serialize_product(p) for p in queryset]})


@require_http_methods(["GET", "PUT", "DELETE"])
def product_detail(request, product_id):
    if request.method == 'PUT':
        return _update_product(request, product_id=product_id)
    if request.method == 'DELETE':
        return _delete_product(request, product_id=product_id)

    product = _product_queryset().filter(pk=product_id).first()
    if product is None:
        return json_error('Product not found', status=404)

    if not product.is_active:
        user = request.user
        is_owner = user.is_authenticated and product.artisan.user_id == user.pk
        if not is_owner and not (user.is_authenticated and user.role == 'admin'):
            return json_error('Product not found', status=404)

    return JsonResponse({'product': serialize_product(product, reviews=True)})


@product_owner_or_admin
def _update_product(request, product_id):
    product = request.product

    try:
        data, files = parse_body(request)
        category_ids = _category_ids(data)
    except BadRequest as e:
        return json_error(str(e))

    if 'is_featured' in data and request.user.role != 'admin':
        return json_error('Only admins can feature products', status=403)

    form = ProductForm(data, partial=True)
    if not form.is_valid():
        return form_error_response(form)

    with transaction.atomic():
        changed = form.apply_to(product)
        if changed:
            product.save()
        if category_ids is not None:
            product.categories.set(Category.objects.filter(pk__in=category_ids))

    attach_media(product, files)
    logger.info(f'Product {product.pk} updated by {request.user.email}: {changed}')

    product = _product_queryset().get(pk=product.pk)
    return JsonResponse({'message': 'Product updated successfully', 'product': serialize_product(product)})


@product_owner_or_admin
def _delete_product(request, product_id):
    product = request.product
    try:
        product.delete()
    except ProtectedError:
        return json_error('Cannot delete a product that is part of existing orders')

    logger.info(f'Product {product_id} deleted by {request.user.email}')
    return JsonResponse({'message': 'Product deleted successfully'})


# ==========================================
# FAVORITES
# ==========================================

@require_http_methods(["GET"])
@api_login_required
def favorites(request):
    queryset = (
        Favorite.objects
        .filter(user=request.user, product__is_active=True)
        .select_related('product', 'product__artisan')
        .order_by('-created_at')
    )
    return JsonResponse({
        'favorites': [
            {
                'id': favorite.pk,
                'product_id': favorite.product_id,
                'name': favorite.product.name,
                'price': str(favorite.product.price),
                'image_url': favorite.product.image_url,
                'artisan_name': favorite.product.artisan.business_name,
                'created_at': favorite.created_at.isoformat(),
            }
            for favorite in queryset
        ]
    })


@require_http_methods(["POST", "DELETE"])
@api_login_required
def favorite_detail(request, product_id):
    if request.method == 'DELETE':
        deleted, _ = Favorite.objects.filter(user=request.user, product_id=product_id).delete()
        if not deleted:
            return json_error('Favorite not found', status=404)
        return JsonResponse({'message': 'Removed from favorites'})

    product = Product.objects.active().filter(pk=product_id).first()
    if product is None:
        return json_error('Product not found', status=404)

    try:
        with transaction.atomic():
            Favorite.objects.create(user=request.user, product=product)
    except IntegrityError:
        return json_error('Product already in favorites')

    return JsonResponse({'message': 'Added to favorites'}, status=201)


# ==========================================
# REVIEWS
# ==========================================

@require_http_methods(["GET"])
def product_reviews(request, product_id):
    reviews = (
        Review.objects
        .filter(product_id=product_id)
        .select_related('user', 'product__artisan')
        .order_by('-created_at')
    )
    return JsonResponse({'reviews': [serialize_review(r) for r in reviews]})


@require_http_methods(["POST"])
@role_required('client')
def create_review(request):
    """
    Review a purchased product. A second review by the same client
    updates the first one.
    """
    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    form = ReviewForm(data)
    if not form.is_valid():
        return form_error_response(form)

    cleaned = form.cleaned_data
    user = request.user

    product = Product.objects.active().select_related('artisan__user').filter(pk=cleaned['product_id']).first()
    if product is None:
        return json_error('Product not found', status=404)

    purchased = OrderItem.objects.filter(
        order__user=user,
        order__payment_status=Order.PAYMENT_PAID,
        product=product,
    ).exists()
    if not purchased:
        return json_error('You can only review products you have purchased', status=403)

    comment = (cleaned.get('comment') or '').strip()

    with transaction.atomic():
        review = Review.objects.select_for_update().filter(user=user, product=product).first()
        if review is not None:
            review.rating = cleaned['rating']
            review.comment = comment
            review.created_at = timezone.now()
            review.save(update_fields=['rating', 'comment', 'created_at'])
            return JsonResponse({'message': 'Review updated', 'review': serialize_review(review)})

        review = Review.objects.create(user=user, product=product, rating=cleaned['rating'], comment=comment)
        create_notification(
            product.artisan.user,
            'new_review',
            'New review',
            f'{user.get_full_name()} rated {product.name} {review.rating}/5.',
            review.pk,
        )

    logger.info(f'Review {review.pk} created by {user.email} on product {product.pk}')
    return JsonResponse({'message': 'Review created', 'review': serialize_review(review)}, status=201)


@require_http_methods(["POST"])
@artisan_profile_required
def reply_review(request, review_id):
    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    reply = to_text(data.get('reply'))
    if not reply:
        return json_error('Reply cannot be empty', details=[
            {'field': 'reply', 'message': 'Reply cannot be empty'}
        ])

    review = (
        Review.objects
        .select_related('user', 'product__artisan')
        .filter(pk=review_id, product__artisan=request.artisan)
        .first()
    )
    if review is None:
        return json_error('Review not found', status=404)

    with transaction.atomic():
        review.artisan_reply = reply
        review.artisan_reply_at = timezone.now()
        review.save(update_fields=['artisan_reply', 'artisan_reply_at'])
        create_notification(
            review.user,
            'review_reply',
            'Reply to your review',
            f'{request.artisan.business_name} replied to your review of {review.product.name}.',
            review.pk,
        )

    return JsonResponse({'message': 'Reply saved', 'review': serialize_review(review)})


# ==========================================
# ORDERS
# ==========================================

@require_http_methods(["GET", "POST"])
def orders(request):
    if request.method == 'POST':
        return _create_order(request)
    return _list_orders(request)


@api_login_required
def _list_orders(request):
    queryset = (
        Order.objects
        .filter(user=request.user)
        .prefetch_related(Prefetch(
            'items', queryset=OrderItem.objects.select_related('product', 'product__artisan')
        ))
        .order_by('-created_at')
    )
    return JsonResponse({'orders': [serialize_order(o, items=o.items.all()) for o in queryset]})


@role_required('client')
def _create_order(request):
    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    try:
        order = create_order(
            request.user,
            data.get('items'),
            data.get('shipping_address'),
            data.get('shipping_phone'),
        )
    except OrderError as e:
        return order_error_response(e)

    return JsonResponse(serialize_order_summary(order), status=201)


@require_http_methods(["GET"])
@artisan_profile_required
def received_orders(request):
    """Orders containing the artisan's products, with only their items"""
    artisan = request.artisan
    own_items = OrderItem.objects.filter(product__artisan=artisan).select_related('product', 'product__artisan')

    queryset = (
        Order.objects
        .filter(items__product__artisan=artisan)
        .distinct()
        .select_related('user')
        .prefetch_related(Prefetch('items', queryset=own_items, to_attr='artisan_items'))
        .order_by('-created_at')
    )
    return JsonResponse({
        'orders': [serialize_order(o, items=o.artisan_items, client=True) for o in queryset]
    })


@require_http_methods(["GET"])
@api_login_required
def order_detail(request, order_id):
    order = Order.objects.select_related('user').filter(pk=order_id).first()
    if order is None:
        return json_error('Order not found', status=404)

    user = request.user
    if user.role == 'admin':
        return JsonResponse({'order': serialize_order(order, client=True)})

    if user.role == 'artisan':
        if not order_has_artisan_items(order, user):
            return json_error('Access denied', status=403)
        items = order.items.filter(product__artisan__user=user).select_related('product', 'product__artisan')
        return JsonResponse({'order': serialize_order(order, items=items, client=True)})

    if order.user_id != user.pk:
        return json_error('Access denied', status=403)
    return JsonResponse({'order': serialize_order(order)})


@require_http_methods(["PUT"])
@role_required('artisan', 'admin')
def ship_order(request, order_id):
    order = Order.objects.filter(pk=order_id).first()
    if order is None:
        return json_error('Order not found', status=404)

    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    try:
        order = mark_shipped(order, request.user, data.get('tracking_number'))
    except OrderError as e:
        return order_error_response(e)

    return JsonResponse({'message': 'Order marked as shipped', 'order': serialize_order_summary(order)})


@require_http_methods(["PUT"])
@admin_required
def update_order_status(request, order_id):
    order = Order.objects.filter(pk=order_id).first()
    if order is None:
        return json_error('Order not found', status=404)

    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    try:
        order, changed = transition_order(order, data.get('status'), data.get('tracking_number'))
    except OrderError as e:
        return order_error_response(e)

    message = 'Order status updated' if changed else 'Order is already at this status'
    return JsonResponse({'message': message, 'order': serialize_order_summary(order)})


# ==========================================
# PAYMENTS
# ==========================================

@require_http_methods(["POST"])
@rate_limit('payment')
@role_required('client')
def create_payment_intent(request):
    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    order_id = to_int(data.get('order_id'))
    amount = to_decimal(data.get('amount'))
    details = []
    if order_id is None:
        details.append({'field': 'order_id', 'message': 'Order id is required'})
    if amount is None:
        details.append({'field': 'amount', 'message': 'Amount is required'})
    if details:
        return json_error('Validation failed', details=details)

    order = Order.objects.filter(pk=order_id, user=request.user).first()
    if order is None:
        return json_error('Order not found', status=404)
    if order.is_paid:
        return json_error('Order is already paid')
    if order.status == Order.STATUS_CANCELLED:
        return json_error('Order has been cancelled')
    if abs(order.total - amount) > AMOUNT_TOLERANCE:
        return json_error('Amount does not match order total')

    success, result = payment_service.create_payment_intent(
        order.total, order.pk, metadata={'order_number': order.order_number}
    )
    if not success:
        return json_error('Payment service unavailable', status=502)

    payment = Payment.objects.create(
        order=order,
        payment_intent_id=result['id'],
        amount=order.total,
        status=Payment.STATUS_PENDING,
    )

    return JsonResponse({
        'clientSecret': result['client_secret'],
        'payment_intent_id': result['id'],
        'payment_id': payment.pk,
    })


@require_http_methods(["POST"])
@role_required('client')
def confirm_payment(request):
    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    intent_id = to_text(data.get('payment_intent_id'))
    if not intent_id:
        return json_error('Validation failed', details=[
            {'field': 'payment_intent_id', 'message': 'Payment intent id is required'}
        ])

    payment = (
        Payment.objects
        .select_related('order')
        .filter(payment_intent_id=intent_id, order__user=request.user)
        .first()
    )
    if payment is None:
        return json_error('Payment not found', status=404)

    success, result = payment_service.retrieve_payment_intent(intent_id)
    if not success:
        return json_error('Payment service unavailable', status=502)
    if result.get('status') != 'succeeded':
        return json_error('Payment has not succeeded', details={'status': result.get('status')})

    if payment.status != Payment.STATUS_SUCCEEDED:
        payment.status = Payment.STATUS_SUCCEEDED
        payment.save(update_fields=['status', 'updated_at'])

    try:
        mark_paid(payment.order)
    except OrderError as e:
        logger.error(f'Payment {intent_id} succeeded for unpayable order {payment.order_id}: {e.message}')
        return order_error_response(e)

    order = Order.objects.get(pk=payment.order_id)
    return JsonResponse({'message': 'Payment confirmed', 'order': serialize_order_summary(order)})


@require_http_methods(["GET"])
@api_login_required
def payment_status(request, order_id):
    order = Order.objects.filter(pk=order_id).first()
    if order is None:
        return json_error('Order not found', status=404)
    if order.user_id != request.user.pk and request.user.role != 'admin':
        return json_error('Access denied', status=403)

    payment = order.payments.order_by('-created_at', '-pk').first()
    return JsonResponse({
        'payment': payment.to_dict() if payment else None,
        'order_status': order.status,
        'payment_status': order.payment_status,
    })


# ==========================================
# CART
# ==========================================

@require_http_methods(["GET", "DELETE"])
@api_login_required
def cart(request):
    if request.method == 'DELETE':
        cart_service.clear_cart(request.user)
        return JsonResponse({'message': 'Cart cleared', 'cart': cart_service.cart_summary(request.user)})
    return JsonResponse({'cart': cart_service.cart_summary(request.user)})


@require_http_methods(["POST"])
@api_login_required
def cart_items(request):
    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    product_id = to_int(data.get('product_id'))
    quantity = to_int(data.get('quantity'), default=1)
    if product_id is None:
        return json_error('Validation failed', details=[
            {'field': 'product_id', 'message': 'Product id is required'}
        ])

    try:
        cart_service.add_item(request.user, product_id, quantity)
    except OrderError as e:
        return order_error_response(e)

    return JsonResponse({'message': 'Added to cart', 'cart': cart_service.cart_summary(request.user)}, status=201)


@require_http_methods(["PUT", "DELETE"])
@api_login_required
def cart_item_detail(request, product_id):
    if request.method == 'DELETE':
        cart_service.remove_item(request.user, product_id)
        return JsonResponse({'message': 'Removed from cart', 'cart': cart_service.cart_summary(request.user)})

    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    quantity = to_int(data.get('quantity'))
    if quantity is None:
        return json_error('Validation failed', details=[
            {'field': 'quantity', 'message': 'Quantity must be an integer'}
        ])

    try:
        cart_service.set_quantity(request.user, product_id, quantity)
    except OrderError as e:
        return order_error_response(e)

    return JsonResponse({'message': 'Cart updated', 'cart': cart_service.cart_summary(request.user)})


@require_http_methods(["POST"])
@role_required('client')
def checkout(request):
    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    try:
        order = cart_service.checkout(request.user, data.get('shipping_address'), data.get('shipping_phone'))
    except OrderError as e:
        return order_error_response(e)

    return JsonResponse(serialize_order_summary(order), status=201)

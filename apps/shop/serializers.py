"""
Plain dict serializers shared by the shop and moderation views
"""

from core.utils.api import iso


def serialize_category_tree(categories):
    """Nest a flat list of categories under their parents"""
    nodes = {c.pk: dict(c.to_dict(), children=[]) for c in categories}
    roots = []
    for category in categories:
        node = nodes[category.pk]
        parent = nodes.get(category.parent_id)
        if parent is not None:
            parent['children'].append(node)
        else:
            roots.append(node)
    return roots


def serialize_product(product, reviews=False):
    artisan = product.artisan
    data = {
        'id': product.pk,
        'name': product.name,
        'slug': product.slug,
        'description': product.description,
        'price': str(product.price),
        'stock': product.stock,
        'image_url': product.image_url,
        'is_active': product.is_active,
        'is_featured': product.is_featured,
        'artisan_id': artisan.pk,
        'artisan_user_id': artisan.user_id,
        'artisan_name': artisan.business_name,
        'average_rating': product.average_rating,
        'review_count': product.review_count,
        'categories': [c.to_dict() for c in product.categories.all()],
        'media': [m.to_dict() for m in product.media.all()],
        'created_at': iso(product.created_at),
        'updated_at': iso(product.updated_at),
    }
    if reviews:
        data['reviews'] = [
            serialize_review(r)
            for r in product.reviews.select_related('user').order_by('-created_at')
        ]
    return data


def serialize_review(review):
    product = review.product
    return {
        'id': review.pk,
        'product_id': review.product_id,
        'user_id': review.user_id,
        'first_name': review.user.first_name,
        'last_name': review.user.last_name,
        'rating': review.rating,
        'comment': review.comment,
        'artisan_reply': review.artisan_reply or None,
        'artisan_reply_at': iso(review.artisan_reply_at),
        'artisan_name': product.artisan.business_name,
        'created_at': iso(review.created_at),
    }


def serialize_order_item(item):
    product = item.product
    return {
        'id': item.pk,
        'product_id': item.product_id,
        'product_name': item.product_name,
        'quantity': item.quantity,
        'price': str(item.price),
        'line_total': str(item.line_total),
        'image_url': product.image_url,
        'artisan_id': product.artisan_id,
        'artisan_name': product.artisan.business_name,
    }


def serialize_order(order, items=None, client=False):
    """
    `items` restricts the listed items (artisans only see their own);
    `client` adds the buyer's contact info.
    """
    if items is None:
        items = order.items.select_related('product', 'product__artisan').all()

    data = {
        'id': order.pk,
        'order_number': order.order_number,
        'status': order.status,
        'payment_status': order.payment_status,
        'total': str(order.total),
        'shipping_cost': str(order.shipping_cost),
        'shipping_address': order.shipping_address,
        'shipping_phone': order.shipping_phone,
        'tracking_number': order.tracking_number or None,
        'created_at': iso(order.created_at),
        'updated_at': iso(order.updated_at),
        'items': [serialize_order_item(item) for item in items],
    }
    if client:
        user = order.user
        data['client'] = {
            'id': user.pk,
            'email': user.email,
            'first_name': user.first_name,
            'last_name': user.last_name,
            'phone': user.phone,
        }
    return data


def serialize_order_summary(order):
    return {
        'id': order.pk,
        'order_number': order.order_number,
        'total': str(order.total),
        'status': order.status,
        'payment_status': order.payment_status,
    }

"""
Messaging & notification views for the Artisashop JSON API.
"""

import logging

from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from apps.shop.models import Product, Order, Review
from apps.users.decorators import api_login_required
from core.utils.api import parse_body, get_list, json_error, to_int, iso, BadRequest
from .models import Notification
from .services.messages import (
    MessagingError,
    start_conversation,
    get_conversation_for,
    send_user_message,
    mark_conversation_read,
    visible_conversations,
    unread_message_count,
    delete_conversation_for,
)

logger = logging.getLogger(__name__)


def serialize_conversation(conversation, user):
    other = conversation.other_participant(user)
    product = conversation.product
    return {
        'id': conversation.pk,
        'client_id': conversation.client_id,
        'artisan_id': conversation.artisan_id,
        'product_id': conversation.product_id,
        'order_id': conversation.order_id,
        'client_first_name': conversation.client.first_name,
        'client_last_name': conversation.client.last_name,
        'artisan_first_name': conversation.artisan.first_name,
        'artisan_last_name': conversation.artisan.last_name,
        'other_user_first_name': other.first_name,
        'other_user_last_name': other.last_name,
        'other_user_email': other.email,
        'product_name': product.name if product else None,
        'product_image': product.image_url if product else None,
        'is_system': conversation.artisan.is_system,
        'unread_count': getattr(conversation, 'unread_count', 0),
        'last_message': getattr(conversation, 'last_message', None),
        'created_at': iso(conversation.created_at),
        'last_message_at': iso(conversation.last_message_at),
    }


def serialize_message(message):
    sender = message.sender
    return {
        'id': message.pk,
        'conversation_id': message.conversation_id,
        'sender_id': message.sender_id,
        'message': message.body,
        'is_read': message.is_read,
        'created_at': iso(message.created_at),
        'first_name': sender.first_name,
        'last_name': sender.last_name,
        'role': sender.role,
        'is_system': sender.is_system,
    }


def messaging_error_response(error: MessagingError):
    return json_error(error.message, status=error.status)


# ==========================================
# CONVERSATIONS
# ==========================================

@require_http_methods(["GET", "POST"])
@api_login_required
def conversations(request):
    """List the user's conversations, or start one."""
    user = request.user

    if request.method == 'GET':
        return JsonResponse({
            'conversations': [serialize_conversation(c, user) for c in visible_conversations(user)]
        })

    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    details = []
    ids = {}
    for field in ('artisan_id', 'client_id', 'product_id', 'order_id'):
        raw = data.get(field)
        ids[field] = to_int(raw)
        if raw not in (None, '') and ids[field] is None:
            details.append({'field': field, 'message': f'{field} must be an integer'})
    if details:
        return json_error('Validation failed', details=details)

    product = Product.objects.filter(pk=ids['product_id']).first() if ids['product_id'] else None
    order = Order.objects.filter(pk=ids['order_id']).first() if ids['order_id'] else None

    try:
        conversation, created = start_conversation(
            user,
            artisan_id=ids['artisan_id'],
            client_id=ids['client_id'],
            product=product,
            order=order,
        )
    except MessagingError as e:
        return messaging_error_response(e)

    return JsonResponse(
        {'conversation': serialize_conversation(conversation, user)},
        status=201 if created else 200,
    )


@require_http_methods(["DELETE"])
@api_login_required
def delete_conversation(request, conversation_id):
    try:
        removed = delete_conversation_for(request.user, conversation_id)
    except MessagingError as e:
        return messaging_error_response(e)

    return JsonResponse({
        'message': 'Conversation deleted',
        'permanently_deleted': removed,
    })


@require_http_methods(["GET", "POST"])
@api_login_required
def conversation_messages(request, conversation_id):
    """Read a conversation (marking it read) or post a message to it."""
    user = request.user

    try:
        conversation = get_conversation_for(
            user, conversation_id, missing_status=403 if request.method == 'GET' else 404
        )
    except MessagingError as e:
        return messaging_error_response(e)

    if request.method == 'GET':
        mark_conversation_read(conversation, user)
        messages = conversation.messages.select_related('sender').order_by('created_at', 'pk')
        return JsonResponse({'messages': [serialize_message(m) for m in messages]})

    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    try:
        message = send_user_message(conversation, user, data.get('message'))
    except MessagingError as e:
        return messaging_error_response(e)

    return JsonResponse({'message': serialize_message(message)}, status=201)


@require_http_methods(["GET"])
@api_login_required
def unread_count(request):
    return JsonResponse({'count': unread_message_count(request.user)})


# ==========================================
# NOTIFICATIONS
# ==========================================

@require_http_methods(["GET"])
@api_login_required
def notification_list(request):
    """50 most recent notifications, with the page each one links to."""
    user = request.user
    queryset = Notification.objects.filter(user=user)
    if request.GET.get('unread') == 'true':
        queryset = queryset.filter(is_read=False)
    notifications = list(queryset.order_by('-created_at', '-pk')[:50])

    review_ids = [
        n.related_id for n in notifications
        if n.notification_type in Notification.REVIEW_TYPES and n.related_id
    ]
    review_products = dict(
        Review.objects.filter(pk__in=review_ids).values_list('pk', 'product_id')
    ) if review_ids else {}

    payload = []
    for notification in notifications:
        product_id = None
        if notification.notification_type in Notification.REVIEW_TYPES:
            product_id = review_products.get(notification.related_id, notification.related_id)
        payload.append(notification.to_dict(role=user.role, product_id=product_id))

    return JsonResponse({'notifications': payload})


@require_http_methods(["GET"])
@api_login_required
def notification_count(request):
    count = Notification.objects.filter(user=request.user, is_read=False).count()
    return JsonResponse({'count': count})


@require_http_methods(["GET"])
@api_login_required
def notification_count_by_type(request):
    unread = Notification.objects.filter(user=request.user, is_read=False)
    messages = unread.filter(notification_type__in=Notification.MESSAGE_TYPES).count()
    other = unread.exclude(notification_type__in=Notification.MESSAGE_TYPES).count()
    return JsonResponse({'messages': messages, 'other': other})


@require_http_methods(["PUT"])
@api_login_required
def notification_mark_read(request, notification_id):
    updated = Notification.objects.filter(pk=notification_id, user=request.user).update(
        is_read=True, read_at=timezone.now()
    )
    if not updated:
        return json_error('Notification not found', status=404)
    return JsonResponse({'message': 'Notification marked as read'})


@require_http_methods(["PUT"])
@api_login_required
def notification_mark_all_read(request):
    updated = Notification.objects.filter(user=request.user, is_read=False).update(
        is_read=True, read_at=timezone.now()
    )
    return JsonResponse({'message': 'All notifications marked as read', 'updated': updated})


@require_http_methods(["PUT"])
@api_login_required
def notification_mark_read_by_type(request):
    try:
        data, _files = parse_body(request)
        types = get_list(data, 'types')
    except BadRequest as e:
        return json_error(str(e))

    if not types or not all(isinstance(t, str) and t.strip() for t in types):
        return json_error('Validation failed', details=[
            {'field': 'types', 'message': 'types must be a non-empty list of strings'}
        ])

    updated = Notification.objects.filter(
        user=request.user, is_read=False, notification_type__in=types
    ).update(is_read=True, read_at=timezone.now())

    return JsonResponse({'message': 'Notifications marked as read', 'updated': updated})

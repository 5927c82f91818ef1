"""
Conversation & system message service
Automated messages for order events and client/artisan conversations
"""

import logging

from django.contrib.auth import get_user_model
from django.db import transaction, DatabaseError
from django.db.models import Count, Q, OuterRef, Subquery
from django.utils import timezone

from apps.shop.services.utils import truncate_text
from core.utils.api import to_text
from ..models import Conversation, ConversationDeletion, Message, Notification
from .notifications import create_notification, NotificationError

logger = logging.getLogger(__name__)


class MessagingError(Exception):
    """Messaging operation rejected; carries the HTTP status to report"""

    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status


# ==========================================
# SYSTEM USER & CONVERSATIONS
# ==========================================

def get_system_user():
    return get_user_model().objects.get_system_user()


def get_or_create_conversation(client, artisan, product=None, order=None):
    """
    Reuse the most recent conversation between client and artisan or
    create one. A given product/order is attached to the conversation.

    Returns:
        Tuple of (conversation, created)
    """
    conversation = (
        Conversation.objects
        .filter(client=client, artisan=artisan)
        .order_by('-last_message_at')
        .first()
    )

    if conversation is not None:
        update_fields = []
        if product is not None:
            conversation.product = product
            update_fields.append('product')
        if order is not None:
            conversation.order = order
            update_fields.append('order')
        if update_fields:
            conversation.save(update_fields=update_fields)
        return conversation, False

    conversation = Conversation.objects.create(
        client=client, artisan=artisan, product=product, order=order
    )
    return conversation, True


def get_or_create_system_conversation(user, order=None):
    """
    System conversations always hold the system user as `artisan` and the
    real recipient as `client`, whatever the recipient's role.
    """
    conversation, _created = get_or_create_conversation(user, get_system_user(), order=order)
    return conversation


def _restore_for(conversation, user):
    """A new message makes a conversation the user deleted visible again."""
    ConversationDeletion.objects.filter(conversation=conversation, user=user).delete()


def send_system_message(conversation, text: str) -> Message:
    """
    Post an automated message and notify the recipient.
    A failed notification never prevents the message.
    """
    system_user = get_system_user()

    message = Message.objects.create(conversation=conversation, sender=system_user, body=text)
    conversation.touch()

    recipient = conversation.client
    _restore_for(conversation, recipient)

    try:
        with transaction.atomic():
            create_notification(
                recipient,
                'new_message',
                'New system message',
                truncate_text(text, 100),
                conversation.pk,
            )
    except (DatabaseError, NotificationError) as e:
        logger.error(f'System message notification failed for conversation {conversation.pk}: {str(e)}')

    return message


# ==========================================
# ORDER STATUS MESSAGES
# ==========================================

def client_status_text(order, status: str) -> str:
    number = order.order_number or order.pk
    if status == 'shipped' and order.tracking_number:
        shipped = f'Your order #{number} has been shipped. Tracking number: {order.tracking_number}.'
    else:
        shipped = f'Your order #{number} has been shipped.'

    texts = {
        'paid': f'Your payment for order #{number} has been confirmed. Your order is being prepared.',
        'preparing': f'Your order #{number} is being prepared.',
        'shipped': shipped,
        'delivered': f"Your order #{number} has been delivered. Don't forget to leave a review!",
        'cancelled': f'Your order #{number} has been cancelled.',
    }
    return texts.get(status, f'The status of your order #{number} has been updated: {status}.')


def artisan_order_text(order, kind: str) -> str:
    number = order.order_number or order.pk
    texts = {
        'new_order': (
            f'You have a new order #{number} to process. Payment has been confirmed, '
            f'you can now prepare and ship the package.'
        ),
        'preparing': f'Order #{number} is being prepared. You can now ship it.',
    }
    return texts.get(kind, f'You have a new order #{number} to process.')


def send_order_status_message_to_client(order, status: str) -> Message:
    conversation = get_or_create_system_conversation(order.user, order=order)
    message = send_system_message(conversation, client_status_text(order, status))
    logger.info(f'Status message ({status}) sent to client of order {order.order_number}')
    return message


def send_order_message_to_artisans(order, kind: str = 'new_order') -> int:
    """
    Send one system message to each distinct artisan with products in
    the order. Returns the number of artisans messaged.
    """
    text = artisan_order_text(order, kind)
    artisans = list(order.artisan_users())

    if not artisans:
        logger.info(f'No artisan found for order {order.order_number}')
        return 0

    for artisan in artisans:
        conversation = get_or_create_system_conversation(artisan, order=order)
        send_system_message(conversation, text)

    logger.info(f'{kind} message sent to {len(artisans)} artisan(s) for order {order.order_number}')
    return len(artisans)


# ==========================================
# USER CONVERSATIONS
# ==========================================

def start_conversation(user, artisan_id=None, client_id=None, product=None, order=None):
    """
    Open (or reuse) a conversation between a client and an artisan.

    Raises:
        MessagingError: 403 for other roles, 400 missing id, 404 unknown party
    """
    User = get_user_model()

    if user.role == 'client':
        if not artisan_id:
            raise MessagingError('artisan_id is required for clients')
        artisan = User.objects.filter(
            pk=artisan_id, role='artisan', artisan_profile__isnull=False
        ).first()
        if artisan is None:
            raise MessagingError('Artisan not found', status=404)
        client = user
        recipient = artisan
    elif user.role == 'artisan':
        if not client_id:
            raise MessagingError('client_id is required for artisans')
        client = User.objects.filter(pk=client_id, role='client', is_system=False).first()
        if client is None:
            raise MessagingError('Client not found', status=404)
        artisan = user
        recipient = client
    else:
        raise MessagingError('Only clients and artisans can start conversations', status=403)

    with transaction.atomic():
        conversation, created = get_or_create_conversation(client, artisan, product=product, order=order)
        _restore_for(conversation, user)
        if created:
            create_notification(
                recipient,
                'new_message',
                'New conversation',
                'A new conversation has been started.',
                conversation.pk,
            )

    if created:
        logger.info(f'Conversation {conversation.pk} started by {user.email}')
    return conversation, created


def get_conversation_for(user, conversation_id, missing_status=404):
    """
    Return a conversation the user takes part in.

    Raises:
        MessagingError: missing conversation, or user not a participant (403)
    """
    conversation = (
        Conversation.objects
        .select_related('client', 'artisan', 'product')
        .filter(pk=conversation_id)
        .first()
    )
    if conversation is None:
        raise MessagingError('Conversation not found', status=missing_status)
    if not conversation.has_participant(user):
        raise MessagingError('Access denied to this conversation', status=403)
    return conversation


def send_user_message(conversation, sender, body: str) -> Message:
    """
    Raises:
        MessagingError: empty body, or the conversation is a system one
    """
    body = to_text(body)
    if not body:
        raise MessagingError('Message cannot be empty')
    if conversation.is_system:
        raise MessagingError('You cannot send messages to the automated system', status=403)

    recipient = conversation.other_participant(sender)
    preview = truncate_text(body, 50)

    with transaction.atomic():
        message = Message.objects.create(conversation=conversation, sender=sender, body=body)
        conversation.touch()
        _restore_for(conversation, recipient)
        create_notification(
            recipient,
            'new_message',
            'New message',
            f'{sender.get_full_name()} sent you a message: {preview}',
            conversation.pk,
        )

    return message


def mark_conversation_read(conversation, user) -> int:
    """
    Mark the other party's messages and the matching message
    notifications as read. Returns the number of messages marked.
    """

    updated = (
        conversation.messages
        .filter(is_read=False)
        .exclude(sender=user)
        .update(is_read=True)
    )
    Notification.objects.filter(
        user=user,
        notification_type='new_message',
        related_id=conversation.pk,
        is_read=False,
    ).update(is_read=True, read_at=timezone.now())
    return updated


def visible_conversations(user):
    """Conversations of a user they have not deleted, most recent first"""
    last_message = Message.objects.filter(conversation=OuterRef('pk')).order_by('-created_at', '-pk')

    return (
        Conversation.objects
        .filter(Q(client=user) | Q(artisan=user))
        .exclude(deletions__user=user)
        .select_related('client', 'artisan', 'product')
        .annotate(
            unread_count=Count(
                'messages',
                filter=Q(messages__is_read=False) & ~Q(messages__sender=user),
                distinct=True,
            ),
            last_message=Subquery(last_message.values('body')[:1]),
        )
        .order_by('-last_message_at')
    )


def unread_message_count(user) -> int:
    return (
        Message.objects
        .filter(Q(conversation__client=user) | Q(conversation__artisan=user))
        .filter(is_read=False)
        .exclude(sender=user)
        .exclude(conversation__deletions__user=user)
        .count()
    )


def delete_conversation_for(user, conversation_id) -> bool:
    """
    Hide a conversation for one participant. Once both participants have
    deleted it, the conversation and its messages are removed.

    Returns:
        True if the conversation was permanently deleted

    Raises:
        MessagingError: 404 if missing or the user is not a participant
    """
    conversation = Conversation.objects.filter(pk=conversation_id).first()
    if conversation is None or not conversation.has_participant(user):
        raise MessagingError('Conversation not found', status=404)

    with transaction.atomic():
        deletion, created = ConversationDeletion.objects.get_or_create(
            conversation=conversation, user=user
        )
        if not created:
            deletion.deleted_at = timezone.now()
            deletion.save(update_fields=['deleted_at'])

        participants = {conversation.client_id, conversation.artisan_id}
        deleted_by = set(conversation.deletions.values_list('user_id', flat=True))

        if participants <= deleted_by:
            conversation.delete()
            logger.info(f'Conversation {conversation_id} deleted by both participants')
            return True

    return False

"""
Messaging App Models
Conversations between clients and artisans, system messages and notifications
"""

from django.conf import settings
from django.db import models
from django.utils import timezone

User = settings.AUTH_USER_MODEL


# ==========================================
# CONVERSATIONS & MESSAGES
# ==========================================

class Conversation(models.Model):
    """
    Two-party conversation. For system conversations `artisan` holds the
    system user and `client` the real recipient, whatever their role.
    """
    client = models.ForeignKey(User, on_delete=models.CASCADE, related_name='client_conversations')
    artisan = models.ForeignKey(User, on_delete=models.CASCADE, related_name='artisan_conversations')

    product = models.ForeignKey(
        'shop.Product',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='conversations'
    )
    order = models.ForeignKey(
        'shop.Order',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='conversations'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    last_message_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = "Conversation"
        verbose_name_plural = "Conversations"
        ordering = ['-last_message_at']
        indexes = [
            models.Index(fields=['client', 'artisan'], name='messaging_c_client__3b9e27_idx'),
        ]

    def __str__(self):
        return f"Conversation #{self.pk}: {self.client} / {self.artisan}"

    @property
    def is_system(self):
        return self.artisan.is_system

    def has_participant(self, user):
        return user.pk in (self.client_id, self.artisan_id)

    def other_participant(self, user):
        return self.artisan if user.pk == self.client_id else self.client

    def touch(self):
        self.last_message_at = timezone.now()
        self.save(update_fields=['last_message_at'])


class ConversationDeletion(models.Model):
    """
    Marks a conversation as deleted for one participant.
    The conversation is removed once both participants have deleted it.
    """
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='deletions')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='conversation_deletions')
    deleted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = "Conversation Deletion"
        verbose_name_plural = "Conversation Deletions"
        constraints = [
            models.UniqueConstraint(fields=['conversation', 'user'], name='unique_conversation_deletion'),
        ]

    def __str__(self):
        return f"{self.user} deleted conversation #{self.conversation_id}"


class Message(models.Model):
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sent_messages')
    body = models.TextField()
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = "Message"
        verbose_name_plural = "Messages"
        ordering = ['created_at', 'pk']

    def __str__(self):
        return f"{self.sender}: {self.body[:50]}"


# ==========================================
# NOTIFICATIONS
# ==========================================

class Notification(models.Model):
    """
    In-app notifications for every role
    """

    TYPE_CHOICES = [
        ('new_message', 'New Message'),
        ('new_conversation', 'New Conversation'),
        ('order_status_changed', 'Order Status Changed'),
        ('payment_validated', 'Payment Validated'),
        ('order_preparing', 'Order Preparing'),
        ('order_shipped', 'Order Shipped'),
        ('order_delivered', 'Order Delivered'),
        ('new_order', 'New Order'),
        ('new_review', 'New Review'),
        ('review_reply', 'Review Reply'),
    ]

    MESSAGE_TYPES = ('new_message', 'new_conversation')
    REVIEW_TYPES = ('new_review', 'review_reply')

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')

    notification_type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    title = models.CharField(max_length=200)
    message = models.TextField()
    related_id = models.PositiveIntegerField(null=True, blank=True)

    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ['-created_at', '-pk']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='messaging_n_user_id_6f0d4b_idx'),
        ]

    def __str__(self):
        return f"{self.title} - {'Read' if self.is_read else 'Unread'}"

    def redirect_to(self, role, product_id=None):
        """Frontend route the notification links to for a given role"""
        artisan_or_orders = '/artisan' if role == 'artisan' else '/orders'
        product_page = f'/products/{product_id}' if product_id else '/products'

        redirects = {
            'new_message': '/messages',
            'new_conversation': '/messages',
            'order_status_changed': '/orders',
            'payment_validated': artisan_or_orders,
            'order_preparing': artisan_or_orders,
            'order_shipped': '/orders',
            'order_delivered': '/orders',
            'new_order': '/admin',
            'new_review': product_page,
            'review_reply': product_page,
        }

        if self.notification_type in redirects:
            return redirects[self.notification_type]
        if role == 'admin':
            return '/admin'
        return artisan_or_orders

    def to_dict(self, role=None, product_id=None):
        return {
            'id': self.pk,
            'type': self.notification_type,
            'title': self.title,
            'message': self.message,
            'related_id': self.related_id,
            'is_read': self.is_read,
            'read_at': self.read_at.isoformat() if self.read_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'redirect_to': self.redirect_to(role, product_id),
        }

"""
Messaging App Django Admin
"""

from django.contrib import admin, messages
from django.utils import timezone
from django.utils.html import format_html

from .models import Conversation, ConversationDeletion, Message, Notification


class MessageInline(admin.TabularInline):
    """Show messages inside Conversation admin"""
    model = Message
    extra = 0
    readonly_fields = ['sender', 'body', 'is_read', 'created_at']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class ConversationDeletionInline(admin.TabularInline):
    model = ConversationDeletion
    extra = 0
    readonly_fields = ['user', 'deleted_at']


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ['id', 'client', 'artisan', 'system_badge', 'product', 'order', 'last_message_at']
    list_filter = ['artisan__is_system', 'created_at']
    search_fields = ['client__email', 'artisan__email', 'product__name', 'order__order_number']
    readonly_fields = ['created_at', 'last_message_at']
    inlines = [MessageInline, ConversationDeletionInline]

    def system_badge(self, obj):
        if obj.artisan.is_system:
            return format_html('<span style="color: gray;">⚙ System</span>')
        return format_html('<span style="color: green;">✉ Direct</span>')
    system_badge.short_description = 'Type'


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'user_email', 'notification_type', 'is_read', 'created_at']
    list_filter = ['notification_type', 'is_read', 'created_at']
    search_fields = ['title', 'message', 'user__email']
    readonly_fields = ['user', 'created_at', 'read_at']

    actions = ['mark_read']

    def user_email(self, obj):
        return obj.user.email
    user_email.short_description = 'User'

    def mark_read(self, request, queryset):
        count = queryset.filter(is_read=False).update(is_read=True, read_at=timezone.now())
        self.message_user(request, f'✓ Marked {count} notification(s) as read', messages.SUCCESS)
    mark_read.short_description = 'Mark selected notifications as read'

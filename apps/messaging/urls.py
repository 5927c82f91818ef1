from django.urls import path

from . import views

app_name = 'messaging'

urlpatterns = [
    # Conversations & messages
    path('messages/conversations/', views.conversations, name='conversations'),
    path('messages/conversations/<int:conversation_id>/', views.delete_conversation, name='conversation_delete'),
    path('messages/conversations/<int:conversation_id>/messages/', views.conversation_messages, name='conversation_messages'),
    path('messages/unread-count/', views.unread_count, name='unread_count'),

    # Notifications
    path('notifications/', views.notification_list, name='notifications'),
    path('notifications/count/', views.notification_count, name='notification_count'),
    path('notifications/count-by-type/', views.notification_count_by_type, name='notification_count_by_type'),
    path('notifications/read-all/', views.notification_mark_all_read, name='notification_read_all'),
    path('notifications/read-by-type/', views.notification_mark_read_by_type, name='notification_read_by_type'),
    path('notifications/<int:notification_id>/read/', views.notification_mark_read, name='notification_read'),
]

import pytest

from apps.messaging.models import Conversation, ConversationDeletion, Message, Notification
from apps.messaging.services.messages import (
    MessagingError, get_or_create_system_conversation, send_system_message, start_conversation,
)

pytestmark = pytest.mark.django_db

CONVERSATIONS = '/api/messages/conversations/'


def messages_url(conversation):
    return f'{CONVERSATIONS}{conversation.pk}/messages/'


@pytest.fixture
def conversation(client_user, artisan_user):
    conversation, _created = start_conversation(client_user, artisan_id=artisan_user.pk)
    return conversation


class TestStartConversation:

    def test_client_starts_with_artisan(self, api, client_user, artisan_user, product):
        response = api.post(CONVERSATIONS, {'artisan_id': artisan_user.pk, 'product_id': product.pk}, user=client_user)

        assert response.status_code == 201
        data = response.json()['conversation']
        assert data['other_user_email'] == 'potter@example.com'
        assert data['product_name'] == 'Blue vase'
        assert data['is_system'] is False

        notification = Notification.objects.get(user=artisan_user)
        assert notification.message == 'A new conversation has been started.'
        assert notification.related_id == data['id']

    def test_existing_conversation_is_reused(self, api, client_user, artisan_user, conversation, product):
        response = api.post(CONVERSATIONS, {'artisan_id': artisan_user.pk, 'product_id': product.pk}, user=client_user)

        assert response.status_code == 200
        assert response.json()['conversation']['id'] == conversation.pk
        conversation.refresh_from_db()
        assert conversation.product == product
        assert Notification.objects.filter(user=artisan_user).count() == 1

    def test_artisan_starts_with_client(self, api, client_user, artisan_user):
        response = api.post(CONVERSATIONS, {'client_id': client_user.pk}, user=artisan_user)

        assert response.status_code == 201
        assert Conversation.objects.get().client == client_user

    def test_client_needs_artisan_id(self, api, client_user):
        response = api.post(CONVERSATIONS, {}, user=client_user)

        assert response.status_code == 400

    def test_unknown_artisan_is_404(self, api, client_user, other_client):
        response = api.post(CONVERSATIONS, {'artisan_id': other_client.pk}, user=client_user)

        assert response.status_code == 404

    def test_admin_cannot_start(self, api, admin_user, artisan_user):
        response = api.post(CONVERSATIONS, {'artisan_id': artisan_user.pk}, user=admin_user)

        assert response.status_code == 403


class TestMessages:

    def test_send_message_notifies_recipient(self, api, client_user, artisan_user, conversation):
        text = 'Hello! Could you make this vase in green? ' * 3

        response = api.post(messages_url(conversation), {'message': text}, user=client_user)

        assert response.status_code == 201
        assert response.json()['message']['message'] == text.strip()
        notification = Notification.objects.filter(user=artisan_user).latest('pk')
        assert notification.message == f'Alice Martin sent you a message: {text.strip()[:50]}...'

    def test_numeric_message_is_sent_as_text(self, api, client_user, conversation):
        response = api.post(messages_url(conversation), {'message': 42}, user=client_user)

        assert response.status_code == 201
        assert response.json()['message']['message'] == '42'

    def test_empty_message_rejected(self, api, client_user, conversation):
        response = api.post(messages_url(conversation), {'message': '   '}, user=client_user)

        assert response.status_code == 400

    def test_non_participant_denied(self, api, other_client, conversation):
        assert api.post(messages_url(conversation), {'message': 'hi'}, user=other_client).status_code == 403
        assert api.get(messages_url(conversation), user=other_client).status_code == 403

    def test_missing_conversation(self, api, client_user):
        assert api.post(f'{CONVERSATIONS}999/messages/', {'message': 'hi'}, user=client_user).status_code == 404
        assert api.get(f'{CONVERSATIONS}999/messages/', user=client_user).status_code == 403

    def test_system_conversation_is_read_only(self, api, client_user):
        system_conversation = get_or_create_system_conversation(client_user)
        send_system_message(system_conversation, 'Your order has been shipped.')

        response = api.post(messages_url(system_conversation), {'message': 'thanks'}, user=client_user)

        assert response.status_code == 403

    def test_reading_marks_messages_and_notifications_read(self, api, client_user, artisan_user, conversation):
        api.post(messages_url(conversation), {'message': 'First'}, user=artisan_user)
        api.post(messages_url(conversation), {'message': 'Second'}, user=artisan_user)
        assert api.get('/api/messages/unread-count/', user=client_user).json()['count'] == 2

        response = api.get(messages_url(conversation), user=client_user)

        assert [m['message'] for m in response.json()['messages']] == ['First', 'Second']
        assert response.json()['messages'][0]['role'] == 'artisan'
        assert api.get('/api/messages/unread-count/', user=client_user).json()['count'] == 0
        assert not Notification.objects.filter(
            user=client_user, notification_type='new_message', is_read=False
        ).exists()

    def test_list_includes_unread_and_last_message(self, api, client_user, artisan_user, conversation):
        api.post(messages_url(conversation), {'message': 'Ready soon'}, user=artisan_user)

        conversations = api.get(CONVERSATIONS, user=client_user).json()['conversations']

        assert len(conversations) == 1
        assert conversations[0]['unread_count'] == 1
        assert conversations[0]['last_message'] == 'Ready soon'


class TestDeleteConversation:

    def test_deleting_hides_for_one_participant(self, api, client_user, artisan_user, conversation):
        response = api.delete(f'{CONVERSATIONS}{conversation.pk}/', user=client_user)

        assert response.status_code == 200
        assert response.json()['permanently_deleted'] is False
        assert api.get(CONVERSATIONS, user=client_user).json()['conversations'] == []
        assert len(api.get(CONVERSATIONS, user=artisan_user).json()['conversations']) == 1

    def test_deleted_by_both_is_removed(self, api, client_user, artisan_user, conversation):
        api.post(messages_url(conversation), {'message': 'bye'}, user=client_user)
        api.delete(f'{CONVERSATIONS}{conversation.pk}/', user=client_user)

        response = api.delete(f'{CONVERSATIONS}{conversation.pk}/', user=artisan_user)

        assert response.json()['permanently_deleted'] is True
        assert not Conversation.objects.filter(pk=conversation.pk).exists()
        assert not Message.objects.exists()

    def test_new_message_restores_for_recipient(self, api, client_user, artisan_user, conversation):
        api.delete(f'{CONVERSATIONS}{conversation.pk}/', user=client_user)

        api.post(messages_url(conversation), {'message': 'Your vase is ready'}, user=artisan_user)

        assert not ConversationDeletion.objects.filter(user=client_user).exists()
        assert len(api.get(CONVERSATIONS, user=client_user).json()['conversations']) == 1

    def test_outsider_gets_404(self, api, other_client, conversation):
        response = api.delete(f'{CONVERSATIONS}{conversation.pk}/', user=other_client)

        assert response.status_code == 404


def test_start_conversation_rejects_other_roles(admin_user, artisan_user):
    with pytest.raises(MessagingError) as exc:
        start_conversation(admin_user, artisan_id=artisan_user.pk)

    assert exc.value.status == 403

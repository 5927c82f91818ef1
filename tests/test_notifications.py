import pytest

from apps.messaging.models import Notification
from apps.messaging.services.notifications import (
    NotificationError, EmailService, create_notification,
)
from apps.shop.models import Review

pytestmark = pytest.mark.django_db


@pytest.fixture
def notifications(client_user):
    return [
        create_notification(client_user, 'new_message', 'New message', 'Hi', 1),
        create_notification(client_user, 'new_conversation', 'New conversation', 'Hello', 2),
        create_notification(client_user, 'order_shipped', 'Shipped', 'On its way', 3),
        create_notification(client_user, 'payment_validated', 'Paid', 'Thanks', 4),
    ]


class TestCreateNotification:

    def test_unknown_type_rejected(self, client_user):
        with pytest.raises(NotificationError):
            create_notification(client_user, 'carrier_pigeon', 'Title', 'Body')

    def test_missing_user_rejected(self):
        with pytest.raises(NotificationError):
            create_notification(None, 'new_message', 'Title', 'Body')


class TestRedirects:

    @pytest.mark.parametrize('notification_type, role, expected', [
        ('new_message', 'client', '/messages'),
        ('order_shipped', 'client', '/orders'),
        ('payment_validated', 'artisan', '/artisan'),
        ('payment_validated', 'client', '/orders'),
        ('order_preparing', 'artisan', '/artisan'),
        ('new_order', 'admin', '/admin'),
    ])
    def test_role_aware_redirect(self, notification_type, role, expected):
        notification = Notification(notification_type=notification_type)

        assert notification.redirect_to(role) == expected

    def test_review_redirect_points_at_product(self, api, artisan_user, client_user, product):
        review = Review.objects.create(user=client_user, product=product, rating=5)
        create_notification(artisan_user, 'new_review', 'New review', 'Five stars', review.pk)

        data = api.get('/api/notifications/', user=artisan_user).json()['notifications']

        assert data[0]['type'] == 'new_review'
        assert data[0]['redirect_to'] == f'/products/{product.pk}'


class TestEndpoints:

    def test_list_newest_first(self, api, client_user, notifications):
        data = api.get('/api/notifications/', user=client_user).json()['notifications']

        assert [n['related_id'] for n in data] == [4, 3, 2, 1]
        assert data[0]['redirect_to'] == '/orders'

    def test_unread_filter(self, api, client_user, notifications):
        notifications[0].is_read = True
        notifications[0].save()

        data = api.get('/api/notifications/', user=client_user, params={'unread': 'true'}).json()['notifications']

        assert len(data) == 3

    def test_counts(self, api, client_user, notifications):
        assert api.get('/api/notifications/count/', user=client_user).json() == {'count': 4}
        assert api.get('/api/notifications/count-by-type/', user=client_user).json() == {'messages': 2, 'other': 2}

    def test_mark_read(self, api, client_user, notifications):
        response = api.put(f'/api/notifications/{notifications[0].pk}/read/', user=client_user)

        assert response.status_code == 200
        notifications[0].refresh_from_db()
        assert notifications[0].is_read is True
        assert notifications[0].read_at is not None

    def test_cannot_mark_someone_elses(self, api, other_client, notifications):
        response = api.put(f'/api/notifications/{notifications[0].pk}/read/', user=other_client)

        assert response.status_code == 404

    def test_mark_all_read(self, api, client_user, notifications):
        response = api.put('/api/notifications/read-all/', user=client_user)

        assert response.json()['updated'] == 4
        assert api.get('/api/notifications/count/', user=client_user).json() == {'count': 0}

    def test_mark_read_by_type(self, api, client_user, notifications):
        response = api.put(
            '/api/notifications/read-by-type/',
            {'types': ['new_message', 'new_conversation']},
            user=client_user,
        )

        assert response.json()['updated'] == 2
        assert api.get('/api/notifications/count-by-type/', user=client_user).json() == {'messages': 0, 'other': 2}

    @pytest.mark.parametrize('payload', [{}, {'types': []}, {'types': [1, 2]}, {'types': 'new_message'}])
    def test_read_by_type_validation(self, api, client_user, payload):
        response = api.put('/api/notifications/read-by-type/', payload, user=client_user)

        if payload.get('types') == 'new_message':
            # A single string is accepted as a one-item list
            assert response.status_code == 200
        else:
            assert response.status_code == 400

    def test_requires_authentication(self, api):
        assert api.get('/api/notifications/').status_code == 401


class TestEmailService:

    def test_mock_mode_sends_nothing(self, mailoutbox, make_order, product):
        service = EmailService()
        service.use_mock = True

        assert service.send_order_status_update(make_order([(product, 1)])) is True
        assert len(mailoutbox) == 0

    def test_real_mode_uses_django_mail(self, mailoutbox, make_order, product):
        service = EmailService()
        service.use_mock = False
        order = make_order([(product, 1)])

        assert service.send_order_status_update(order) is True
        assert len(mailoutbox) == 1
        assert mailoutbox[0].subject == f'Order Update - #{order.order_number}'
        assert mailoutbox[0].to == ['alice@example.com']

    def test_send_failure_returns_false(self, monkeypatch):
        def broken(*args, **kwargs):
            raise OSError('connection refused')

        monkeypatch.setattr('apps.messaging.services.notifications.send_artisashop_email', broken)
        service = EmailService()
        service.use_mock = False

        assert service.send_email('alice@example.com', 'Hi', 'Body') is False

    def test_status_email_has_html_alternative(self, mailoutbox, make_order, product):
        service = EmailService()
        service.use_mock = False
        order = make_order([(product, 1)])

        service.send_order_status_update(order)

        html, mimetype = mailoutbox[0].alternatives[0]
        assert mimetype == 'text/html'
        assert f'#{order.order_number}' in html
        assert '25.00€' in html

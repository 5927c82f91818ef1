from decimal import Decimal

import pytest
import requests

from apps.messaging.models import Message
from apps.shop.models import Order, Payment
from apps.shop.services.orders import transition_order
from apps.shop.services.payments import StripeService, PaymentGatewayError, payment_service

pytestmark = pytest.mark.django_db


@pytest.fixture(autouse=True)
def mock_payments(monkeypatch):
    monkeypatch.setattr(payment_service, 'use_mock', True)


@pytest.fixture
def order(make_order, product):
    # 20.00 + 5.00 shipping
    return make_order([(product, 1)])


def create_intent(api, user, order, amount=None):
    return api.post('/api/payment/create-intent/', {
        'order_id': order.pk,
        'amount': str(amount if amount is not None else order.total),
    }, user=user)


class TestCreateIntent:

    def test_creates_pending_payment(self, api, client_user, order):
        response = create_intent(api, client_user, order)

        assert response.status_code == 200
        body = response.json()
        assert body['clientSecret'].startswith(body['payment_intent_id'])
        payment = Payment.objects.get(pk=body['payment_id'])
        assert payment.status == 'pending'
        assert payment.amount == Decimal('25.00')

    def test_amount_within_tolerance_accepted(self, api, client_user, order):
        response = create_intent(api, client_user, order, amount='25.01')

        assert response.status_code == 200

    def test_amount_mismatch_rejected(self, api, client_user, order):
        response = create_intent(api, client_user, order, amount='24.50')

        assert response.status_code == 400
        assert not Payment.objects.exists()

    def test_other_clients_order_is_404(self, api, other_client, order):
        response = create_intent(api, other_client, order)

        assert response.status_code == 404

    def test_paid_order_rejected(self, api, client_user, order):
        transition_order(order, 'paid')

        response = create_intent(api, client_user, order)

        assert response.status_code == 400
        assert response.json()['error'] == 'Order is already paid'

    @pytest.mark.parametrize('amount', ['NaN', 'Infinity', '-Infinity', 'abc'])
    def test_non_finite_amount_rejected(self, api, client_user, order, amount):
        response = create_intent(api, client_user, order, amount=amount)

        assert response.status_code == 400
        assert response.json()['details'][0]['field'] == 'amount'
        assert not Payment.objects.exists()

    def test_rate_limited_after_three_attempts(self, api, client_user, order):
        for _ in range(3):
            assert create_intent(api, client_user, order).status_code == 200

        assert create_intent(api, client_user, order).status_code == 429


class TestConfirm:

    def test_confirm_marks_order_paid_and_messages_artisan(self, api, client_user, artisan_user, order):
        intent_id = create_intent(api, client_user, order).json()['payment_intent_id']

        response = api.post('/api/payment/confirm/', {'payment_intent_id': intent_id}, user=client_user)

        assert response.status_code == 200
        order.refresh_from_db()
        assert order.status == 'paid'
        assert order.payment_status == 'paid'
        assert Payment.objects.get(payment_intent_id=intent_id).status == 'succeeded'
        assert Message.objects.filter(conversation__client=artisan_user).count() == 1

    def test_confirm_twice_is_idempotent(self, api, client_user, artisan_user, order):
        intent_id = create_intent(api, client_user, order).json()['payment_intent_id']

        api.post('/api/payment/confirm/', {'payment_intent_id': intent_id}, user=client_user)
        response = api.post('/api/payment/confirm/', {'payment_intent_id': intent_id}, user=client_user)

        assert response.status_code == 200
        assert Message.objects.filter(conversation__client=artisan_user).count() == 1

    def test_unsucceeded_intent_rejected(self, api, client_user, order, monkeypatch):
        intent_id = create_intent(api, client_user, order).json()['payment_intent_id']
        monkeypatch.setattr(
            payment_service, 'retrieve_payment_intent',
            lambda intent: (True, {'id': intent, 'status': 'requires_payment_method'}),
        )

        response = api.post('/api/payment/confirm/', {'payment_intent_id': intent_id}, user=client_user)

        assert response.status_code == 400
        assert Order.objects.get(pk=order.pk).status == 'pending'

    def test_unknown_intent_is_404(self, api, client_user, order):
        response = api.post('/api/payment/confirm/', {'payment_intent_id': 'pi_unknown'}, user=client_user)

        assert response.status_code == 404

    def test_numeric_intent_id_is_looked_up_as_text(self, api, client_user, order):
        response = api.post('/api/payment/confirm/', {'payment_intent_id': 1}, user=client_user)

        assert response.status_code == 404

    def test_missing_intent_id_is_400(self, api, client_user):
        response = api.post('/api/payment/confirm/', {}, user=client_user)

        assert response.status_code == 400


class TestPaymentStatus:

    def test_no_payment_yet(self, api, client_user, order):
        response = api.get(f'/api/payment/status/{order.pk}/', user=client_user)

        assert response.status_code == 200
        assert response.json()['payment'] is None

    def test_latest_payment_for_owner_and_admin(self, api, client_user, admin_user, order):
        intent_id = create_intent(api, client_user, order).json()['payment_intent_id']

        for user in (client_user, admin_user):
            response = api.get(f'/api/payment/status/{order.pk}/', user=user)
            assert response.json()['payment']['payment_intent_id'] == intent_id

    def test_other_user_denied(self, api, other_client, order):
        response = api.get(f'/api/payment/status/{order.pk}/', user=other_client)

        assert response.status_code == 403


class FakeResponse:

    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f'{self.status_code} error', response=self)

    def json(self):
        return self.payload


class TestStripeService:

    @pytest.fixture
    def live_service(self, monkeypatch):
        monkeypatch.setenv('STRIPE_SECRET_KEY', 'sk_test_123')
        monkeypatch.setenv('USE_MOCK_PAYMENTS', 'False')
        return StripeService()

    def test_without_key_falls_back_to_mock(self, monkeypatch):
        monkeypatch.delenv('STRIPE_SECRET_KEY', raising=False)
        monkeypatch.setenv('USE_MOCK_PAYMENTS', 'False')

        assert StripeService().use_mock is True

    def test_amount_sent_in_cents(self, live_service, monkeypatch):
        calls = {}

        def fake_post(url, headers=None, data=None, timeout=None):
            calls.update(url=url, headers=headers, data=data)
            return FakeResponse({
                'id': 'pi_live', 'client_secret': 'pi_live_secret', 'amount': 2550, 'status': 'requires_payment_method'
            })

        monkeypatch.setattr(requests, 'post', fake_post)

        success, data = live_service.create_payment_intent(Decimal('25.50'), 7)

        assert success is True
        assert data['id'] == 'pi_live'
        assert data['amount'] == Decimal('25.50')
        assert calls['data']['amount'] == 2550
        assert calls['data']['currency'] == 'eur'
        assert calls['data']['metadata[order_id]'] == '7'
        assert calls['headers']['Authorization'] == 'Bearer sk_test_123'

    def test_gateway_error_is_reported(self, live_service, monkeypatch):
        def fake_post(url, headers=None, data=None, timeout=None):
            return FakeResponse({'error': {'message': 'Your card was declined.'}}, status_code=402)

        monkeypatch.setattr(requests, 'post', fake_post)

        success, data = live_service.create_payment_intent(Decimal('10'), 1)

        assert success is False
        assert 'Your card was declined.' in data['error']

    def test_timeout_raises_gateway_error(self, live_service, monkeypatch):
        def fake_get(url, headers=None, params=None, timeout=None):
            raise requests.exceptions.Timeout()

        monkeypatch.setattr(requests, 'get', fake_get)

        with pytest.raises(PaymentGatewayError):
            live_service._make_request('GET', '/payment_intents/pi_1')

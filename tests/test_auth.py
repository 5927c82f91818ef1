import pytest
from django.core.cache import cache

from apps.shop.models import ArtisanProfile
from apps.users.decorators import check_rate_limit
from apps.users.models import CustomUser
from apps.users.tokens import issue_token, verify_token, TokenError

pytestmark = pytest.mark.django_db


def register_payload(**overrides):
    data = {
        'email': 'new@example.com',
        'password': 'secret123',
        'first_name': 'Nina',
        'last_name': 'Clay',
    }
    data.update(overrides)
    return data


class TestRegister:

    def test_registers_client_by_default(self, api):
        response = api.post('/api/auth/register/', register_payload())

        assert response.status_code == 201
        body = response.json()
        assert body['message'] == 'User created successfully'
        user = CustomUser.objects.get(pk=body['userId'])
        assert user.role == 'client'
        assert user.check_password('secret123')

    def test_artisan_gets_unapproved_profile(self, api):
        response = api.post('/api/auth/register/', register_payload(role='artisan'))

        assert response.status_code == 201
        profile = ArtisanProfile.objects.get(user_id=response.json()['userId'])
        assert profile.business_name == 'Nina Clay'
        assert profile.is_approved is False

    def test_duplicate_email_rejected(self, api, client_user):
        response = api.post('/api/auth/register/', register_payload(email='ALICE@example.com'))

        assert response.status_code == 400
        fields = [d['field'] for d in response.json()['details']]
        assert 'email' in fields

    def test_short_password_rejected(self, api):
        response = api.post('/api/auth/register/', register_payload(password='123'))

        assert response.status_code == 400

    def test_admin_role_cannot_be_requested(self, api):
        response = api.post('/api/auth/register/', register_payload(role='admin'))

        assert response.status_code == 400

    def test_invalid_phone_rejected(self, api):
        response = api.post('/api/auth/register/', register_payload(phone='not a phone'))

        assert response.status_code == 400


class TestLogin:

    def test_returns_token_and_user(self, api, client_user):
        response = api.post('/api/auth/login/', {'email': 'alice@example.com', 'password': 'secret123'})

        assert response.status_code == 200
        body = response.json()
        assert body['user']['email'] == 'alice@example.com'
        assert verify_token(body['token']) == client_user

        client_user.refresh_from_db()
        assert client_user.last_login is not None

    def test_wrong_password_is_401(self, api, client_user):
        response = api.post('/api/auth/login/', {'email': 'alice@example.com', 'password': 'wrong-pass'})

        assert response.status_code == 401
        assert response.json()['error'] == 'Invalid email or password'

    def test_inactive_account_is_401(self, api, client_user):
        client_user.is_active = False
        client_user.save()

        response = api.post('/api/auth/login/', {'email': 'alice@example.com', 'password': 'secret123'})

        assert response.status_code == 401
        assert response.json()['error'] == 'Account is deactivated'

    def test_artisan_login_includes_artisan_id(self, api, artisan_user):
        response = api.post('/api/auth/login/', {'email': 'potter@example.com', 'password': 'secret123'})

        assert response.json()['user']['artisan_id'] == artisan_user.artisan_profile.pk

    def test_failed_attempts_are_rate_limited(self, api, client_user):
        for _ in range(5):
            response = api.post('/api/auth/login/', {'email': 'alice@example.com', 'password': 'nope-nope'})
            assert response.status_code == 401

        response = api.post('/api/auth/login/', {'email': 'alice@example.com', 'password': 'secret123'})
        assert response.status_code == 429

    def test_successful_logins_are_not_counted(self, api, client_user):
        for _ in range(6):
            response = api.post('/api/auth/login/', {'email': 'alice@example.com', 'password': 'secret123'})
            assert response.status_code == 200


class TestTokens:

    def test_missing_token_is_401(self, api):
        response = api.get('/api/auth/me/')

        assert response.status_code == 401
        assert response.json()['error'] == 'Authentication required'

    def test_garbage_token_is_401(self, api, client):
        response = client.get('/api/auth/me/', HTTP_AUTHORIZATION='Bearer not-a-token')

        assert response.status_code == 401
        assert response.json()['error'] == 'Invalid token'

    def test_expired_token_rejected(self, client_user):
        token = issue_token(client_user)

        with pytest.raises(TokenError):
            verify_token(token, max_age=-1)

    def test_deactivated_user_token_rejected(self, api, client_user):
        token = issue_token(client_user)
        client_user.is_active = False
        client_user.save()

        with pytest.raises(TokenError, match='deactivated'):
            verify_token(token)


class TestProfile:

    def test_get_me(self, api, artisan_user):
        response = api.get('/api/auth/me/', user=artisan_user)

        assert response.status_code == 200
        user = response.json()['user']
        assert user['email'] == 'potter@example.com'
        assert user['business_name'] == 'Paul Potter'
        assert user['is_approved'] is False

    def test_update_fields(self, api, client_user):
        response = api.put('/api/auth/me/', {'first_name': 'Alicia', 'phone': '0612345678'}, user=client_user)

        assert response.status_code == 200
        client_user.refresh_from_db()
        assert client_user.first_name == 'Alicia'
        assert client_user.phone == '0612345678'

    def test_empty_update_is_400(self, api, client_user):
        response = api.put('/api/auth/me/', {}, user=client_user)

        assert response.status_code == 400
        assert response.json()['error'] == 'No fields to update'

    def test_blank_name_rejected(self, api, client_user):
        response = api.put('/api/auth/me/', {'last_name': '   '}, user=client_user)

        assert response.status_code == 400

    def test_email_taken_by_other_user(self, api, client_user, other_client):
        response = api.put('/api/auth/me/', {'email': 'bob@example.com'}, user=client_user)

        assert response.status_code == 400


class TestRateLimitCounter:

    def test_counts_up_to_the_limit(self):
        results = [check_rate_limit('ratelimit:test:1.2.3.4', 3, 60) for _ in range(5)]

        assert results == [True, True, True, False, False]
        assert cache.get('ratelimit:test:1.2.3.4') == 5

    def test_counter_survives_external_increment(self):
        check_rate_limit('ratelimit:test:5.6.7.8', 2, 60)
        cache.incr('ratelimit:test:5.6.7.8')

        assert check_rate_limit('ratelimit:test:5.6.7.8', 2, 60) is False

import json
from decimal import Decimal

import pytest
from django.core.cache import cache

from apps.shop.models import Category, Product
from apps.shop.services.orders import create_order
from apps.users.models import CustomUser
from apps.users.tokens import issue_token

PHONE = '0612345678'
ADDRESS = '12 rue des Artisans, Lyon'


class ApiClient:
    """Django test client sending JSON with a bearer token"""

    def __init__(self, client):
        self.client = client

    def _headers(self, user):
        if user is None:
            return {}
        return {'HTTP_AUTHORIZATION': f'Bearer {issue_token(user)}'}

    def get(self, path, user=None, params=None):
        return self.client.get(path, params or {}, **self._headers(user))

    def post(self, path, data=None, user=None):
        return self.client.post(
            path, json.dumps(data or {}), content_type='application/json', **self._headers(user)
        )

    def put(self, path, data=None, user=None):
        return self.client.put(
            path, json.dumps(data or {}), content_type='application/json', **self._headers(user)
        )

    def delete(self, path, user=None):
        return self.client.delete(path, **self._headers(user))


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api(client):
    return ApiClient(client)


@pytest.fixture
def make_user(db):
    def _make(email, role='client', password='secret123', **extra):
        extra.setdefault('first_name', email.split('@')[0].capitalize())
        extra.setdefault('last_name', 'Test')
        return CustomUser.objects.create_user(email=email, password=password, role=role, **extra)
    return _make


@pytest.fixture
def client_user(make_user):
    return make_user('alice@example.com', first_name='Alice', last_name='Martin')


@pytest.fixture
def other_client(make_user):
    return make_user('bob@example.com', first_name='Bob', last_name='Durand')


@pytest.fixture
def artisan_user(make_user):
    # post_save creates the artisan profile
    return make_user('potter@example.com', role='artisan', first_name='Paul', last_name='Potter')


@pytest.fixture
def other_artisan(make_user):
    return make_user('weaver@example.com', role='artisan', first_name='Wendy', last_name='Weaver')


@pytest.fixture
def admin_user(db):
    return CustomUser.objects.create_superuser(
        email='admin@example.com', password='secret123', first_name='Ada', last_name='Admin'
    )


@pytest.fixture
def category(db):
    return Category.objects.create(name='Ceramics', slug='ceramics')


@pytest.fixture
def make_product(artisan_user):
    def _make(artisan=None, name='Blue vase', price='20.00', stock=10, **extra):
        owner = artisan or artisan_user
        return Product.objects.create(
            artisan=owner.artisan_profile,
            name=name,
            price=Decimal(price),
            stock=stock,
            **extra
        )
    return _make


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def make_order(client_user):
    def _make(items, user=None):
        return create_order(
            user or client_user,
            [{'product_id': p.pk, 'quantity': q} for p, q in items],
            ADDRESS,
            PHONE,
        )
    return _make

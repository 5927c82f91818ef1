from decimal import Decimal

import pytest
from django.urls import reverse

from apps.shop.models import ArtisanProfile, Category, Order, Product, Review
from apps.shop.services.orders import mark_paid
from apps.users.models import CustomUser

pytestmark = pytest.mark.django_db


class TestAccess:

    @pytest.mark.parametrize('url', ['/api/admin/stats/', '/api/admin/users/', '/api/admin/orders/'])
    def test_admin_only(self, api, client_user, artisan_user, url):
        assert api.get(url).status_code == 401
        assert api.get(url, user=client_user).status_code == 403
        assert api.get(url, user=artisan_user).status_code == 403


class TestStats:

    def test_platform_stats(self, api, admin_user, client_user, product, make_order):
        mark_paid(make_order([(product, 2)]))
        make_order([(product, 1)])

        data = api.get('/api/admin/stats/', user=admin_user).json()

        stats = data['stats']
        assert stats['total_users'] == 3
        assert stats['total_clients'] == 1
        assert stats['total_artisans'] == 1
        assert stats['total_products'] == 1
        assert stats['total_orders'] == 2
        assert stats['paid_orders'] == 1
        assert stats['pending_orders'] == 1
        assert Decimal(stats['total_revenue']) == Decimal('45.00')
        assert data['monthly_revenue'][-1]['orders'] == 1


class TestUsers:

    def test_list_filters_by_role(self, api, admin_user, client_user, artisan_user):
        users = api.get('/api/admin/users/', user=admin_user, params={'role': 'artisan'}).json()['users']

        assert [u['email'] for u in users] == ['potter@example.com']

    def test_cannot_deactivate_self(self, api, admin_user):
        response = api.put(f'/api/admin/users/{admin_user.pk}/status/', {'is_active': False}, user=admin_user)

        assert response.status_code == 403

    def test_deactivate_user(self, api, admin_user, client_user):
        response = api.put(f'/api/admin/users/{client_user.pk}/status/', {'is_active': False}, user=admin_user)

        assert response.status_code == 200
        client_user.refresh_from_db()
        assert client_user.is_active is False

    def test_status_requires_flag(self, api, admin_user, client_user):
        response = api.put(f'/api/admin/users/{client_user.pk}/status/', {}, user=admin_user)

        assert response.status_code == 400

    def test_promote_to_artisan_creates_profile(self, api, admin_user, client_user):
        response = api.put(f'/api/admin/users/{client_user.pk}/role/', {'role': 'artisan'}, user=admin_user)

        assert response.status_code == 200
        assert ArtisanProfile.objects.filter(user=client_user).exists()

    def test_leaving_artisan_role_removes_profile(self, api, admin_user, artisan_user, product):
        response = api.put(f'/api/admin/users/{artisan_user.pk}/role/', {'role': 'client'}, user=admin_user)

        assert response.status_code == 200
        assert not ArtisanProfile.objects.filter(user=artisan_user).exists()
        assert not Product.objects.exists()

    def test_leaving_artisan_role_blocked_by_orders(self, api, admin_user, artisan_user, product, make_order):
        make_order([(product, 1)])

        response = api.put(f'/api/admin/users/{artisan_user.pk}/role/', {'role': 'client'}, user=admin_user)

        assert response.status_code == 400
        artisan_user.refresh_from_db()
        assert artisan_user.role == 'artisan'

    def test_invalid_role(self, api, admin_user, client_user):
        response = api.put(f'/api/admin/users/{client_user.pk}/role/', {'role': 'wizard'}, user=admin_user)

        assert response.status_code == 400

    def test_cannot_delete_self(self, api, admin_user):
        assert api.delete(f'/api/admin/users/{admin_user.pk}/', user=admin_user).status_code == 403

    def test_delete_user(self, api, admin_user, other_client):
        response = api.delete(f'/api/admin/users/{other_client.pk}/', user=admin_user)

        assert response.status_code == 200
        assert not CustomUser.objects.filter(pk=other_client.pk).exists()

    def test_delete_unknown_user(self, api, admin_user):
        assert api.delete('/api/admin/users/999/', user=admin_user).status_code == 404


class TestArtisans:

    def test_list_and_approve(self, api, admin_user, artisan_user, product):
        profile = artisan_user.artisan_profile

        artisans = api.get('/api/admin/artisans/', user=admin_user).json()['artisans']
        assert artisans[0]['product_count'] == 1
        assert artisans[0]['is_approved'] is False

        response = api.put(f'/api/admin/artisans/{profile.pk}/approve/', user=admin_user)

        assert response.status_code == 200
        profile.refresh_from_db()
        assert profile.is_approved is True

    def test_approve_unknown(self, api, admin_user):
        assert api.put('/api/admin/artisans/999/approve/', user=admin_user).status_code == 404


class TestCatalogModeration:

    def test_order_filters(self, api, admin_user, product, make_order):
        mark_paid(make_order([(product, 1)]))
        make_order([(product, 1)])

        paid = api.get('/api/admin/orders/', user=admin_user, params={'payment_status': 'paid'}).json()['orders']

        assert len(paid) == 1
        assert paid[0]['status'] == 'paid'

    def test_product_status_and_listing(self, api, admin_user, product):
        response = api.put(f'/api/admin/products/{product.pk}/status/', {'is_active': False}, user=admin_user)

        assert response.json()['is_active'] is False
        inactive = api.get('/api/admin/products/', user=admin_user, params={'is_active': 'false'}).json()['products']
        assert [p['id'] for p in inactive] == [product.pk]

    def test_delete_product_in_orders_rejected(self, api, admin_user, product, make_order):
        make_order([(product, 1)])

        response = api.delete(f'/api/admin/products/{product.pk}/', user=admin_user)

        assert response.status_code == 400
        assert Product.objects.filter(pk=product.pk).exists()

    def test_delete_product(self, api, admin_user, product, category):
        product.categories.add(category)

        assert api.delete(f'/api/admin/products/{product.pk}/', user=admin_user).status_code == 200
        assert not Product.objects.exists()
        assert Category.objects.filter(pk=category.pk).exists()

    def test_category_counts(self, api, admin_user, product, category):
        product.categories.add(category)
        Category.objects.create(name='Vases', slug='vases', parent=category)

        categories = api.get('/api/admin/categories/', user=admin_user).json()['categories']
        ceramics = next(c for c in categories if c['slug'] == 'ceramics')

        assert ceramics['product_count'] == 1
        assert ceramics['children_count'] == 1

    def test_category_in_use_cannot_be_deleted(self, api, admin_user, product, category):
        product.categories.add(category)

        assert api.delete(f'/api/admin/categories/{category.pk}/', user=admin_user).status_code == 400

    def test_category_with_children_cannot_be_deleted(self, api, admin_user, category):
        Category.objects.create(name='Vases', slug='vases', parent=category)

        assert api.delete(f'/api/admin/categories/{category.pk}/', user=admin_user).status_code == 400

    def test_category_update(self, api, admin_user, category):
        url = f'/api/admin/categories/{category.pk}/'

        assert api.put(url, {}, user=admin_user).json()['error'] == 'No fields to update'

        response = api.put(url, {'name': 'Pottery'}, user=admin_user)
        assert response.status_code == 200
        category.refresh_from_db()
        assert category.name == 'Pottery'
        assert category.slug == 'ceramics'

    def test_reviews_listing_and_delete(self, api, admin_user, client_user, product):
        review = Review.objects.create(user=client_user, product=product, rating=1, comment='Spam')

        reviews = api.get('/api/admin/reviews/', user=admin_user, params={'product_id': product.pk}).json()['reviews']
        assert reviews[0]['user_email'] == 'alice@example.com'

        assert api.delete(f'/api/admin/reviews/{review.pk}/', user=admin_user).status_code == 200
        assert api.delete(f'/api/admin/reviews/{review.pk}/', user=admin_user).status_code == 404


class TestAdminSite:

    def test_order_action_runs_lifecycle(self, client, admin_user, product, make_order):
        order = make_order([(product, 1)])
        client.force_login(admin_user)

        response = client.post(reverse('admin:shop_order_changelist'), {
            'action': 'mark_paid',
            '_selected_action': [order.pk],
        })

        assert response.status_code == 302
        order.refresh_from_db()
        assert order.status == Order.STATUS_PAID
        assert order.payment_status == Order.PAYMENT_PAID

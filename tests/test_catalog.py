from io import BytesIO

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image

from apps.shop.models import Category, Favorite, Product, Review
from apps.users.tokens import issue_token

pytestmark = pytest.mark.django_db


def png_upload(name='vase.png'):
    buffer = BytesIO()
    Image.new('RGB', (8, 8), color=(30, 90, 200)).save(buffer, format='PNG')
    return SimpleUploadedFile(name, buffer.getvalue(), content_type='image/png')


def auth(user):
    return {'HTTP_AUTHORIZATION': f'Bearer {issue_token(user)}'}


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path


class TestCategories:

    def test_tree_and_flat_list(self, api, category):
        Category.objects.create(name='Vases', slug='vases', parent=category)

        data = api.get('/api/categories/').json()

        assert len(data['flat']) == 2
        assert len(data['categories']) == 1
        assert data['categories'][0]['children'][0]['slug'] == 'vases'

    def test_admin_creates_category(self, api, admin_user, category):
        response = api.post('/api/categories/', {'name': 'Bowls', 'slug': 'bowls', 'parent_id': category.pk},
                            user=admin_user)

        assert response.status_code == 201
        assert Category.objects.get(slug='bowls').parent == category

    def test_slug_required(self, api, admin_user):
        response = api.post('/api/categories/', {'name': 'Bowls'}, user=admin_user)

        assert response.status_code == 400

    def test_unknown_parent_rejected(self, api, admin_user):
        response = api.post('/api/categories/', {'name': 'Bowls', 'slug': 'bowls', 'parent_id': 999},
                            user=admin_user)

        assert response.status_code == 400

    def test_non_admin_cannot_create(self, api, artisan_user):
        response = api.post('/api/categories/', {'name': 'Bowls', 'slug': 'bowls'}, user=artisan_user)

        assert response.status_code == 403


class TestProductListing:

    def test_only_active_products(self, api, make_product):
        make_product(name='Visible')
        make_product(name='Hidden', is_active=False)

        names = [p['name'] for p in api.get('/api/products/').json()['products']]

        assert names == ['Visible']

    def test_filters(self, api, make_product, category):
        cheap = make_product(name='Small bowl', price='8.00')
        make_product(name='Large vase', price='80.00', is_featured=True)
        cheap.categories.add(category)

        def names(**params):
            return [p['name'] for p in api.get('/api/products/', params=params).json()['products']]

        assert names(category=category.pk) == ['Small bowl']
        assert names(category='ceramics') == ['Small bowl']
        assert names(search='VASE') == ['Large vase']
        assert names(minPrice='10') == ['Large vase']
        assert names(maxPrice='10') == ['Small bowl']
        assert names(featured='true') == ['Large vase']
        assert len(names(limit='1')) == 1

    @pytest.mark.parametrize('param', ['minPrice', 'maxPrice'])
    @pytest.mark.parametrize('value', ['NaN', 'Infinity', 'cheap'])
    def test_unusable_price_filter_is_ignored(self, api, make_product, param, value):
        make_product(name='Small bowl', price='8.00')

        response = api.get('/api/products/', params={param: value})

        assert response.status_code == 200
        assert [p['name'] for p in response.json()['products']] == ['Small bowl']

    def test_ratings_in_listing(self, api, product, client_user, other_client):
        Review.objects.create(user=client_user, product=product, rating=5)
        Review.objects.create(user=other_client, product=product, rating=4)

        data = api.get('/api/products/').json()['products'][0]

        assert data['average_rating'] == 4.5
        assert data['review_count'] == 2
        assert data['artisan_name'] == 'Paul Potter'

    def test_detail_includes_reviews(self, api, product, client_user):
        Review.objects.create(user=client_user, product=product, rating=3, comment='Nice glaze')

        data = api.get(f'/api/products/{product.pk}/').json()['product']

        assert data['reviews'][0]['comment'] == 'Nice glaze'
        assert data['reviews'][0]['first_name'] == 'Alice'

    def test_inactive_detail_visible_to_owner_only(self, api, make_product, artisan_user, client_user):
        hidden = make_product(is_active=False)

        assert api.get(f'/api/products/{hidden.pk}/').status_code == 404
        assert api.get(f'/api/products/{hidden.pk}/', user=client_user).status_code == 404
        assert api.get(f'/api/products/{hidden.pk}/', user=artisan_user).status_code == 200

    def test_my_products(self, api, artisan_user, other_artisan, make_product):
        make_product(name='Mine', is_active=False)
        make_product(artisan=other_artisan, name='Theirs')

        names = [p['name'] for p in api.get('/api/products/my-products/', user=artisan_user).json()['products']]

        assert names == ['Mine']


class TestProductWrites:

    def test_create_with_image(self, client, artisan_user, category):
        response = client.post('/api/products/', {
            'name': 'Glazed mug',
            'price': '14.50',
            'stock': '6',
            'categories': str(category.pk),
            'images': png_upload(),
        }, **auth(artisan_user))

        assert response.status_code == 201
        product = Product.objects.get(name='Glazed mug')
        assert product.artisan == artisan_user.artisan_profile
        assert list(product.categories.all()) == [category]
        assert product.media.count() == 1
        assert product.image_url == product.media.get().url

    def test_invalid_image_is_skipped(self, client, artisan_user):
        fake = SimpleUploadedFile('fake.png', b'not an image', content_type='image/png')

        response = client.post('/api/products/', {'name': 'Mug', 'price': '10', 'images': fake}, **auth(artisan_user))

        assert response.status_code == 201
        assert Product.objects.get(name='Mug').media.count() == 0

    def test_validation(self, api, artisan_user):
        response = api.post('/api/products/', {'name': '', 'price': '-1'}, user=artisan_user)

        assert response.status_code == 400
        fields = {d['field'] for d in response.json()['details']}
        assert {'name', 'price'} <= fields

    def test_admin_without_profile_cannot_create(self, api, admin_user):
        response = api.post('/api/products/', {'name': 'Mug', 'price': '10'}, user=admin_user)

        assert response.status_code == 403

    def test_owner_updates_and_replaces_categories(self, api, artisan_user, product, category):
        other = Category.objects.create(name='Gifts', slug='gifts')
        product.categories.add(category)

        response = api.put(f'/api/products/{product.pk}/', {'price': '25.00', 'categories': [other.pk]},
                           user=artisan_user)

        assert response.status_code == 200
        product.refresh_from_db()
        assert str(product.price) == '25.00'
        assert product.name == 'Blue vase'
        assert list(product.categories.all()) == [other]

    def test_only_admin_features(self, api, artisan_user, admin_user, product):
        url = f'/api/products/{product.pk}/'

        assert api.put(url, {'is_featured': True}, user=artisan_user).status_code == 403
        assert api.put(url, {'is_featured': True}, user=admin_user).status_code == 200
        assert Product.objects.get(pk=product.pk).is_featured is True

    def test_other_artisan_denied(self, api, other_artisan, product):
        assert api.put(f'/api/products/{product.pk}/', {'price': '1'}, user=other_artisan).status_code == 403
        assert api.delete(f'/api/products/{product.pk}/', user=other_artisan).status_code == 403

    def test_delete(self, api, artisan_user, product):
        response = api.delete(f'/api/products/{product.pk}/', user=artisan_user)

        assert response.status_code == 200
        assert not Product.objects.filter(pk=product.pk).exists()

    def test_delete_ordered_product_rejected(self, api, artisan_user, product, make_order):
        make_order([(product, 1)])

        response = api.delete(f'/api/products/{product.pk}/', user=artisan_user)

        assert response.status_code == 400
        assert Product.objects.filter(pk=product.pk).exists()


class TestFavorites:

    def test_add_list_remove(self, api, client_user, product):
        assert api.post(f'/api/favorites/{product.pk}/', user=client_user).status_code == 201
        assert api.post(f'/api/favorites/{product.pk}/', user=client_user).status_code == 400

        favorites = api.get('/api/favorites/', user=client_user).json()['favorites']
        assert [f['product_id'] for f in favorites] == [product.pk]

        assert api.delete(f'/api/favorites/{product.pk}/', user=client_user).status_code == 200
        assert not Favorite.objects.exists()

    def test_inactive_product_cannot_be_favorited(self, api, client_user, make_product):
        hidden = make_product(is_active=False)

        assert api.post(f'/api/favorites/{hidden.pk}/', user=client_user).status_code == 404

    def test_deactivated_products_hidden_from_list(self, api, client_user, product):
        Favorite.objects.create(user=client_user, product=product)
        product.is_active = False
        product.save()

        assert api.get('/api/favorites/', user=client_user).json()['favorites'] == []

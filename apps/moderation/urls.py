"""
Moderation URLs
Mounted under /api/admin/
"""

from django.urls import path
from . import views

app_name = 'moderation'

urlpatterns = [
    path('stats/', views.stats, name='stats'),

    # Users & artisans
    path('users/', views.users, name='users'),
    path('users/<int:user_id>/', views.user_detail, name='user_detail'),
    path('users/<int:user_id>/status/', views.user_status, name='user_status'),
    path('users/<int:user_id>/role/', views.user_role, name='user_role'),
    path('artisans/', views.artisans, name='artisans'),
    path('artisans/<int:artisan_id>/approve/', views.approve_artisan_view, name='approve_artisan'),

    # Orders
    path('orders/', views.orders, name='orders'),

    # Catalog
    path('products/', views.products, name='products'),
    path('products/<int:product_id>/', views.product_detail, name='product_detail'),
    path('products/<int:product_id>/status/', views.product_status, name='product_status'),
    path('categories/', views.categories, name='categories'),
    path('categories/<int:category_id>/', views.category_detail, name='category_detail'),

    # Reviews
    path('reviews/', views.reviews, name='reviews'),
    path('reviews/<int:review_id>/', views.review_detail, name='review_detail'),
]

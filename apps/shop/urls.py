"""
Shop App URLs
Mounted under /api/
"""

from django.urls import path
from . import views

app_name = 'shop'

urlpatterns = [
    # Catalog
    path('categories/', views.categories, name='categories'),
    path('products/', views.products, name='products'),
    path('products/my-products/', views.my_products, name='my_products'),
    path('products/<int:product_id>/', views.product_detail, name='product_detail'),

    # Favorites
    path('favorites/', views.favorites, name='favorites'),
    path('favorites/<int:product_id>/', views.favorite_detail, name='favorite_detail'),

    # Reviews
    path('reviews/', views.create_review, name='create_review'),
    path('reviews/product/<int:product_id>/', views.product_reviews, name='product_reviews'),
    path('reviews/<int:review_id>/reply/', views.reply_review, name='reply_review'),

    # Orders
    path('orders/', views.orders, name='orders'),
    path('orders/received/', views.received_orders, name='received_orders'),
    path('orders/<int:order_id>/', views.order_detail, name='order_detail'),
    path('orders/<int:order_id>/ship/', views.ship_order, name='ship_order'),
    path('orders/<int:order_id>/status/', views.update_order_status, name='update_order_status'),

    # Payments
    path('payment/create-intent/', views.create_payment_intent, name='create_payment_intent'),
    path('payment/confirm/', views.confirm_payment, name='confirm_payment'),
    path('payment/status/<int:order_id>/', views.payment_status, name='payment_status'),

    # Cart
    path('cart/', views.cart, name='cart'),
    path('cart/items/', views.cart_items, name='cart_items'),
    path('cart/items/<int:product_id>/', views.cart_item_detail, name='cart_item_detail'),
    path('cart/checkout/', views.checkout, name='checkout'),
]

"""
Shop App Django Admin
Moderation of artisans, catalog and orders
"""

from django.contrib import admin, messages
from django.utils.html import format_html

from .models import (
    ArtisanProfile, Category, Product, ProductMedia, Favorite,
    Review, Cart, CartItem, Order, OrderItem, Payment
)
from .services.orders import transition_order, OrderError


# ==========================================
# INLINE ADMIN CLASSES
# ==========================================

class ProductMediaInline(admin.TabularInline):
    """Manage product media inside Product admin"""
    model = ProductMedia
    extra = 0
    fields = ['media_type', 'file', 'display_order']


class OrderItemInline(admin.TabularInline):
    """Show order items inside Order admin"""
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'product_name', 'quantity', 'price']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    readonly_fields = ['payment_intent_id', 'amount', 'status', 'created_at']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0


# ==========================================
# ARTISANS & CATALOG
# ==========================================

@admin.register(ArtisanProfile)
class ArtisanProfileAdmin(admin.ModelAdmin):
    list_display = ['business_name', 'user_email', 'approval_badge', 'product_count', 'created_at']
    list_filter = ['is_approved', 'created_at']
    search_fields = ['business_name', 'user__email', 'user__first_name', 'user__last_name']
    readonly_fields = ['user', 'created_at', 'updated_at']

    actions = ['approve_artisans', 'revoke_artisans']

    def user_email(self, obj):
        return obj.user.email
    user_email.short_description = 'Email'

    def approval_badge(self, obj):
        color = 'green' if obj.is_approved else 'orange'
        label = 'Approved' if obj.is_approved else 'Pending'
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 10px; border-radius: 3px;">{}</span>',
            color, label
        )
    approval_badge.short_description = 'Status'

    def product_count(self, obj):
        return obj.products.count()
    product_count.short_description = 'Products'

    def approve_artisans(self, request, queryset):
        count = queryset.update(is_approved=True)
        self.message_user(request, f'✓ Approved {count} artisan(s)', messages.SUCCESS)
    approve_artisans.short_description = 'Approve selected artisans'

    def revoke_artisans(self, request, queryset):
        count = queryset.update(is_approved=False)
        self.message_user(request, f'✗ Revoked approval for {count} artisan(s)', messages.WARNING)
    revoke_artisans.short_description = 'Revoke approval of selected artisans'


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'parent', 'product_count']
    list_filter = ['parent']
    search_fields = ['name', 'slug']
    prepopulated_fields = {'slug': ('name',)}

    def product_count(self, obj):
        return obj.products.count()
    product_count.short_description = 'Products'


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'artisan', 'price', 'stock', 'active_badge', 'is_featured', 'created_at']
    list_filter = ['is_active', 'is_featured', 'categories', 'created_at']
    search_fields = ['name', 'description', 'artisan__business_name']
    readonly_fields = ['slug', 'created_at', 'updated_at', 'image_preview']
    filter_horizontal = ['categories']
    inlines = [ProductMediaInline]

    actions = ['activate_products', 'deactivate_products', 'feature_products']

    def active_badge(self, obj):
        if obj.is_active:
            return format_html('<span style="color: green;">✓ Active</span>')
        return format_html('<span style="color: red;">✗ Inactive</span>')
    active_badge.short_description = 'Active'

    def image_preview(self, obj):
        if obj.image_url:
            return format_html('<img src="{}" width="100" height="100" style="object-fit: cover;" />', obj.image_url)
        return '-'
    image_preview.short_description = 'Image'

    def activate_products(self, request, queryset):
        count = queryset.update(is_active=True)
        self.message_user(request, f'✓ Activated {count} product(s)', messages.SUCCESS)
    activate_products.short_description = 'Activate selected products'

    def deactivate_products(self, request, queryset):
        count = queryset.update(is_active=False)
        self.message_user(request, f'⏸ Deactivated {count} product(s)', messages.WARNING)
    deactivate_products.short_description = 'Deactivate selected products'

    def feature_products(self, request, queryset):
        count = queryset.update(is_featured=True)
        self.message_user(request, f'★ Featured {count} product(s)', messages.SUCCESS)
    feature_products.short_description = 'Feature selected products'


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ['product', 'user', 'rating', 'has_reply', 'created_at']
    list_filter = ['rating', 'created_at']
    search_fields = ['product__name', 'user__email', 'comment']
    readonly_fields = ['user', 'product', 'created_at', 'artisan_reply_at']

    def has_reply(self, obj):
        return bool(obj.artisan_reply)
    has_reply.boolean = True
    has_reply.short_description = 'Replied'


@admin.register(Favorite)
class FavoriteAdmin(admin.ModelAdmin):
    list_display = ['user', 'product', 'created_at']
    search_fields = ['user__email', 'product__name']


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ['user', 'updated_at']
    search_fields = ['user__email']
    inlines = [CartItemInline]


# ==========================================
# ORDERS & PAYMENTS
# ==========================================

@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = [
        'order_number', 'customer_name', 'status_badge',
        'payment_status', 'total', 'created_at'
    ]
    list_filter = ['status', 'payment_status', 'created_at']
    search_fields = ['order_number', 'user__email', 'tracking_number']
    readonly_fields = [
        'order_number', 'user', 'status', 'payment_status', 'total',
        'shipping_cost', 'created_at', 'updated_at'
    ]

    fieldsets = (
        ('Order Details', {
            'fields': ('order_number', 'user', 'status', 'payment_status')
        }),
        ('Amounts', {
            'fields': ('total', 'shipping_cost')
        }),
        ('Shipping', {
            'fields': ('shipping_address', 'shipping_phone', 'tracking_number')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at')
        }),
    )

    inlines = [OrderItemInline, PaymentInline]

    actions = ['mark_paid', 'mark_preparing', 'mark_shipped', 'mark_delivered', 'mark_cancelled']

    def customer_name(self, obj):
        return obj.user.get_full_name()
    customer_name.short_description = 'Customer'

    def status_badge(self, obj):
        colors = {
            'pending': 'orange',
            'paid': 'blue',
            'preparing': 'purple',
            'shipped': 'teal',
            'delivered': 'green',
            'cancelled': 'red',
        }
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 10px; border-radius: 3px;">{}</span>',
            colors.get(obj.status, 'gray'), obj.get_status_display()
        )
    status_badge.short_description = 'Status'

    # Status actions go through the lifecycle service so messages are sent
    def _transition(self, request, queryset, new_status):
        changed, failed = 0, 0
        for order in queryset:
            try:
                _order, did_change = transition_order(order, new_status)
            except OrderError as e:
                failed += 1
                self.message_user(request, f'Order {order.order_number}: {e.message}', messages.ERROR)
                continue
            if did_change:
                changed += 1
        self.message_user(request, f'✓ Moved {changed} order(s) to {new_status}', messages.SUCCESS)
        return changed, failed

    def mark_paid(self, request, queryset):
        self._transition(request, queryset, Order.STATUS_PAID)
    mark_paid.short_description = 'Mark selected orders as paid'

    def mark_preparing(self, request, queryset):
        self._transition(request, queryset, Order.STATUS_PREPARING)
    mark_preparing.short_description = 'Mark selected orders as preparing'

    def mark_shipped(self, request, queryset):
        self._transition(request, queryset, Order.STATUS_SHIPPED)
    mark_shipped.short_description = 'Mark selected orders as shipped'

    def mark_delivered(self, request, queryset):
        self._transition(request, queryset, Order.STATUS_DELIVERED)
    mark_delivered.short_description = 'Mark selected orders as delivered'

    def mark_cancelled(self, request, queryset):
        self._transition(request, queryset, Order.STATUS_CANCELLED)
    mark_cancelled.short_description = 'Cancel selected orders'


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['payment_intent_id', 'order', 'amount', 'status', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['payment_intent_id', 'order__order_number']
    readonly_fields = ['order', 'payment_intent_id', 'amount', 'created_at', 'updated_at']

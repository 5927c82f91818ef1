"""
Shop App Models
Catalog, reviews, favorites, cart, orders and payments
"""

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.db.models import Avg, Count
from django.utils import timezone
from django.utils.text import slugify

from .services.utils import generate_reference

User = settings.AUTH_USER_MODEL


# ==========================================
# ARTISANS & CATEGORIES
# ==========================================

class ArtisanProfile(models.Model):
    """
    Seller profile attached to every artisan account
    Admins approve artisans from the moderation tools
    """
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='artisan_profile')
    business_name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    is_approved = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Artisan Profile"
        verbose_name_plural = "Artisan Profiles"
        ordering = ['-created_at']

    def __str__(self):
        return self.business_name or self.user.email


class Category(models.Model):
    """
    Product categories, optionally nested under a parent
    """
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=120, unique=True)
    description = models.TextField(blank=True)
    parent = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='children'
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Category"
        verbose_name_plural = "Categories"
        ordering = ['name']

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)
        super().save(*args, **kwargs)

    def to_dict(self):
        return {
            'id': self.pk,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'parent_id': self.parent_id,
        }


# ==========================================
# PRODUCTS
# ==========================================

class ProductQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)

    def with_ratings(self):
        return self.annotate(
            avg_rating=Avg('reviews__rating'),
            reviews_total=Count('reviews', distinct=True),
        )


class Product(models.Model):
    """
    Artisan products with pricing, inventory and media
    """
    artisan = models.ForeignKey(ArtisanProfile, on_delete=models.CASCADE, related_name='products')
    categories = models.ManyToManyField(Category, blank=True, related_name='products')

    # Basic Info
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=250, blank=True)
    description = models.TextField(blank=True)

    # Pricing & Inventory
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    stock = models.PositiveIntegerField(default=0)

    # Primary image shown in listings
    image_url = models.CharField(max_length=500, blank=True)

    # Status
    is_active = models.BooleanField(default=True)
    is_featured = models.BooleanField(default=False)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductQuerySet.as_manager()

    class Meta:
        verbose_name = "Product"
        verbose_name_plural = "Products"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['artisan', 'is_active'], name='shop_produc_artisan_4c1f0e_idx'),
            models.Index(fields=['is_active', 'is_featured'], name='shop_produc_is_acti_8b2d71_idx'),
        ]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)[:250]
        super().save(*args, **kwargs)

    @property
    def is_in_stock(self):
        return self.stock > 0

    @property
    def average_rating(self):
        value = getattr(self, 'avg_rating', None)
        if value is None and not hasattr(self, 'avg_rating'):
            value = self.reviews.aggregate(avg=Avg('rating'))['avg']
        return round(float(value), 2) if value is not None else 0

    @property
    def review_count(self):
        if hasattr(self, 'reviews_total'):
            return self.reviews_total
        return self.reviews.count()


class ProductMedia(models.Model):
    """
    Images and videos attached to a product, in display order
    """
    MEDIA_IMAGE = 'image'
    MEDIA_VIDEO = 'video'

    MEDIA_CHOICES = [
        (MEDIA_IMAGE, 'Image'),
        (MEDIA_VIDEO, 'Video'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='media')
    media_type = models.CharField(max_length=10, choices=MEDIA_CHOICES, default=MEDIA_IMAGE)
    file = models.FileField(upload_to='products/')
    display_order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Product Media"
        verbose_name_plural = "Product Media"
        ordering = ['display_order', 'created_at']

    def __str__(self):
        return f"{self.product.name} - {self.media_type} {self.display_order}"

    @property
    def url(self):
        return self.file.url if self.file else ''

    def to_dict(self):
        return {
            'id': self.pk,
            'media_url': self.url,
            'media_type': self.media_type,
            'display_order': self.display_order,
        }


# ==========================================
# FAVORITES & REVIEWS
# ==========================================

class Favorite(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='favorites')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='favorited_by')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Favorite"
        verbose_name_plural = "Favorites"
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'product'], name='unique_favorite'),
        ]

    def __str__(self):
        return f"{self.user} ♥ {self.product}"


class Review(models.Model):
    """
    One review per client and product, with an optional artisan reply
    """
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='reviews')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='reviews')

    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    comment = models.TextField(blank=True)

    artisan_reply = models.TextField(blank=True)
    artisan_reply_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = "Review"
        verbose_name_plural = "Reviews"
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'product'], name='unique_review_per_product'),
        ]

    def __str__(self):
        return f"{self.product} - {self.rating}/5 by {self.user}"


# ==========================================
# CART
# ==========================================

class Cart(models.Model):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='cart')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Cart"
        verbose_name_plural = "Carts"

    def __str__(self):
        return f"Cart of {self.user}"


class CartItem(models.Model):
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='cart_items')
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Cart Item"
        verbose_name_plural = "Cart Items"
        ordering = ['added_at']
        constraints = [
            models.UniqueConstraint(fields=['cart', 'product'], name='unique_cart_product'),
        ]

    def __str__(self):
        return f"{self.product.name} x{self.quantity}"

    @property
    def line_total(self):
        return self.product.price * self.quantity


# ==========================================
# ORDERS & PAYMENTS
# ==========================================

class Order(models.Model):
    """
    Client orders; may contain products from several artisans
    """

    STATUS_PENDING = 'pending'
    STATUS_PAID = 'paid'
    STATUS_PREPARING = 'preparing'
    STATUS_SHIPPED = 'shipped'
    STATUS_DELIVERED = 'delivered'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PAID, 'Paid'),
        (STATUS_PREPARING, 'Preparing'),
        (STATUS_SHIPPED, 'Shipped'),
        (STATUS_DELIVERED, 'Delivered'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    PAYMENT_UNPAID = 'unpaid'
    PAYMENT_PAID = 'paid'

    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_UNPAID, 'Unpaid'),
        (PAYMENT_PAID, 'Paid'),
    ]

    order_number = models.CharField(max_length=40, unique=True, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='orders')

    # Order Details
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_UNPAID)
    total = models.DecimalField(max_digits=10, decimal_places=2)
    shipping_cost = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))

    # Shipping
    shipping_address = models.TextField()
    shipping_phone = models.CharField(max_length=20)
    tracking_number = models.CharField(max_length=100, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Order"
        verbose_name_plural = "Orders"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='shop_order_status_5e3a9c_idx'),
            models.Index(fields=['user', 'status'], name='shop_order_user_id_a17f42_idx'),
        ]

    def __str__(self):
        return f"Order #{self.order_number} - {self.status}"

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = generate_reference('ORD')
        super().save(*args, **kwargs)

    @property
    def is_paid(self):
        return self.payment_status == self.PAYMENT_PAID

    def artisan_users(self):
        """Distinct artisan accounts whose products are in this order"""
        from django.contrib.auth import get_user_model
        return get_user_model().objects.filter(
            artisan_profile__products__orderitem__order=self
        ).distinct()


class OrderItem(models.Model):
    """
    Individual items in an order; name and price are captured at checkout
    """
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT)
    product_name = models.CharField(max_length=200)

    quantity = models.PositiveIntegerField(default=1)
    price = models.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        verbose_name = "Order Item"
        verbose_name_plural = "Order Items"

    def __str__(self):
        return f"{self.product_name} x{self.quantity}"

    @property
    def line_total(self):
        return self.price * self.quantity


class Payment(models.Model):
    """
    Payment intents created with the payment processor
    """

    STATUS_PENDING = 'pending'
    STATUS_SUCCEEDED = 'succeeded'
    STATUS_FAILED = 'failed'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_SUCCEEDED, 'Succeeded'),
        (STATUS_FAILED, 'Failed'),
    ]

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='payments')
    payment_intent_id = models.CharField(max_length=255, unique=True)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        ordering = ['-created_at']

    def __str__(self):
        return f"Payment {self.payment_intent_id} - {self.status}"

    def to_dict(self):
        return {
            'id': self.pk,
            'order_id': self.order_id,
            'payment_intent_id': self.payment_intent_id,
            'amount': str(self.amount),
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

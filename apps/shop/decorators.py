"""
Shop App Decorators
Artisan access and ownership checks for JSON views
"""

from functools import wraps

from django.http import JsonResponse

from apps.users.decorators import api_login_required


# ==========================================
# ARTISAN ACCESS DECORATORS
# ==========================================

def artisan_profile_required(view_func):
    """
    Decorator to ensure the user is an artisan with an artisan profile.
    Adds `request.artisan` for the view.

    Usage:
        @artisan_profile_required
        def my_products(request):
            ...
    """
    @wraps(view_func)
    @api_login_required
    def wrapper(request, *args, **kwargs):
        if request.user.role != 'artisan':
            return JsonResponse({'error': 'Access denied'}, status=403)

        profile = getattr(request.user, 'artisan_profile', None)
        if profile is None:
            return JsonResponse({'error': 'Artisan profile not found'}, status=403)

        request.artisan = profile
        return view_func(request, *args, **kwargs)

    return wrapper


# ==========================================
# OWNERSHIP DECORATORS
# ==========================================

def product_owner_or_admin(view_func):
    """
    Decorator to ensure the artisan owns the product, or the user is an admin.
    Expects 'product_id' in URL kwargs and adds `request.product`.

    Usage:
        @product_owner_or_admin
        def update_product(request, product_id):
            ...
    """
    @wraps(view_func)
    @api_login_required
    def wrapper(request, *args, **kwargs):
        from .models import Product

        try:
            product = Product.objects.select_related('artisan').get(pk=kwargs.get('product_id'))
        except Product.DoesNotExist:
            return JsonResponse({'error': 'Product not found'}, status=404)

        user = request.user
        if user.role != 'admin':
            if user.role != 'artisan' or product.artisan.user_id != user.pk:
                return JsonResponse({'error': 'Access denied'}, status=403)

        request.product = product
        return view_func(request, *args, **kwargs)

    return wrapper

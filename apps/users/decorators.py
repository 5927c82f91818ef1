"""
Access control decorators for the JSON API
Return JSON errors instead of redirects
"""

import logging
from functools import wraps

from django.conf import settings
from django.core.cache import cache
from django.http import JsonResponse

logger = logging.getLogger(__name__)


# ==========================================
# AUTHENTICATION DECORATORS
# ==========================================

def api_login_required(view_func):
    """
    Decorator for API views that require an authenticated, active user

    Usage:
        @api_login_required
        def me(request):
            ...
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        user = request.user
        if not user.is_authenticated:
            error = getattr(request, 'auth_error', None) or 'Authentication required'
            return JsonResponse({'error': error}, status=401)

        if not user.is_active:
            return JsonResponse({'error': 'Account is deactivated'}, status=401)

        return view_func(request, *args, **kwargs)

    return wrapper


def role_required(*roles):
    """
    Decorator restricting an API view to the given roles

    Usage:
        @role_required('artisan', 'admin')
        def ship_order(request, order_id):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        @api_login_required
        def wrapper(request, *args, **kwargs):
            if request.user.role not in roles:
                return JsonResponse({'error': 'Access denied'}, status=403)
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


admin_required = role_required('admin')


# ==========================================
# RATE LIMITING DECORATOR
# ==========================================

def _client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', 'unknown')


def check_rate_limit(key, max_attempts, window_seconds):
    """
    Count one attempt against `key`.

    Returns:
        True if the attempt is allowed, False once the limit is reached
    """
    # add() only sets the window on the first attempt; incr() is atomic
    cache.add(key, 0, window_seconds)
    try:
        attempts = cache.incr(key)
    except ValueError:
        # Key expired between add() and incr()
        cache.add(key, 1, window_seconds)
        attempts = 1
    return attempts <= max_attempts


def rate_limit(scope, failed_only=False):
    """
    Limit requests per client IP using the cache.
    Limits come from settings.RATE_LIMITS[scope] as (max requests, window seconds).

    With failed_only, only responses with status >= 400 count as attempts
    (used for login so successful logins are never throttled).

    Usage:
        @rate_limit('payment')
        def create_intent(request):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if not getattr(settings, 'RATELIMIT_ENABLE', True):
                return view_func(request, *args, **kwargs)

            max_attempts, window = settings.RATE_LIMITS[scope]
            key = f'ratelimit:{scope}:{_client_ip(request)}'
            message = 'Too many requests, please try again later'

            if failed_only:
                if cache.get(key, 0) >= max_attempts:
                    logger.warning(f'Rate limit reached for {key}')
                    return JsonResponse({'error': message}, status=429)

                response = view_func(request, *args, **kwargs)
                if response.status_code >= 400:
                    check_rate_limit(key, max_attempts, window)
                return response

            if not check_rate_limit(key, max_attempts, window):
                logger.warning(f'Rate limit reached for {key}')
                return JsonResponse({'error': message}, status=429)

            return view_func(request, *args, **kwargs)

        return wrapper
    return decorator

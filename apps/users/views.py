"""
Authentication views for the Artisashop JSON API.
Location: apps/users/views.py
"""

import logging

from django.contrib.auth.models import update_last_login
from django.db import transaction
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.utils.api import parse_body, json_error, form_error_response, BadRequest
from .decorators import api_login_required, rate_limit
from .forms import RegisterForm, LoginForm, ProfileUpdateForm
from .models import CustomUser
from .tokens import issue_token

logger = logging.getLogger(__name__)


def serialize_session_user(user):
    data = {
        'id': user.pk,
        'email': user.email,
        'role': user.role,
        'first_name': user.first_name,
        'last_name': user.last_name,
    }
    profile = getattr(user, 'artisan_profile', None) if user.is_artisan else None
    if profile is not None:
        data['artisan_id'] = profile.pk
    return data


# ===========================
# REGISTRATION & LOGIN
# ===========================

@csrf_exempt
@require_http_methods(["POST"])
def register(request):
    """Create a client or artisan account."""
    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    form = RegisterForm(data)
    if not form.is_valid():
        return form_error_response(form)

    cleaned = form.cleaned_data
    with transaction.atomic():
        # post_save creates the artisan profile for artisan accounts
        user = CustomUser.objects.create_user(
            email=cleaned['email'],
            password=cleaned['password'],
            first_name=cleaned['first_name'],
            last_name=cleaned['last_name'],
            phone=cleaned.get('phone', ''),
            role=cleaned['role'],
        )

    logger.info(f'New {user.role} account registered: {user.email}')

    return JsonResponse({
        'message': 'User created successfully',
        'userId': user.pk,
    }, status=201)


@csrf_exempt
@require_http_methods(["POST"])
@rate_limit('login', failed_only=True)
def login_view(request):
    """Exchange credentials for a signed bearer token."""
    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    form = LoginForm(data, request=request)
    if not form.is_valid():
        non_field = form.non_field_errors()
        if non_field:
            return json_error(str(non_field[0]), status=401)
        return form_error_response(form)

    user = form.user
    update_last_login(None, user)

    return JsonResponse({
        'token': issue_token(user),
        'user': serialize_session_user(user),
    })


# ===========================
# PROFILE
# ===========================

@require_http_methods(["GET", "PUT"])
@api_login_required
def me(request):
    """Return or update the authenticated user's profile."""
    user = request.user

    if request.method == 'GET':
        data = user.to_dict()
        profile = getattr(user, 'artisan_profile', None) if user.is_artisan else None
        if profile is not None:
            data['artisan_id'] = profile.pk
            data['business_name'] = profile.business_name
            data['is_approved'] = profile.is_approved
        return JsonResponse({'user': data})

    try:
        data, _files = parse_body(request)
    except BadRequest as e:
        return json_error(str(e))

    form = ProfileUpdateForm(data, user=user)
    if not form.is_valid():
        return form_error_response(form)

    fields = form.changed_fields()
    if not fields:
        return json_error('No fields to update')

    for field in fields:
        setattr(user, field, form.cleaned_data[field])
    user.save(update_fields=fields)

    logger.info(f'Profile updated for {user.email}: {", ".join(fields)}')

    return JsonResponse({
        'message': 'Profile updated successfully',
        'user': user.to_dict(),
    })

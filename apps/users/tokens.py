"""
Signed bearer tokens for the JSON API
Tokens carry the user id and are verified with Django's signing framework
"""

import logging
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core import signing

logger = logging.getLogger(__name__)

TOKEN_SALT = 'artisashop.users.auth-token'


class TokenError(Exception):
    """Raised when a bearer token is invalid or expired"""
    pass


def issue_token(user) -> str:
    return signing.dumps({'uid': user.pk, 'role': user.role}, salt=TOKEN_SALT, compress=True)


def verify_token(token: str, max_age: Optional[int] = None):
    """
    Return the active user a token belongs to.

    Raises:
        TokenError: bad signature, expired token, unknown or inactive user
    """
    if max_age is None:
        max_age = settings.AUTH_TOKEN_MAX_AGE

    try:
        payload = signing.loads(token, salt=TOKEN_SALT, max_age=max_age)
    except signing.SignatureExpired:
        raise TokenError('Token expired')
    except signing.BadSignature:
        raise TokenError('Invalid token')

    User = get_user_model()
    try:
        user = User.objects.get(pk=payload.get('uid'))
    except User.DoesNotExist:
        raise TokenError('User not found')

    if not user.is_active:
        raise TokenError('Account is deactivated')

    return user

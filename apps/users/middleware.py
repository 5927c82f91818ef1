import logging

from .tokens import verify_token, TokenError

logger = logging.getLogger(__name__)


class BearerTokenMiddleware:
    """
    Authenticate `Authorization: Bearer <token>` requests.

    Token-authenticated requests skip CSRF checks since they carry no
    session cookie. Requests without the header keep session auth.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.auth_error = None
        header = request.META.get('HTTP_AUTHORIZATION', '')

        if header.startswith('Bearer '):
            token = header[len('Bearer '):].strip()
            try:
                request.user = verify_token(token)
                request._dont_enforce_csrf_checks = True
            except TokenError as e:
                logger.info(f'Rejected bearer token: {str(e)}')
                request.auth_error = str(e)
                request._dont_enforce_csrf_checks = True

        return self.get_response(request)

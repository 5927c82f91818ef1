"""
JSON API helpers shared by every app
Request body parsing, error responses and small coercion helpers
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple

from django.http import JsonResponse, QueryDict
from django.utils.datastructures import MultiValueDict

logger = logging.getLogger(__name__)


class BadRequest(Exception):
    """Raised when the request body cannot be parsed"""
    pass


# ==========================================
# REQUEST PARSING
# ==========================================

def parse_body(request) -> Tuple[Any, MultiValueDict]:
    """
    Return (data, files) for any method.

    JSON bodies give a plain dict. Form bodies give a QueryDict, including
    PUT/PATCH multipart bodies which Django only parses for POST.
    """
    content_type = request.content_type or ''

    if content_type == 'application/json':
        if not request.body:
            return {}, MultiValueDict()
        try:
            data = json.loads(request.body)
        except (ValueError, UnicodeDecodeError):
            raise BadRequest('Invalid JSON body')
        if not isinstance(data, dict):
            raise BadRequest('JSON body must be an object')
        return data, MultiValueDict()

    if request.method == 'POST':
        return request.POST, request.FILES

    if content_type == 'multipart/form-data':
        body = request.body
        data, files = request.parse_file_upload(request.META, BytesIO(body))
        return data, files

    if content_type == 'application/x-www-form-urlencoded':
        return QueryDict(request.body, encoding=request.encoding), MultiValueDict()

    return {}, MultiValueDict()


def get_list(data, key: str) -> Optional[List]:
    """
    Read a list value from JSON or form data.
    Form values may be repeated keys, a JSON array string or comma separated.
    Returns None when the key is absent.
    """
    if isinstance(data, QueryDict):
        if key not in data:
            return None
        values = data.getlist(key)
        if len(values) == 1 and isinstance(values[0], str):
            raw = values[0].strip()
            if raw.startswith('['):
                try:
                    parsed = json.loads(raw)
                    return parsed if isinstance(parsed, list) else [parsed]
                except ValueError:
                    raise BadRequest(f'Invalid list for {key}')
            if ',' in raw:
                return [v.strip() for v in raw.split(',') if v.strip()]
            return [raw] if raw else []
        return values

    if key not in data:
        return None
    value = data.get(key)
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def to_int(value, default=None) -> Optional[int]:
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def to_decimal(value, default=None) -> Optional[Decimal]:
    if value is None or value == '' or isinstance(value, bool):
        return default
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    # NaN and Infinity are not amounts
    if not number.is_finite():
        return default
    return number


def to_text(value) -> str:
    """Stripped string form of a scalar body value; None and containers give ''"""
    if value is None or isinstance(value, (dict, list, tuple)):
        return ''
    return str(value).strip()


def to_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


# ==========================================
# RESPONSES
# ==========================================

def json_error(message: str, status: int = 400, details: Optional[Any] = None) -> JsonResponse:
    payload: Dict[str, Any] = {'error': message}
    if details is not None:
        payload['details'] = details
    return JsonResponse(payload, status=status)


def form_error_details(form) -> List[Dict[str, str]]:
    """Flatten Django form errors into [{'field', 'message'}]"""
    details = []
    for field, errors in form.errors.items():
        for error in errors:
            details.append({'field': field, 'message': str(error)})
    return details


def form_error_response(form, message: str = 'Validation failed') -> JsonResponse:
    return json_error(message, status=400, details=form_error_details(form))


def iso(value) -> Optional[str]:
    return value.isoformat() if value else None

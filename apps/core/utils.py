# apps/core/utils.py

import json
import hashlib
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional

from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.utils.dateparse import parse_date


# === JSON ENVELOPE ===

def api_success(data: Any = None, status: int = 200, **extra) -> JsonResponse:
    """
    Successful API response

    Every JSON endpoint answers with {'success': True, 'data': ...}; extra
    keyword arguments are merged at the top level.
    """
    payload = {'success': True, 'data': data}
    payload.update(extra)
    return JsonResponse(payload, status=status)


def api_error(message: str, code: str = 'ERROR', status: int = 400, **extra) -> JsonResponse:
    """Failed API response: {'success': False, 'error': ..., 'code': ...}"""
    payload = {'success': False, 'error': message, 'code': code}
    payload.update(extra)
    return JsonResponse(payload, status=status)


def validation_message(exc: ValidationError) -> str:
    """Flattens a ValidationError into a single readable line"""
    if hasattr(exc, 'message_dict'):
        parts = []
        for field, errors in exc.message_dict.items():
            label = '' if field == '__all__' else f'{field}: '
            parts.append(label + ' '.join(errors))
        return '; '.join(parts)
    return ' '.join(exc.messages)


def parse_json_body(request) -> Dict:
    """
    Decodes a JSON request body

    Raises ValidationError for malformed JSON or a non-object payload.
    """
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError('Invalid JSON body')
    if not isinstance(data, dict):
        raise ValidationError('JSON body must be an object')
    return data


# === FIELD COERCION ===

def to_date(value, field: str = 'date') -> Optional[date]:
    """Accepts None, '', a date or an ISO string"""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value))
    except ValueError:
        # well formed but impossible, e.g. 2025-02-30
        parsed = None
    if parsed is None:
        raise ValidationError({field: [f'Invalid date: {value}']})
    return parsed


def to_decimal(value, field: str = 'amount', default: Decimal = Decimal('0')) -> Decimal:
    if value in (None, ''):
        return default
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError({field: [f'Invalid number: {value}']})
    if not number.is_finite():
        raise ValidationError({field: [f'Invalid number: {value}']})
    return number


def to_int(value, field: str, minimum: Optional[int] = None, maximum: Optional[int] = None) -> Optional[int]:
    if value in (None, ''):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError({field: [f'Invalid integer: {value}']})
    if minimum is not None and number < minimum:
        raise ValidationError({field: [f'Must be at least {minimum}']})
    if maximum is not None and number > maximum:
        raise ValidationError({field: [f'Must be at most {maximum}']})
    return number


def require_choice(value, choices: Iterable, field: str) -> str:
    """Validates value against a Django choices list or a plain iterable"""
    allowed = [c[0] if isinstance(c, (tuple, list)) else c for c in choices]
    if value not in allowed:
        raise ValidationError({field: [f'Invalid value "{value}". Expected one of: {", ".join(allowed)}']})
    return value


def apply_fields(instance, data: Dict, fields: Iterable[str]) -> list:
    """
    Copies the given keys from data onto instance when present

    Returns the list of field names that actually changed, so partial
    updates only touch what the client sent.
    """
    changed = []
    for field in fields:
        if field in data:
            new_value = data[field]
            if getattr(instance, field) != new_value:
                setattr(instance, field, new_value)
                changed.append(field)
    return changed


# === DISPLAY HELPERS ===

def user_color(username: str) -> str:
    """
    Stable colour for a username
    Used for avatars when there is no photo
    """
    return f"#{hashlib.md5(username.encode()).hexdigest()[:6]}"


def format_status(status: str) -> str:
    """'in_progress' -> 'In Progress'"""
    return ' '.join(part.capitalize() for part in (status or '').split('_'))


def percent(part, whole, digits: int = 0):
    """part / whole * 100, 0 when whole is zero"""
    if not whole:
        return 0
    value = float(part) / float(whole) * 100
    return round(value, digits) if digits else round(value)

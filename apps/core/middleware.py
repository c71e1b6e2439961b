# apps/core/middleware.py

import logging
from contextvars import ContextVar

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import Http404

from .utils import api_error, validation_message

logger = logging.getLogger(__name__)

_current_user = ContextVar('orbit_current_user', default=None)


def get_current_user():
    """User of the request being served, or None outside a request"""
    return _current_user.get()


def set_current_user(user):
    """Returns a token for reset_current_user"""
    return _current_user.set(user)


def reset_current_user(token):
    _current_user.reset(token)


class CurrentUserMiddleware:
    """
    Exposes the authenticated user to code without a request

    Audit signals use it to attribute model changes.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        user = getattr(request, 'user', None)
        token = set_current_user(user if user is not None and user.is_authenticated else None)
        try:
            return self.get_response(request)
        finally:
            reset_current_user(token)


class ApiExceptionMiddleware:
    """
    Turns exceptions raised by JSON endpoints into the error envelope

    Only applies to paths containing /api/; HTML views keep Django's
    default error pages.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if '/api/' not in request.path:
            return None

        if isinstance(exception, ValidationError):
            return api_error(validation_message(exception), 'VALIDATION_ERROR', status=400)

        if isinstance(exception, PermissionDenied):
            return api_error(str(exception) or 'Permission denied', 'FORBIDDEN', status=403)

        if isinstance(exception, Http404):
            return api_error(str(exception) or 'Not found', 'NOT_FOUND', status=404)

        logger.exception(f"❌ Unhandled error on {request.method} {request.path}")
        return api_error('Internal server error', 'INTERNAL_ERROR', status=500)

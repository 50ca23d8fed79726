"""
Error handling middleware for BundleHub.

Views let domain exceptions propagate; this turns them into the JSON
error envelope with the right status code.
"""

import logging

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.http import Http404

from .api import error_response
from .exceptions import BundleHubError, ValidationError

logger = logging.getLogger('core')


class ApiErrorMiddleware:

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if isinstance(exception, ValidationError):
            return error_response(exception.message, 400, errors=exception.errors, data=exception.data)

        if isinstance(exception, BundleHubError):
            if exception.status_code >= 500:
                logger.error(f"{request.method} {request.path}: {exception.message}")
            else:
                logger.debug(f"{request.method} {request.path} -> {exception.status_code}: {exception.message}")
            return error_response(exception.message, exception.status_code, data=exception.data)

        if isinstance(exception, Http404):
            return error_response(str(exception) or 'Resource not found', 404)

        if isinstance(exception, PermissionDenied):
            return error_response(str(exception) or 'Permission denied', 403)

        logger.exception(f"Unhandled error on {request.method} {request.path}: {exception}")
        message = str(exception) if settings.DEBUG else 'Internal server error'
        return error_response(message, 500)

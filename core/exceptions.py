"""
Domain exceptions for BundleHub.

Services raise these; core.middleware.ApiErrorMiddleware turns them into
JSON error responses with the matching HTTP status.
"""


class BundleHubError(Exception):
    """Base class for errors that map onto an API response."""

    status_code = 400
    default_message = 'Request could not be completed'

    def __init__(self, message=None, data=None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)


class ValidationError(BundleHubError):
    """Bad input that was not caught by a form."""

    default_message = 'Validation failed'

    def __init__(self, message=None, errors=None):
        super().__init__(message)
        self.errors = errors or []


class AuthenticationError(BundleHubError):
    status_code = 401
    default_message = 'Authentication required'


class PermissionDeniedError(BundleHubError):
    status_code = 403
    default_message = 'You do not have permission to perform this action'


class NotFoundError(BundleHubError):
    status_code = 404
    default_message = 'Resource not found'


class ConflictError(BundleHubError):
    status_code = 409
    default_message = 'Resource already exists'


class InsufficientBalanceError(BundleHubError):
    default_message = 'Insufficient wallet balance'


class SiteClosedError(BundleHubError):
    status_code = 503
    default_message = 'The site is currently closed for orders'


class CodeGenerationError(BundleHubError):
    """Every candidate code (random and timestamp fallback) was taken."""

    status_code = 500
    default_message = 'Could not generate a unique code'


class PricingValidationError(ValidationError):
    default_message = 'Invalid pricing tiers'


class BulkRowError(ValidationError):
    default_message = 'Invalid bulk order row'

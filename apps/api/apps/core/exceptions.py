"""
Error taxonomy and the DRF exception handler.

Every error leaving the API is rendered as a problem document:

    {
        "type": "about:blank",
        "title": "Conflict",
        "status": 409,
        "detail": "Note already finalized",
        "requestId": "...",
        ...extras (e.g. "issues" for validation errors)
    }

Domain code raises the ApiError subclasses below; the handler is the only
place that turns exceptions into HTTP responses.
"""
from http import HTTPStatus

from django.core.exceptions import ObjectDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework.views import set_rollback

from apps.core.observability.logging import get_sanitized_logger
from apps.core.observability.metrics import metrics
from apps.core.responses import problem_response

logger = get_sanitized_logger(__name__)


# ============================================================================
# Taxonomy
# ============================================================================

class ApiError(Exception):
    """Base class for errors that map to a problem response."""
    status_code = 500
    title = 'Internal Server Error'
    default_detail = 'An unexpected error occurred'

    def __init__(self, detail=None, **extras):
        self.detail = detail or self.default_detail
        self.extras = extras
        super().__init__(self.detail)


class UnauthorizedError(ApiError):
    """No or invalid session."""
    status_code = 401
    title = 'Unauthorized'
    default_detail = 'Authentication required'


class PermissionDeniedError(ApiError):
    """Role flags / approval status lack the capability."""
    status_code = 403
    title = 'Forbidden'
    default_detail = 'Insufficient permissions'


class AccessDeniedError(ApiError):
    """No approved provider-patient relationship for the requested data."""
    status_code = 403
    title = 'Access Denied'
    default_detail = 'No approved provider-patient link'


class ValidationError(ApiError):
    """Schema or business-rule violation on input. Carries field issues."""
    status_code = 400
    title = 'Bad Request'
    default_detail = 'Validation failed'

    def __init__(self, detail=None, issues=None, **extras):
        if issues:
            extras['issues'] = issues
        super().__init__(detail, **extras)


class NotFoundError(ApiError):
    status_code = 404
    title = 'Not Found'
    default_detail = 'Resource not found'


class ConflictError(ApiError):
    """Illegal state transition or uniqueness clash."""
    status_code = 409
    title = 'Conflict'
    default_detail = 'Conflict'


# ============================================================================
# Issue flattening
# ============================================================================

def flatten_issues(detail, path=''):
    """
    Flatten DRF/Django error structures into [{'path', 'message'}].

    >>> flatten_issues({'signatureHash': ['Too short']})
    [{'path': 'signatureHash', 'message': 'Too short'}]
    """
    issues = []
    if isinstance(detail, dict):
        for key, value in detail.items():
            child = key if not path else f'{path}.{key}'
            if key == 'non_field_errors':
                child = path
            issues.extend(flatten_issues(value, child))
    elif isinstance(detail, (list, tuple)):
        if all(not isinstance(item, (dict, list, tuple)) for item in detail):
            issues.extend({'path': path, 'message': str(item)} for item in detail)
        else:
            for index, item in enumerate(detail):
                child = f'{path}.{index}' if path else str(index)
                issues.extend(flatten_issues(item, child))
    else:
        issues.append({'path': path, 'message': str(detail)})
    return issues


def _django_validation_issues(exc):
    if hasattr(exc, 'error_dict'):
        return flatten_issues(exc.message_dict)
    return [{'path': '', 'message': message} for message in exc.messages]


# ============================================================================
# Handler
# ============================================================================

def problem_exception_handler(exc, context):
    """
    DRF EXCEPTION_HANDLER producing problem+json for every exception.

    Unexpected exceptions become a 500 with a generic detail; the real
    exception is logged (with request id) but never echoed to the client.
    """
    request = context.get('request')
    headers = {}

    if isinstance(exc, ApiError):
        status_code, title, detail, extras = exc.status_code, exc.title, exc.detail, exc.extras
        if status_code == 403:
            metrics.permission_denials_total.labels(reason=exc.__class__.__name__).inc()

    elif isinstance(exc, drf_exceptions.ValidationError):
        status_code, title, detail = 400, 'Bad Request', 'Validation failed'
        extras = {'issues': flatten_issues(exc.detail)}

    elif isinstance(exc, drf_exceptions.APIException):
        status_code = exc.status_code
        title = HTTPStatus(status_code).phrase
        detail = str(exc.detail)
        extras = {}
        if isinstance(exc, drf_exceptions.NotAuthenticated):
            detail = UnauthorizedError.default_detail
        elif isinstance(exc, drf_exceptions.PermissionDenied):
            metrics.permission_denials_total.labels(reason='role_gate').inc()
        auth_header = getattr(exc, 'auth_header', None)
        if auth_header:
            headers['WWW-Authenticate'] = auth_header
        wait = getattr(exc, 'wait', None)
        if wait:
            headers['Retry-After'] = '%d' % wait

    elif isinstance(exc, (Http404, ObjectDoesNotExist)):
        status_code, title, detail, extras = 404, 'Not Found', 'Resource not found', {}

    elif isinstance(exc, DjangoValidationError):
        status_code, title, detail = 400, 'Bad Request', 'Validation failed'
        extras = {'issues': _django_validation_issues(exc)}

    elif isinstance(exc, IntegrityError):
        status_code, title, detail, extras = 409, 'Conflict', 'Resource conflicts with existing data', {}
        logger.warning(
            'Integrity error mapped to 409',
            extra={'event': 'integrity_conflict', 'error_type': exc.__class__.__name__}
        )

    else:
        status_code, title, detail, extras = (
            500, 'Internal Server Error', 'An unexpected error occurred', {}
        )
        view = context.get('view')
        location = view.__class__.__name__ if view else 'unknown'
        metrics.exceptions_total.labels(
            exception_type=exc.__class__.__name__,
            location=location,
        ).inc()
        logger.error(
            f'Unhandled exception in {location}',
            exc_info=exc,
            extra={'event': 'unhandled_exception', 'exception_type': exc.__class__.__name__}
        )

    set_rollback()
    response = problem_response(status_code, title, detail, request, **extras)
    for name, value in headers.items():
        response[name] = value
    return response

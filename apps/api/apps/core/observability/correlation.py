"""
Request correlation middleware.

Propagates X-Request-ID / X-Correlation-ID (or generates one), injects it
into logs, and echoes it on every response.
"""
import uuid
import time
import logging
from threading import local

from django.utils.deprecation import MiddlewareMixin

from .metrics import metrics

# Thread-local storage for request context
_request_context = local()

logger = logging.getLogger(__name__)


def get_request_id():
    """Get current request ID from thread-local storage."""
    return getattr(_request_context, 'request_id', None)


def get_user_id():
    """Get current user ID from thread-local storage."""
    return getattr(_request_context, 'user_id', None)


def get_user_roles():
    """Get current user role flags from thread-local storage."""
    return getattr(_request_context, 'user_roles', [])


def _role_names(user):
    """Role flag names for log context (a user without flags is a patient)."""
    roles = [
        name for name, flag in (
            ('admin', getattr(user, 'is_admin', False)),
            ('clerk', getattr(user, 'is_clerk', False)),
            ('provider', getattr(user, 'is_provider', False)),
        ) if flag
    ]
    return roles or ['patient']


def _bind_user(user):
    if user is not None and getattr(user, 'is_authenticated', False):
        _request_context.user_id = str(user.pk)
        _request_context.user_roles = _role_names(user)
    else:
        _request_context.user_id = None
        _request_context.user_roles = []


class RequestCorrelationMiddleware(MiddlewareMixin):
    """
    Middleware to handle request correlation.

    - Takes the request id from X-Request-ID, then X-Correlation-ID,
      otherwise generates a UUID4
    - Stores context in thread-local for logging
    - Adds X-Request-ID and no-store caching headers to every response
    - Tracks request duration
    """

    REQUEST_ID_HEADERS = ('HTTP_X_REQUEST_ID', 'HTTP_X_CORRELATION_ID')

    def process_request(self, request):
        """Process incoming request and setup correlation context."""
        request_id = None
        for header in self.REQUEST_ID_HEADERS:
            request_id = request.META.get(header, '').strip()
            if request_id:
                break
        if not request_id:
            request_id = str(uuid.uuid4())

        request.request_id = request_id
        request.start_time = time.time()

        _request_context.request_id = request_id
        # Session-authenticated users are known here; JWT users only after
        # DRF authenticates, so the user is re-bound in process_response.
        _bind_user(getattr(request, 'user', None))

    def process_response(self, request, response):
        """Add correlation and caching headers to response."""
        request_id = getattr(request, 'request_id', None)
        if request_id:
            response['X-Request-ID'] = request_id

        # Responses may carry PHI: never cache unless a view opted in explicitly
        if not response.has_header('Cache-Control'):
            response['Cache-Control'] = 'no-store'
            response['Pragma'] = 'no-cache'

        _bind_user(getattr(request, 'user', None))

        if hasattr(request, 'start_time'):
            duration_ms = (time.time() - request.start_time) * 1000

            metrics.http_requests_total.labels(
                method=request.method,
                status=str(response.status_code),
            ).inc()
            metrics.http_request_duration_seconds.labels(method=request.method).observe(
                duration_ms / 1000
            )

            logger.info(
                'Request completed',
                extra={
                    'event': 'http_request_completed',
                    'path': request.path,
                    'method': request.method,
                    'status_code': response.status_code,
                    'duration_ms': round(duration_ms, 2),
                    'request_id': request_id,
                    'user_id': get_user_id(),
                    'user_roles': get_user_roles(),
                }
            )

        clear_request_context()
        return response

    def process_exception(self, request, exception):
        """Log exceptions that escaped the view layer with correlation context."""
        duration_ms = 0
        if hasattr(request, 'start_time'):
            duration_ms = (time.time() - request.start_time) * 1000

        logger.error(
            f'Request failed: {exception.__class__.__name__}',
            exc_info=True,
            extra={
                'event': 'http_request_exception',
                'path': request.path,
                'method': request.method,
                'exception_type': exception.__class__.__name__,
                'duration_ms': round(duration_ms, 2),
                'request_id': getattr(request, 'request_id', None),
                'user_id': get_user_id(),
            }
        )


def clear_request_context():
    """Clear thread-local request context (also useful for testing)."""
    for attr in ['request_id', 'user_id', 'user_roles']:
        if hasattr(_request_context, attr):
            delattr(_request_context, attr)

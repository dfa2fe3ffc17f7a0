"""
Structured logging with PHI/PII protection.

Provides filters, formatters, and helpers for safe logging.
"""
import logging
import json
from datetime import datetime, timezone

from .correlation import get_request_id, get_user_id, get_user_roles


# Fields that should NEVER be logged (PHI/PII/secrets)
SENSITIVE_FIELDS = {
    'password',
    'confirm_password',
    'confirmpassword',
    'token',
    'access',
    'refresh',
    'secret',
    'api_key',
    'signature_hash',
    'signaturehash',
    # SOAP content and other clinical free text
    'subjective',
    'objective',
    'assessment',
    'plan',
    'summary',
    'notes',
    'reason',
    'message',
    'request_message',
    # Contact data
    'first_name',
    'last_name',
    'email',
    'phone',
    'address',
    'date_of_birth',
}

# Attributes every LogRecord carries; not copied into the JSON payload
_RESERVED_RECORD_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'pathname', 'process',
    'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'taskName',
}


class CorrelationFilter(logging.Filter):
    """
    Logging filter that injects correlation context into log records.
    """

    def filter(self, record):
        """Add correlation fields to log record (explicit extras win)."""
        if not getattr(record, 'request_id', None):
            record.request_id = get_request_id() or '-'
        if not getattr(record, 'user_id', None):
            record.user_id = get_user_id() or '-'
        roles = getattr(record, 'user_roles', None) or get_user_roles()
        record.user_roles = ','.join(roles) if isinstance(roles, (list, tuple)) else roles
        record.user_roles = record.user_roles or '-'
        return True


class SanitizedJSONFormatter(logging.Formatter):
    """
    JSON formatter that redacts sensitive fields.
    """

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'request_id': getattr(record, 'request_id', '-'),
            'user_id': getattr(record, 'user_id', '-'),
            'user_roles': getattr(record, 'user_roles', '-'),
        }

        # Extra fields (from extra={} in logging calls)
        for key, value in record.__dict__.items():
            if key in log_data or key.startswith('_') or key in _RESERVED_RECORD_ATTRS:
                continue
            if key.lower() in SENSITIVE_FIELDS:
                log_data[key] = '[REDACTED]'
            else:
                log_data[key] = _sanitize_value(value)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def _sanitize_value(value):
    if isinstance(value, dict):
        return sanitize_dict(value)
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(v) for v in value]
    return value


def get_sanitized_logger(name):
    """
    Get a logger with correlation filter applied.

    Usage:
        logger = get_sanitized_logger(__name__)
        logger.info('Note finalized', extra={'event': 'progress_note_finalized', 'note_id': ...})
    """
    logger = logging.getLogger(name)

    if not any(isinstance(f, CorrelationFilter) for f in logger.filters):
        logger.addFilter(CorrelationFilter())

    return logger


def sanitize_dict(data):
    """
    Return a copy of `data` with sensitive keys redacted (recursively).

    Keys are compared case-insensitively, so both `signatureHash` and
    `signature_hash` are caught.
    """
    if not isinstance(data, dict):
        return data

    sanitized = {}
    for key, value in data.items():
        if str(key).lower() in SENSITIVE_FIELDS:
            sanitized[key] = '[REDACTED]'
        else:
            sanitized[key] = _sanitize_value(value)
    return sanitized

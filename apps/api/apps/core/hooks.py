"""
Post-commit hooks for side effects (audit rows, notifications, signals).

Side effects registered here run once, after the surrounding transaction
commits, and only if it commits. Delivery is at-most-once and best-effort:
a failing hook is logged and counted, never raised to the caller, and
never rolls back the primary write that already committed.
"""
from django.db import transaction

from apps.core.observability.logging import get_sanitized_logger
from apps.core.observability.metrics import metrics

logger = get_sanitized_logger(__name__)


def after_commit(func, *args, name=None, **kwargs):
    """
    Schedule `func(*args, **kwargs)` to run after the current transaction commits.

    Outside an atomic block Django runs the callback immediately.

    Usage:
        after_commit(notify, patient_id, 'appointment', 'Appointment Declined', ...,
                     name='notify_patient_declined')
    """
    hook_name = name or getattr(func, '__name__', 'anonymous_hook')

    def _run():
        try:
            func(*args, **kwargs)
        except Exception as exc:
            metrics.post_commit_hook_failures_total.labels(hook=hook_name).inc()
            logger.error(
                f'Post-commit hook failed: {hook_name}',
                exc_info=True,
                extra={
                    'event': 'post_commit_hook_failed',
                    'hook': hook_name,
                    'exception_type': exc.__class__.__name__,
                }
            )

    transaction.on_commit(_run)

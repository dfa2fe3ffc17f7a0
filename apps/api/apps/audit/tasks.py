"""
Celery tasks for audit maintenance.
"""
from celery import shared_task

from apps.audit.services import prune_old_audit_logs


@shared_task(name='apps.audit.tasks.prune_audit_logs')
def prune_audit_logs(retention_days=None):
    """Scheduled daily by CELERY_BEAT_SCHEDULE. Returns the deleted count."""
    return prune_old_audit_logs(retention_days)

"""
Celery tasks for EMR maintenance.
"""
from celery import shared_task

from apps.emr.services import expire_prescriptions


@shared_task(name='apps.emr.tasks.expire_prescriptions')
def expire_prescriptions_task():
    """Scheduled hourly by CELERY_BEAT_SCHEDULE. Returns the expired count."""
    return expire_prescriptions()

"""
Notification service.

`notify()` is the only entry point domain code uses. The row is created by
a post-commit hook, so a rolled-back business write never notifies anyone
and a failed notification never fails the business write.
"""
from apps.core.hooks import after_commit
from apps.core.observability.logging import get_sanitized_logger
from apps.notifications.models import Notification, NotificationPriority

logger = get_sanitized_logger(__name__)


def create_notification(user_id, type, title, message, priority=NotificationPriority.NORMAL, action_url=''):
    notification = Notification.objects.create(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        priority=priority,
        action_url=action_url,
    )
    logger.info(
        'Notification created',
        extra={
            'event': 'notification_created',
            'notification_id': str(notification.id),
            'recipient_id': str(user_id),
            'notification_type': type,
        }
    )
    return notification


def notify(user_id, type, title, message, priority=NotificationPriority.NORMAL, action_url=''):
    """Queue a notification for after the current transaction commits."""
    after_commit(
        create_notification,
        user_id,
        type,
        title,
        message,
        priority=priority,
        action_url=action_url,
        name=f'notify_{type}',
    )


def mark_read(user_id, notification_id):
    """Mark one of the user's notifications read. Returns False if not theirs / missing."""
    updated = Notification.objects.filter(id=notification_id, user_id=user_id).update(read=True)
    return bool(updated)


def mark_all_read(user_id):
    return Notification.objects.filter(user_id=user_id, read=False).update(read=True)

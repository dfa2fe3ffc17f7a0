"""
In-app notifications.
"""
import uuid
from django.conf import settings
from django.db import models


class NotificationType(models.TextChoices):
    APPOINTMENT = 'appointment', 'Appointment'
    CONNECTION = 'connection', 'Connection'
    NOTE = 'note', 'Note'
    PRESCRIPTION = 'prescription', 'Prescription'
    SYSTEM = 'system', 'System'


class NotificationPriority(models.TextChoices):
    LOW = 'low', 'Low'
    NORMAL = 'normal', 'Normal'
    HIGH = 'high', 'High'


class Notification(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
    )
    type = models.CharField(max_length=16, choices=NotificationType.choices)
    title = models.CharField(max_length=200)
    message = models.TextField()
    priority = models.CharField(
        max_length=8,
        choices=NotificationPriority.choices,
        default=NotificationPriority.NORMAL,
    )
    read = models.BooleanField(default=False)
    action_url = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notification'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'read'], name='idx_notification_user_read'),
        ]

    def __str__(self):
        return f'{self.type}: {self.title}'

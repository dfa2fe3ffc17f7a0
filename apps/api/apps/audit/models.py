"""
Audit models: append-only audit_log.

Rows are never updated. The only deletion path is the retention prune
(apps.audit.services.prune_old_audit_logs).
"""
import uuid
from django.conf import settings
from django.db import models


class AuditAction(models.TextChoices):
    CREATE = 'create', 'Create'
    READ = 'read', 'Read'
    UPDATE = 'update', 'Update'
    DELETE = 'delete', 'Delete'
    VIEW = 'view', 'View'
    FINALIZE = 'finalize', 'Finalize'
    AMEND = 'amend', 'Amend'
    REVIEW = 'review', 'Review'
    SEND = 'send', 'Send'


class AuditSource(models.TextChoices):
    API = 'api', 'API'
    SYSTEM = 'system', 'System'
    INTEGRATION = 'integration', 'Integration'


class AuditEntityType(models.TextChoices):
    ENCOUNTER = 'encounter', 'Encounter'
    PROGRESS_NOTE = 'progress_note', 'Progress Note'
    INVESTIGATION_ORDER = 'investigation_order', 'Investigation Order'
    INVESTIGATION_RESULT = 'investigation_result', 'Investigation Result'
    CORRESPONDENCE = 'correspondence', 'Correspondence'
    TEMPLATE = 'template', 'Template'
    USER = 'user', 'User'
    APPOINTMENT = 'appointment', 'Appointment'
    PROVIDER_PATIENT_LINK = 'provider_patient_link', 'Provider-Patient Link'
    PRESCRIPTION = 'prescription', 'Prescription'


class AuditLog(models.Model):
    """
    One row per audited read/write/view of clinical data.

    Fields:
    - user: actor (null for system actions, SET_NULL on user deletion)
    - action / entity_type / entity_id: what happened to which entity.
      entity_id is a string so collection views can record 'list'.
    - ip: first X-Forwarded-For hop, else X-Real-IP, else REMOTE_ADDR
    - source: api|system|integration
    - metadata: provenance envelope, never clinical free text
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='audit_logs',
    )
    action = models.CharField(max_length=16, choices=AuditAction.choices)
    entity_type = models.CharField(max_length=32, choices=AuditEntityType.choices)
    entity_id = models.CharField(max_length=64)
    ip = models.GenericIPAddressField(blank=True, null=True)
    source = models.CharField(max_length=16, choices=AuditSource.choices, default=AuditSource.API)
    timestamp = models.DateTimeField()
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = 'audit_log'
        verbose_name = 'Audit Log'
        verbose_name_plural = 'Audit Logs'
        indexes = [
            models.Index(fields=['timestamp'], name='idx_audit_timestamp'),
            models.Index(fields=['user'], name='idx_audit_user'),
            models.Index(fields=['entity_type', 'entity_id'], name='idx_audit_entity'),
            models.Index(fields=['action'], name='idx_audit_action'),
        ]
        ordering = ['-timestamp']

    def __str__(self):
        actor = self.user_id or 'system'
        return f'{self.action} on {self.entity_type}[{self.entity_id[:8]}] by {actor}'

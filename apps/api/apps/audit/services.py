"""
Audit recorder.

`audit()` appends one AuditLog row and never raises: a failing audit write
is logged to the operational log and the clinical operation carries on.
Callers that mutate clinical data schedule it with
apps.core.hooks.after_commit so the row is written only once the business
write has committed.
"""
from datetime import timedelta
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.audit.models import AuditLog, AuditSource
from apps.core.observability.logging import get_sanitized_logger
from apps.core.observability.metrics import metrics

logger = get_sanitized_logger(__name__)

# Clinical and free text must never be copied into audit metadata
CLINICAL_TEXT_FIELDS = {
    'subjective',
    'objective',
    'assessment',
    'plan',
    'summary',
    'instructions',
    'notes',
    'reason',
    'cancellationReason',
}


def client_ip(request) -> Optional[str]:
    """
    Client IP: first X-Forwarded-For hop, then X-Real-IP, then REMOTE_ADDR.
    """
    if request is None:
        return None
    meta = request.META
    forwarded_for = meta.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded_for:
        first_hop = forwarded_for.split(',')[0].strip()
        if first_hop:
            return first_hop
    return meta.get('HTTP_X_REAL_IP') or meta.get('REMOTE_ADDR') or None


def _strip_clinical_text(metadata):
    if not isinstance(metadata, dict):
        return {}
    return {
        key: _strip_clinical_text(value) if isinstance(value, dict) else value
        for key, value in metadata.items()
        if key not in CLINICAL_TEXT_FIELDS
    }


def build_provenance_metadata(principal, **extra) -> Dict[str, Any]:
    """
    Minimal provenance envelope for audit metadata.

    Returns {userEmail, userRole, providerApprovalStatus, timestamp, **extra}.
    Callers add identifiers (encounterId, patientId), never clinical content.
    """
    metadata = {
        'userEmail': principal.email if principal else None,
        'userRole': principal.role_label if principal else None,
        'providerApprovalStatus': principal.provider_approval_status if principal else None,
        'timestamp': timezone.now().isoformat(),
    }
    metadata.update(extra)
    return metadata


def audit(
    principal,
    action: str,
    entity_type: str,
    entity_id,
    request=None,
    metadata: Optional[Dict[str, Any]] = None,
    source: str = AuditSource.API,
    timestamp=None,
) -> Optional[AuditLog]:
    """
    Append one audit row. Returns the row, or None if the write failed.

    Args:
        principal: acting Principal (None for system actions)
        action: AuditAction value
        entity_type: AuditEntityType value
        entity_id: id of the entity, or a marker such as 'list'
        request: HTTP request, used for the client IP
        metadata: extra provenance (clinical text keys are dropped)
        source: AuditSource value, defaults to api
        timestamp: defaults to now
    """
    try:
        ip = client_ip(request)
        # Savepoint: a failed insert must not poison an enclosing transaction
        with transaction.atomic():
            entry = AuditLog.objects.create(
                user_id=principal.id if principal else None,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                ip=ip,
                source=source,
                timestamp=timestamp or timezone.now(),
                metadata=_strip_clinical_text(metadata or {}),
            )
    except Exception as exc:
        metrics.audit_writes_total.labels(result='failure').inc()
        logger.error(
            'Audit write failed',
            exc_info=True,
            extra={
                'event': 'audit_write_failed',
                'audit_action': action,
                'entity_type': entity_type,
                'entity_id': str(entity_id),
                'exception_type': exc.__class__.__name__,
            }
        )
        return None

    metrics.audit_writes_total.labels(result='success').inc()
    return entry


def prune_old_audit_logs(retention_days: Optional[int] = None) -> int:
    """
    Delete audit rows older than the retention window.

    Args:
        retention_days: window in days; defaults to settings.AUDIT_RETENTION_DAYS (365)

    Returns:
        Number of rows deleted, 0 on database error.
    """
    if retention_days is None:
        retention_days = getattr(settings, 'AUDIT_RETENTION_DAYS', 365)
    if retention_days < 0:
        raise ValueError('retention_days must be >= 0')

    cutoff = timezone.now() - timedelta(days=retention_days)
    try:
        deleted, _ = AuditLog.objects.filter(timestamp__lt=cutoff).delete()
    except DatabaseError:
        logger.error(
            'Audit prune failed',
            exc_info=True,
            extra={'event': 'audit_prune_failed', 'retention_days': retention_days}
        )
        return 0

    metrics.audit_pruned_total.inc(deleted)
    logger.info(
        'Audit logs pruned',
        extra={
            'event': 'audit_pruned',
            'deleted': deleted,
            'retention_days': retention_days,
            'cutoff': cutoff.isoformat(),
        }
    )
    return deleted

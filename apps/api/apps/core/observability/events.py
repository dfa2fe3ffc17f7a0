"""
Domain events logging helpers.

Provides structured event logging for clinical and scheduling operations.
"""
from typing import Dict, Optional

from .logging import get_sanitized_logger, sanitize_dict
from .metrics import metrics

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'progress_note_finalized')
        entity_type: Type of entity (e.g., 'ProgressNote', 'Appointment')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, blocked, ...)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'progress_note_finalized',
            entity_type='ProgressNote',
            entity_id=str(note.id),
            entity_ids={'patient_id': str(note.patient_id)},
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    event_data.update(sanitize_dict(extra_fields))

    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'blocked', 'conflict']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_note_transition(note, from_status, to_status, result='success', **extra):
    """Log a progress note status transition and count it."""
    metrics.note_transitions_total.labels(
        from_status=from_status,
        to_status=to_status,
        result=result,
    ).inc()
    log_domain_event(
        f'progress_note_{to_status}' if result == 'success' else 'progress_note_transition',
        entity_type='ProgressNote',
        entity_id=str(note.id),
        entity_ids={
            'patient_id': str(note.patient_id),
            'encounter_id': str(note.encounter_id) if note.encounter_id else None,
        },
        result=result,
        from_status=from_status,
        to_status=to_status,
        **extra
    )


def log_appointment_transition(appointment, from_status, to_status, event, **extra):
    """Log an appointment status change (accept, decline, reschedule, meeting)."""
    metrics.appointment_transitions_total.labels(to_status=to_status).inc()
    log_domain_event(
        event,
        entity_type='Appointment',
        entity_id=str(appointment.id),
        entity_ids={
            'provider_id': str(appointment.provider_id),
            'patient_id': str(appointment.patient_id),
        },
        from_status=from_status,
        to_status=to_status,
        **extra
    )


def log_access_denied(reason, principal_id=None, **extra):
    """Log a blocked permission or relationship check (no PHI)."""
    log_domain_event(
        'access_denied',
        entity_type='Principal',
        entity_id=str(principal_id) if principal_id else None,
        result='blocked',
        reason_code=reason,
        **extra
    )

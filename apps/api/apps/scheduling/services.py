"""
Appointment services.

Status changes are provider actions on the provider's own appointments;
patients only request new ones. Every change is audited (action=update,
metadata.event = 'appointment.<event>') and the other party is notified,
both after commit.
"""
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from apps.audit.models import AuditAction, AuditEntityType
from apps.audit.services import audit, build_provenance_metadata
from apps.authz.capabilities import Perm, require_permission
from apps.connections.services import parse_uuid
from apps.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    UnauthorizedError,
    ValidationError,
)
from apps.core.hooks import after_commit
from apps.core.observability.events import log_appointment_transition
from apps.notifications.models import NotificationPriority, NotificationType
from apps.notifications.services import notify
from apps.scheduling.models import Appointment, AppointmentStatus

User = get_user_model()

# Longest appointment considered when looking back for overlaps
MAX_DURATION_MINUTES = 480


# ============================================================================
# Helpers
# ============================================================================

def _when(value):
    local = timezone.localtime(value)
    return f'{local:%A, %b %d} at {local:%H:%M}'


def _audit_appointment(principal, appointment, event, request, **extra):
    after_commit(
        audit,
        principal,
        AuditAction.UPDATE if event != 'appointment.requested' else AuditAction.CREATE,
        AuditEntityType.APPOINTMENT,
        appointment.pk,
        request=request,
        metadata=build_provenance_metadata(principal, event=event, **extra),
        name=f'audit_{event}',
    )


def _check_lead_time(start):
    minimum = timezone.now() + timedelta(minutes=settings.APPOINTMENT_MIN_LEAD_MINUTES)
    if start < minimum:
        raise ValidationError(
            f'Appointments must be scheduled at least {settings.APPOINTMENT_MIN_LEAD_MINUTES} minutes in advance',
            minimumTime=minimum.isoformat(),
        )


def find_overlap(provider_id, start, duration, exclude_id=None) -> Optional[Appointment]:
    """
    First active appointment of the provider overlapping [start, start+duration).

    Overlap: existing.start < new.end AND existing.end > new.start.
    Back-to-back slots do not overlap.
    """
    end = start + timedelta(minutes=duration)
    candidates = Appointment.objects.filter(
        provider_id=provider_id,
        status__in=Appointment._ACTIVE_STATUSES,
        date__lt=end,
        date__gt=start - timedelta(minutes=MAX_DURATION_MINUTES),
    )
    if exclude_id is not None:
        candidates = candidates.exclude(pk=exclude_id)
    for candidate in candidates.order_by('date'):
        if candidate.end_at > start:
            return candidate
    return None


def _raise_unavailable(conflict):
    raise ConflictError(
        'Provider is not available at the selected time',
        conflict={
            'id': str(conflict.pk),
            'date': conflict.date.isoformat(),
            'duration': conflict.duration,
        },
    )


def _load_owned(principal, appointment_id) -> Appointment:
    """
    Lock and return an appointment owned by the calling provider.

    Must run inside transaction.atomic().
    """
    require_permission(principal, Perm.APPOINTMENT_MANAGE)
    appointment = (
        Appointment.objects.select_for_update()
        .filter(pk=parse_uuid(appointment_id, 'id'))
        .first()
    )
    if appointment is None:
        raise NotFoundError('Appointment not found')
    if appointment.provider_id != principal.id:
        raise PermissionDeniedError('Insufficient permissions')
    return appointment


# ============================================================================
# Booking
# ============================================================================

def request_appointment(
    principal,
    provider_id,
    date,
    duration: int = 30,
    type: str = 'consultation',
    title: str = '',
    notes: str = '',
    request=None,
) -> Appointment:
    """
    Patient books a slot with an approved provider. Starts as 'scheduled'.

    BUSINESS RULES:
    1. Only patients request appointments
    2. The start is at least APPOINTMENT_MIN_LEAD_MINUTES ahead
    3. The provider has no active appointment overlapping the slot (409)
    """
    if principal is None:
        raise UnauthorizedError()
    if not principal.is_patient:
        raise PermissionDeniedError('Only patients can request appointments')
    _check_lead_time(date)

    provider_id = parse_uuid(provider_id, 'providerId')
    with transaction.atomic():
        # Serialize bookings per provider on the provider row
        provider = User.objects.select_for_update().filter(
            pk=provider_id,
            is_provider=True,
            is_active=True,
        ).first()
        if provider is None or not provider.is_approved_provider:
            raise NotFoundError('Provider not found')

        conflict = find_overlap(provider.pk, date, duration)
        if conflict is not None:
            _raise_unavailable(conflict)

        appointment = Appointment.objects.create(
            patient_id=principal.id,
            provider_id=provider.pk,
            date=date,
            duration=duration,
            type=type or 'consultation',
            title=title or '',
            notes=notes or '',
            status=AppointmentStatus.SCHEDULED,
        )

        _audit_appointment(principal, appointment, 'appointment.requested', request, date=date.isoformat())
        notify(
            provider.pk,
            NotificationType.APPOINTMENT,
            'New Appointment Request',
            f'A patient requested an appointment on {_when(date)}',
            action_url='/provider/appointments',
        )

    log_appointment_transition(appointment, 'new', AppointmentStatus.SCHEDULED, 'appointment_requested')
    return appointment


def list_appointments(principal, statuses=None):
    """Providers see appointments they give, everyone else the ones they attend."""
    if principal is None:
        raise UnauthorizedError()
    if principal.is_provider:
        queryset = Appointment.objects.filter(provider_id=principal.id)
    else:
        queryset = Appointment.objects.filter(patient_id=principal.id)
    if statuses:
        unknown = [s for s in statuses if s not in AppointmentStatus.values]
        if unknown:
            raise ValidationError(
                'Invalid status value',
                issues=[{'path': 'status', 'message': f'Unknown status: {", ".join(unknown)}'}],
            )
        queryset = queryset.filter(status__in=statuses)
    return queryset.select_related('provider', 'patient').order_by('-date')


# ============================================================================
# Provider actions
# ============================================================================

def accept(principal, appointment_id, request=None) -> Appointment:
    """scheduled -> confirmed. Notifies the provider and the patient."""
    with transaction.atomic():
        appointment = _load_owned(principal, appointment_id)
        if appointment.status != AppointmentStatus.SCHEDULED:
            raise ValidationError('Only scheduled appointments can be accepted')

        previous_status = appointment.transition_status(AppointmentStatus.CONFIRMED)
        appointment.save(update_fields=['status', 'updated_at'])

        _audit_appointment(
            principal, appointment, 'appointment.accepted', request,
            previousStatus=previous_status,
            newStatus=appointment.status,
        )
        when = _when(appointment.date)
        notify(
            appointment.provider_id,
            NotificationType.APPOINTMENT,
            'Appointment Accepted',
            f'You accepted an appointment on {when}',
            action_url='/provider/appointments',
        )
        notify(
            appointment.patient_id,
            NotificationType.APPOINTMENT,
            'Appointment Confirmed',
            f'Your appointment has been accepted by the provider for {when}',
        )

    log_appointment_transition(appointment, previous_status, appointment.status, 'appointment_accepted')
    return appointment


def decline(principal, appointment_id, reason: Optional[str] = None, request=None) -> Appointment:
    """
    scheduled|confirmed -> cancelled.

    The reason is kept in `notes` as a `cancelReason:<reason>` line.
    """
    with transaction.atomic():
        appointment = _load_owned(principal, appointment_id)
        if appointment.status not in (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED):
            raise ValidationError('Only scheduled or confirmed appointments can be declined')

        reason = (reason or '').strip()
        lines = [appointment.notes or '', f'cancelReason:{reason}' if reason else '']
        appointment.notes = '\n'.join(line for line in lines if line).strip()
        previous_status = appointment.transition_status(AppointmentStatus.CANCELLED)
        appointment.save(update_fields=['status', 'notes', 'updated_at'])

        _audit_appointment(
            principal, appointment, 'appointment.declined', request,
            previousStatus=previous_status,
            newStatus=appointment.status,
            hasReason=bool(reason),
        )
        message = f'Your appointment on {_when(appointment.date)} was declined by the provider.'
        if reason:
            message = f'{message} Reason: {reason}'
        notify(
            appointment.patient_id,
            NotificationType.APPOINTMENT,
            'Appointment Declined',
            message,
            priority=NotificationPriority.HIGH,
            action_url='/patient/appointments',
        )

    log_appointment_transition(appointment, previous_status, appointment.status, 'appointment_declined')
    return appointment


def reschedule(principal, appointment_id, date, duration: Optional[int] = None, request=None) -> Appointment:
    """
    Move an appointment to a new start time, keeping its status.

    Raises:
        ValidationError: missing date, not enough lead time, or the
            appointment is cancelled/completed/no-show
        ConflictError: the provider is busy in the new slot
    """
    if date is None:
        raise ValidationError(
            'New date is required',
            issues=[{'path': 'date', 'message': 'Required'}],
        )

    with transaction.atomic():
        appointment = _load_owned(principal, appointment_id)
        if appointment.status not in Appointment._ACTIVE_STATUSES:
            raise ValidationError(f'Cannot reschedule a {appointment.status} appointment')

        _check_lead_time(date)
        duration = duration or appointment.duration or 30
        conflict = find_overlap(appointment.provider_id, date, duration, exclude_id=appointment.pk)
        if conflict is not None:
            _raise_unavailable(conflict)

        previous_date = appointment.date
        appointment.date = date
        appointment.duration = duration
        appointment.save(update_fields=['date', 'duration', 'updated_at'])

        _audit_appointment(
            principal, appointment, 'appointment.rescheduled', request,
            previousDate=previous_date.isoformat(),
            newDate=date.isoformat(),
            status=appointment.status,
        )
        notify(
            appointment.patient_id,
            NotificationType.APPOINTMENT,
            'Appointment Rescheduled',
            f'Your appointment has been rescheduled to {_when(date)}',
            action_url='/patient/appointments',
        )

    log_appointment_transition(
        appointment, appointment.status, appointment.status, 'appointment_rescheduled',
        previous_date=previous_date.isoformat(),
    )
    return appointment


# ============================================================================
# Meeting lifecycle
# ============================================================================

def meeting_link_for(appointment) -> str:
    return f'{settings.MEETING_BASE_URL.rstrip("/")}/{appointment.pk}'


def start_meeting(principal, appointment_id, request=None) -> Appointment:
    """confirmed -> in-progress. Creates the meeting link when there is none."""
    with transaction.atomic():
        appointment = _load_owned(principal, appointment_id)
        previous_status = appointment.transition_status(AppointmentStatus.IN_PROGRESS)
        appointment.meeting_start_at = timezone.now()
        if not appointment.meeting_link:
            appointment.meeting_link = meeting_link_for(appointment)
        appointment.save(update_fields=['status', 'meeting_start_at', 'meeting_link', 'updated_at'])

        _audit_appointment(
            principal, appointment, 'appointment.meeting_started', request,
            previousStatus=previous_status,
            newStatus=appointment.status,
        )
        notify(
            appointment.patient_id,
            NotificationType.APPOINTMENT,
            'Appointment Started',
            'Your provider has started the meeting. Join now.',
            priority=NotificationPriority.HIGH,
            action_url=appointment.meeting_link,
        )

    log_appointment_transition(appointment, previous_status, appointment.status, 'appointment_meeting_started')
    return appointment


def end_meeting(principal, appointment_id, request=None) -> Appointment:
    """in-progress -> completed."""
    with transaction.atomic():
        appointment = _load_owned(principal, appointment_id)
        previous_status = appointment.transition_status(AppointmentStatus.COMPLETED)
        appointment.meeting_end_at = timezone.now()
        appointment.save(update_fields=['status', 'meeting_end_at', 'updated_at'])

        duration_seconds = None
        if appointment.meeting_start_at:
            duration_seconds = int((appointment.meeting_end_at - appointment.meeting_start_at).total_seconds())
        _audit_appointment(
            principal, appointment, 'appointment.meeting_ended', request,
            previousStatus=previous_status,
            newStatus=appointment.status,
            meetingDurationSeconds=duration_seconds,
        )

    log_appointment_transition(appointment, previous_status, appointment.status, 'appointment_meeting_ended')
    return appointment


def mark_no_show(principal, appointment_id, request=None) -> Appointment:
    """confirmed -> no-show, only once the start time has passed."""
    with transaction.atomic():
        appointment = _load_owned(principal, appointment_id)
        previous_status = appointment.transition_status(AppointmentStatus.NO_SHOW)
        appointment.save(update_fields=['status', 'updated_at'])

        _audit_appointment(
            principal, appointment, 'appointment.no_show', request,
            previousStatus=previous_status,
            newStatus=appointment.status,
        )
        notify(
            appointment.patient_id,
            NotificationType.APPOINTMENT,
            'Missed Appointment',
            f'You were marked as absent for your appointment on {_when(appointment.date)}.',
            action_url='/patient/appointments',
        )

    log_appointment_transition(appointment, previous_status, appointment.status, 'appointment_no_show')
    return appointment

"""
EMR services: progress note state machine, encounters and prescriptions.

Every operation takes the caller's Principal explicitly and runs the same
guard sequence:

    require_permission (pure, cheap)
    -> ensure_provider_patient_link (one query)
    -> load + state checks
    -> write
    -> post-commit side effects (audit row, domain signal, notifications)

Concurrency: note status changes are compare-and-swap UPDATEs
(`... WHERE status='draft'`), so two concurrent finalize calls cannot both
succeed and a stored signature is never overwritten. Draft updates also bump
`row_version`; callers that send the version they read get a 409 instead of
silently overwriting a concurrent edit.
"""
from typing import Any, Dict, List, Optional

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from apps.audit.models import AuditAction, AuditEntityType, AuditSource
from apps.audit.services import audit, build_provenance_metadata
from apps.authz.capabilities import Perm, require_permission
from apps.connections.models import LinkStatus, ProviderPatientLink
from apps.connections.services import ensure_provider_patient_link, parse_uuid
from apps.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    UnauthorizedError,
    ValidationError,
)
from apps.core.hooks import after_commit
from apps.core.observability.events import log_domain_event, log_note_transition
from apps.core.observability.logging import get_sanitized_logger
from apps.emr.models import (
    Encounter,
    EncounterStatus,
    NoteStatus,
    Prescription,
    PrescriptionStatus,
    ProgressNote,
)
from apps.emr.signals import note_finalized
from apps.notifications.models import NotificationPriority, NotificationType
from apps.notifications.services import notify
from apps.scheduling.models import Appointment

logger = get_sanitized_logger(__name__)

EDITABLE_FIELDS = ProgressNote.CLINICAL_FIELDS + ('attachments',)


# ============================================================================
# Helpers
# ============================================================================

def _clean_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Editable fields present in `data`; None on a text field means empty."""
    fields = {}
    for name in EDITABLE_FIELDS:
        if name not in data:
            continue
        value = data[name]
        if name == 'attachments':
            value = value or []
        elif value is None:
            value = ''
        fields[name] = value
    return fields


def _audit_note(principal, note, action, request, **extra):
    after_commit(
        audit,
        principal,
        action,
        AuditEntityType.PROGRESS_NOTE,
        note.pk,
        request=request,
        metadata=build_provenance_metadata(
            principal,
            encounterId=str(note.encounter_id) if note.encounter_id else None,
            patientId=str(note.patient_id),
            **extra
        ),
        name=f'audit_note_{action}',
    )


def _can_sign(principal, note) -> bool:
    """Author, the provider of the note's encounter, or an admin."""
    if note.author_id == principal.id or principal.is_admin:
        return True
    return note.encounter_id is not None and note.encounter.provider_id == principal.id


def _emit_note_finalized(payload):
    responses = note_finalized.send_robust(sender=ProgressNote, **payload)
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.error(
                'note_finalized receiver failed',
                exc_info=response,
                extra={
                    'event': 'note_finalized_receiver_failed',
                    'receiver': getattr(receiver, '__name__', repr(receiver)),
                    'note_id': payload['note_id'],
                }
            )


def _load_note_for_update(note_id, patient_id=None) -> ProgressNote:
    note = (
        ProgressNote.objects.select_for_update()
        .filter(pk=parse_uuid(note_id, 'id'))
        .first()
    )
    # A note outside the route's patient is reported as missing
    if note is None or (patient_id is not None and note.patient_id != patient_id):
        raise NotFoundError('Progress note not found')
    return note


# ============================================================================
# Progress note state machine
# ============================================================================

def create_draft(principal, patient_id, data: Dict[str, Any], request=None) -> ProgressNote:
    """
    Create a draft note authored by the calling provider.

    Raises:
        PermissionDeniedError: missing progress_note.create or not approved
        AccessDeniedError: no approved link with the patient
        NotFoundError: encounterId given but unknown
        ConflictError: encounter belongs to another patient
    """
    require_permission(principal, Perm.NOTE_CREATE, require_approved_provider=True)
    ensure_provider_patient_link(principal, patient_id)
    patient_id = parse_uuid(patient_id, 'patientId')

    encounter = None
    encounter_id = data.get('encounter_id')
    if encounter_id:
        encounter = Encounter.objects.filter(pk=encounter_id).first()
        if encounter is None:
            raise NotFoundError('Encounter not found')
        if encounter.patient_id != patient_id:
            raise ConflictError('Patient mismatch for encounter')

    with transaction.atomic():
        note = ProgressNote.objects.create(
            encounter=encounter,
            patient_id=patient_id,
            author_id=principal.id,
            status=NoteStatus.DRAFT,
            **_clean_fields(data)
        )
        _audit_note(principal, note, AuditAction.CREATE, request)

    log_note_transition(note, 'new', NoteStatus.DRAFT)
    return note


def update_draft(principal, note_id, data: Dict[str, Any], patient_id=None, request=None) -> ProgressNote:
    """
    Autosave / edit a draft note.

    Args:
        data: editable fields, plus optional `row_version` (the version the
            caller last read) and `autosave` (stamps autosaved_at)
        patient_id: when called from a patient-scoped route, the note must
            belong to that patient

    Raises:
        ConflictError: note is finalized/amended, or row_version is stale
        PermissionDeniedError: caller is neither the author nor an admin
    """
    require_permission(principal, Perm.NOTE_UPDATE, require_approved_provider=True)
    if patient_id is not None:
        ensure_provider_patient_link(principal, patient_id)
        patient_id = parse_uuid(patient_id, 'patientId')

    with transaction.atomic():
        note = _load_note_for_update(note_id, patient_id)
        if patient_id is None:
            ensure_provider_patient_link(principal, note.patient_id)

        if note.status != NoteStatus.DRAFT:
            raise ConflictError('Finalized notes are immutable; use amendment flow')
        if note.author_id != principal.id and not principal.is_admin:
            raise PermissionDeniedError('Forbidden: not author')

        expected_version = data.get('row_version')
        if expected_version is not None and expected_version != note.row_version:
            raise ConflictError(
                'Note was modified by another request',
                currentRowVersion=note.row_version,
                providedRowVersion=expected_version,
            )

        changes = _clean_fields(data)
        now = timezone.now()
        if data.get('autosave'):
            changes['autosaved_at'] = now

        updated = ProgressNote.objects.filter(
            pk=note.pk,
            status=NoteStatus.DRAFT,
            row_version=note.row_version,
        ).update(row_version=F('row_version') + 1, updated_at=now, **changes)
        if not updated:
            raise ConflictError('Note was modified by another request')

        note.refresh_from_db()
        _audit_note(
            principal, note, AuditAction.UPDATE, request,
            changedFields=sorted(k for k in changes if k != 'autosaved_at'),
            autosave=bool(data.get('autosave')),
        )

    return note


def finalize_note(
    principal,
    note_id,
    signature_hash: str,
    finalized_at=None,
    patient_id=None,
    request=None,
) -> ProgressNote:
    """
    Lock a draft note's content and attach the signature.

    Not idempotent: a second call always answers 409 "Note already finalized"
    and never overwrites the stored signature.

    Order of checks:
        1. progress_note.finalize + approved provider       (403)
        2. signature hash present                           (400)
        3. patient link, patient-scoped route only          (403)
        4. note exists                                      (404)
        5. already finalized / amended                      (409)
        6. author, encounter provider or admin              (403)

    On success the audit 'finalize' row and the note_finalized signal are
    emitted after commit.
    """
    require_permission(principal, Perm.NOTE_FINALIZE, require_approved_provider=True)
    if not signature_hash or not signature_hash.strip():
        raise ValidationError(
            'Validation failed',
            issues=[{'path': 'signatureHash', 'message': 'Required'}],
        )
    if patient_id is not None:
        ensure_provider_patient_link(principal, patient_id)
        patient_id = parse_uuid(patient_id, 'patientId')

    with transaction.atomic():
        note = _load_note_for_update(note_id, patient_id)

        if note.status == NoteStatus.FINALIZED:
            log_note_transition(note, note.status, NoteStatus.FINALIZED, result='conflict')
            raise ConflictError('Note already finalized')
        if note.status == NoteStatus.AMENDED:
            log_note_transition(note, note.status, NoteStatus.FINALIZED, result='conflict')
            raise ConflictError('Amended notes cannot be finalized')
        if not _can_sign(principal, note):
            raise PermissionDeniedError('Forbidden: not author or encounter provider')

        finalized_at = finalized_at or timezone.now()
        updated = ProgressNote.objects.filter(
            pk=note.pk,
            status=NoteStatus.DRAFT,
        ).update(
            status=NoteStatus.FINALIZED,
            signature_hash=signature_hash,
            finalized_at=finalized_at,
            row_version=F('row_version') + 1,
            updated_at=timezone.now(),
        )
        if not updated:
            # Lost the race against a concurrent finalize
            raise ConflictError('Note already finalized')

        note.refresh_from_db()
        _audit_note(principal, note, AuditAction.FINALIZE, request)
        after_commit(
            _emit_note_finalized,
            {
                'note_id': str(note.pk),
                'encounter_id': str(note.encounter_id) if note.encounter_id else None,
                'patient_id': str(note.patient_id),
                'author_id': str(note.author_id),
                'finalized_at': note.finalized_at.isoformat(),
                'signature_hash': note.signature_hash,
            },
            name='emit_note_finalized',
        )

    log_note_transition(note, NoteStatus.DRAFT, NoteStatus.FINALIZED)
    return note


def amend_note(principal, original_id, reason: str, data: Dict[str, Any], request=None) -> ProgressNote:
    """
    Amend a finalized note.

    The original keeps its content and signature and moves to 'amended'.
    A new draft is created with amended_from=original; fields not supplied
    in `data` are copied from the original. The new draft then follows the
    normal update/finalize flow.
    """
    require_permission(principal, Perm.NOTE_AMEND, require_approved_provider=True)
    if not reason or not reason.strip():
        raise ValidationError(
            'Validation failed',
            issues=[{'path': 'reason', 'message': 'Amendment reason is required'}],
        )

    with transaction.atomic():
        original = _load_note_for_update(original_id)
        ensure_provider_patient_link(principal, original.patient_id)

        if original.status == NoteStatus.DRAFT:
            raise ConflictError('Only finalized notes can be amended')
        if original.status == NoteStatus.AMENDED:
            raise ConflictError('Note has already been amended')
        if not _can_sign(principal, original):
            raise PermissionDeniedError('Forbidden: not author or encounter provider')

        flipped = ProgressNote.objects.filter(
            pk=original.pk,
            status=NoteStatus.FINALIZED,
        ).update(status=NoteStatus.AMENDED, updated_at=timezone.now())
        if not flipped:
            raise ConflictError('Note has already been amended')

        content = {field: getattr(original, field) for field in EDITABLE_FIELDS}
        content.update(_clean_fields(data))
        amendment = ProgressNote.objects.create(
            encounter_id=original.encounter_id,
            patient_id=original.patient_id,
            author_id=principal.id,
            status=NoteStatus.DRAFT,
            amended_from=original,
            amendment_reason=reason.strip(),
            **content
        )

        _audit_note(
            principal, original, AuditAction.AMEND, request,
            amendmentId=str(amendment.pk),
        )

    log_note_transition(original, NoteStatus.FINALIZED, NoteStatus.AMENDED, amendment_id=str(amendment.pk))
    return amendment


# ============================================================================
# Reads
# ============================================================================

def list_notes(
    principal,
    patient_id,
    encounter_id=None,
    status: Optional[str] = None,
    keywords: Optional[str] = None,
    page: int = 0,
    page_size: int = 20,
    request=None,
):
    """
    Notes for a linked patient, written by the caller or on the caller's
    encounters, newest update first.

    Returns:
        (notes, total)
    """
    require_permission(principal, Perm.NOTE_READ)
    ensure_provider_patient_link(principal, patient_id)
    patient_id = parse_uuid(patient_id, 'patientId')

    queryset = ProgressNote.objects.filter(patient_id=patient_id).filter(
        Q(author_id=principal.id) | Q(encounter__provider_id=principal.id)
    )
    if encounter_id:
        queryset = queryset.filter(encounter_id=parse_uuid(encounter_id, 'encounterId'))
    if status:
        if status not in NoteStatus.values:
            raise ValidationError(
                'Validation failed',
                issues=[{'path': 'status', 'message': f'Must be one of {", ".join(NoteStatus.values)}'}],
            )
        queryset = queryset.filter(status=status)
    if keywords:
        text_match = Q()
        for field in ProgressNote.CLINICAL_FIELDS:
            text_match |= Q(**{f'{field}__icontains': keywords})
        queryset = queryset.filter(text_match)

    total = queryset.count()
    notes = list(queryset.order_by('-updated_at')[page * page_size:(page + 1) * page_size])

    after_commit(
        audit,
        principal,
        AuditAction.VIEW,
        AuditEntityType.PROGRESS_NOTE,
        'list',
        request=request,
        metadata=build_provenance_metadata(
            principal,
            patientId=str(patient_id),
            encounterId=str(encounter_id) if encounter_id else None,
            resultCount=len(notes),
        ),
        name='audit_note_list',
    )
    return notes, total


def get_note(principal, note_id, request=None) -> ProgressNote:
    """
    One note, visible to its author, the encounter's provider or an admin.

    A linked provider outside that set gets the same 404 as for an unknown
    id, matching what list_notes shows them.
    """
    require_permission(principal, Perm.NOTE_READ)
    note = ProgressNote.objects.select_related('encounter').filter(pk=parse_uuid(note_id, 'id')).first()
    if note is None:
        raise NotFoundError('Progress note not found')
    ensure_provider_patient_link(principal, note.patient_id)
    if not _can_sign(principal, note):
        raise NotFoundError('Progress note not found')
    _audit_note(principal, note, AuditAction.READ, request)
    return note


def list_patient_notes(principal, page: int = 0, page_size: int = 20, request=None):
    """
    A patient's own signed notes, limited to authors they are currently
    linked with (approved). Drafts are never shown to patients.
    """
    if not principal.is_patient:
        raise PermissionDeniedError('Patient access only')

    linked_providers = ProviderPatientLink.objects.filter(
        patient_id=principal.id,
        status=LinkStatus.APPROVED,
    ).values_list('provider_id', flat=True)
    queryset = ProgressNote.objects.filter(
        patient_id=principal.id,
        author_id__in=linked_providers,
        status__in=[NoteStatus.FINALIZED, NoteStatus.AMENDED],
    )
    total = queryset.count()
    notes = list(queryset.order_by('-updated_at')[page * page_size:(page + 1) * page_size])

    after_commit(
        audit,
        principal,
        AuditAction.VIEW,
        AuditEntityType.PROGRESS_NOTE,
        'list',
        request=request,
        metadata=build_provenance_metadata(principal, patientId=str(principal.id), resultCount=len(notes)),
        name='audit_patient_note_list',
    )
    return notes, total


# ============================================================================
# Encounters
# ============================================================================

def _audit_encounter(principal, encounter, action, request, **extra):
    after_commit(
        audit,
        principal,
        action,
        AuditEntityType.ENCOUNTER,
        encounter.pk if encounter is not None else 'list',
        request=request,
        metadata=build_provenance_metadata(principal, **extra),
        name=f'audit_encounter_{action}',
    )


def open_encounter(principal, patient_id, data: Dict[str, Any], request=None) -> Encounter:
    """
    Start a visit with a linked patient. Status starts at in_progress.

    An appointment, when given, must be between the same provider and patient.
    """
    require_permission(principal, Perm.ENCOUNTER_WRITE, require_approved_provider=True)
    ensure_provider_patient_link(principal, patient_id)
    patient_id = parse_uuid(patient_id, 'patientId')

    appointment_id = data.get('appointment_id')
    if appointment_id:
        appointment = Appointment.objects.filter(pk=appointment_id).first()
        if appointment is None:
            raise NotFoundError('Appointment not found')
        if appointment.patient_id != patient_id or appointment.provider_id != principal.id:
            raise ConflictError('Appointment does not belong to this provider and patient')

    with transaction.atomic():
        encounter = Encounter.objects.create(
            patient_id=patient_id,
            provider_id=principal.id,
            appointment_id=appointment_id,
            type=data.get('type') or 'consultation',
            mode=data.get('mode') or Encounter._meta.get_field('mode').default,
            status=EncounterStatus.IN_PROGRESS,
            start_time=data.get('start_time') or timezone.now(),
            location=data.get('location') or '',
        )
        _audit_encounter(
            principal, encounter, AuditAction.CREATE, request,
            encounterId=str(encounter.pk),
            patientId=str(patient_id),
        )

    log_domain_event(
        'encounter_opened',
        entity_type='Encounter',
        entity_id=str(encounter.pk),
        entity_ids={'patient_id': str(patient_id), 'provider_id': str(principal.id)},
        mode=encounter.mode,
    )
    return encounter


def close_encounter(principal, encounter_id, status: str = EncounterStatus.COMPLETED, request=None) -> Encounter:
    require_permission(principal, Perm.ENCOUNTER_WRITE, require_approved_provider=True)
    if status not in (EncounterStatus.COMPLETED, EncounterStatus.CANCELLED):
        raise ValidationError(
            'Validation failed',
            issues=[{'path': 'status', 'message': 'Must be completed or cancelled'}],
        )

    with transaction.atomic():
        encounter = Encounter.objects.select_for_update().filter(pk=parse_uuid(encounter_id, 'id')).first()
        if encounter is None:
            raise NotFoundError('Encounter not found')
        if encounter.provider_id != principal.id and not principal.is_admin:
            raise PermissionDeniedError('Forbidden: not encounter provider')
        if not encounter.is_open:
            raise ConflictError('Encounter already closed')

        previous_status = encounter.status
        encounter.status = status
        encounter.end_time = timezone.now()
        encounter.save(update_fields=['status', 'end_time', 'updated_at'])
        _audit_encounter(
            principal, encounter, AuditAction.UPDATE, request,
            encounterId=str(encounter.pk),
            patientId=str(encounter.patient_id),
            previousStatus=previous_status,
            newStatus=status,
        )

    log_domain_event(
        'encounter_closed',
        entity_type='Encounter',
        entity_id=str(encounter.pk),
        from_status=previous_status,
        to_status=status,
    )
    return encounter


def list_encounters(principal, patient_id, page: int = 0, page_size: int = 20, request=None):
    require_permission(principal, Perm.ENCOUNTER_READ)
    ensure_provider_patient_link(principal, patient_id)
    patient_id = parse_uuid(patient_id, 'patientId')

    queryset = Encounter.objects.filter(patient_id=patient_id, provider_id=principal.id)
    total = queryset.count()
    encounters = list(queryset.order_by('-start_time')[page * page_size:(page + 1) * page_size])
    _audit_encounter(principal, None, AuditAction.VIEW, request, patientId=str(patient_id))
    return encounters, total



# ============================================================================
# Prescriptions
# ============================================================================

POLYPHARMACY_THRESHOLD = 5

PRESCRIPTION_FIELDS = (
    'medication_name',
    'dosage',
    'frequency',
    'duration',
    'quantity',
    'refills',
    'instructions',
    'start_date',
    'end_date',
    'pharmacy',
    'pharmacy_phone',
    'notes',
)


def _audit_prescription(principal, prescription, action, request, **extra):
    after_commit(
        audit,
        principal,
        action,
        AuditEntityType.PRESCRIPTION,
        prescription.pk,
        request=request,
        metadata=build_provenance_metadata(
            principal,
            providerId=str(prescription.provider_id),
            patientId=str(prescription.patient_id),
            medicationName=prescription.medication_name,
            status=prescription.status,
            **extra
        ),
        name=f'audit_prescription_{action}',
    )


def _notify_patient_of_prescription(prescription, title, message, priority=NotificationPriority.NORMAL):
    notify(
        prescription.patient_id,
        NotificationType.PRESCRIPTION,
        title,
        message,
        priority=priority,
        action_url='/patient/prescriptions',
    )


def _load_prescription_for_update(prescription_id, patient_id=None) -> Prescription:
    prescription = (
        Prescription.objects.select_for_update()
        .filter(pk=parse_uuid(prescription_id, 'id'))
        .first()
    )
    if prescription is None or (patient_id is not None and prescription.patient_id != patient_id):
        raise NotFoundError('Prescription not found')
    return prescription


def _ensure_prescriber(principal, prescription):
    if prescription.provider_id != principal.id and not principal.is_admin:
        raise PermissionDeniedError('Forbidden: prescription does not belong to this provider')


def check_for_interactions(patient_id, medication_name: str) -> List[str]:
    """
    Warnings against the patient's active prescriptions. Never blocks a write.

    - the same medication is already active
    - the patient already has POLYPHARMACY_THRESHOLD or more active prescriptions
    """
    warnings = []
    active = list(
        Prescription.objects.filter(patient_id=patient_id, status=PrescriptionStatus.ACTIVE)
        .values_list('medication_name', flat=True)
    )
    if any(name.lower() == medication_name.lower() for name in active):
        warnings.append(
            f'Patient already has an active prescription for {medication_name}. '
            'Consider completing or cancelling the prior one.'
        )
    if len(active) >= POLYPHARMACY_THRESHOLD:
        warnings.append(
            f'Patient has {POLYPHARMACY_THRESHOLD} or more active prescriptions. '
            'Review for potential interactions.'
        )
    return warnings


def create_prescription(principal, patient_id, data: Dict[str, Any], request=None):
    """
    Write a prescription for a linked patient.

    Returns:
        (prescription, warnings) where warnings come from
        check_for_interactions and are advisory only.

    Raises:
        PermissionDeniedError: missing medication.create or not approved
        AccessDeniedError: no approved link with the patient
        NotFoundError: appointmentId given but unknown
        ConflictError: appointment belongs to another provider or patient
    """
    require_permission(principal, Perm.MEDICATION_CREATE, require_approved_provider=True)
    ensure_provider_patient_link(principal, patient_id)
    patient_id = parse_uuid(patient_id, 'patientId')

    appointment_id = data.get('appointment_id')
    if appointment_id:
        appointment = Appointment.objects.filter(pk=appointment_id).first()
        if appointment is None:
            raise NotFoundError('Appointment not found')
        if appointment.patient_id != patient_id or appointment.provider_id != principal.id:
            raise ConflictError('Appointment does not belong to this provider and patient')

    warnings = check_for_interactions(patient_id, data['medication_name'])

    with transaction.atomic():
        prescription = Prescription.objects.create(
            patient_id=patient_id,
            provider_id=principal.id,
            appointment_id=appointment_id,
            status=data.get('status') or PrescriptionStatus.DRAFT,
            prescribed_date=data.get('prescribed_date') or timezone.now(),
            **{field: data[field] for field in PRESCRIPTION_FIELDS if data.get(field) is not None}
        )
        _audit_prescription(
            principal, prescription, AuditAction.CREATE, request,
            warningCount=len(warnings),
        )
        if prescription.status == PrescriptionStatus.ACTIVE:
            _notify_patient_of_prescription(
                prescription,
                'New Prescription',
                f'Your provider prescribed {prescription.medication_name}. Please review your instructions.',
                priority=NotificationPriority.HIGH,
            )

    log_domain_event(
        'prescription_created',
        entity_type='Prescription',
        entity_id=str(prescription.pk),
        entity_ids={'patient_id': str(patient_id), 'provider_id': str(principal.id)},
        status=prescription.status,
        warning_count=len(warnings),
    )
    return prescription, warnings


def update_prescription(principal, prescription_id, data: Dict[str, Any], patient_id=None, request=None) -> Prescription:
    """
    Edit a prescription and optionally move its status along
    Prescription._ALLOWED_TRANSITIONS.

    Cancelling is refused here; use cancel_prescription so a reason is kept.

    Raises:
        ValidationError: status 'cancelled' requested, or transition not allowed
        ConflictError: prescription is completed, cancelled or expired
        PermissionDeniedError: caller is neither the prescriber nor an admin
    """
    require_permission(principal, Perm.MEDICATION_UPDATE, require_approved_provider=True)
    if patient_id is not None:
        ensure_provider_patient_link(principal, patient_id)
        patient_id = parse_uuid(patient_id, 'patientId')

    new_status = data.get('status')
    if new_status == PrescriptionStatus.CANCELLED:
        raise ValidationError(
            'Use the cancel flow to cancel with a reason',
            issues=[{'path': 'status', 'message': 'Cannot be set to cancelled here'}],
        )

    with transaction.atomic():
        prescription = _load_prescription_for_update(prescription_id, patient_id)
        if patient_id is None:
            ensure_provider_patient_link(principal, prescription.patient_id)
        _ensure_prescriber(principal, prescription)

        if prescription.is_terminal:
            raise ConflictError(f'Prescription is {prescription.status} and can no longer change')

        previous_status = prescription.status
        if new_status and new_status != previous_status:
            allowed = Prescription._ALLOWED_TRANSITIONS[previous_status]
            if new_status not in allowed:
                raise ValidationError(
                    f'Cannot move prescription from {previous_status} to {new_status}',
                    allowedTransitions=[str(s) for s in allowed],
                )
            prescription.status = new_status

        changed = [field for field in PRESCRIPTION_FIELDS if field in data]
        for field in changed:
            value = data[field]
            if value is None and field != 'end_date':
                value = ''
            setattr(prescription, field, value)
        prescription.save()

        _audit_prescription(
            principal, prescription, AuditAction.UPDATE, request,
            changedFields=sorted(changed),
            previousStatus=previous_status,
        )
        if prescription.status != previous_status and prescription.status in (
            PrescriptionStatus.COMPLETED,
            PrescriptionStatus.EXPIRED,
        ):
            label = 'Prescription Completed' if prescription.status == PrescriptionStatus.COMPLETED else 'Prescription Expired'
            _notify_patient_of_prescription(
                prescription,
                label,
                f'{prescription.medication_name} is now {prescription.status}.',
            )
        elif prescription.status == PrescriptionStatus.ACTIVE and previous_status == PrescriptionStatus.DRAFT:
            _notify_patient_of_prescription(
                prescription,
                'New Prescription',
                f'Your provider prescribed {prescription.medication_name}. Please review your instructions.',
                priority=NotificationPriority.HIGH,
            )

    if prescription.status != previous_status:
        log_domain_event(
            'prescription_status_changed',
            entity_type='Prescription',
            entity_id=str(prescription.pk),
            from_status=previous_status,
            to_status=prescription.status,
        )
    return prescription


def cancel_prescription(principal, prescription_id, reason: str, request=None) -> Prescription:
    """
    draft|active -> cancelled, stamping end_date and appending the reason to
    `notes` as `[Cancelled <iso>] <reason>`.

    Cancelling an already cancelled prescription returns it unchanged.
    """
    require_permission(principal, Perm.MEDICATION_UPDATE, require_approved_provider=True)
    reason = (reason or '').strip()
    if len(reason) < 3:
        raise ValidationError(
            'Validation failed',
            issues=[{'path': 'reason', 'message': 'Cancellation reason is required'}],
        )

    with transaction.atomic():
        prescription = _load_prescription_for_update(prescription_id)
        ensure_provider_patient_link(principal, prescription.patient_id)
        _ensure_prescriber(principal, prescription)

        if prescription.status == PrescriptionStatus.CANCELLED:
            return prescription
        if prescription.is_terminal:
            raise ConflictError(f'Prescription is {prescription.status} and can no longer change')

        now = timezone.now()
        previous_status = prescription.status
        line = f'[Cancelled {now.isoformat()}] {reason}'
        prescription.notes = f'{prescription.notes}\n{line}' if prescription.notes else line
        prescription.status = PrescriptionStatus.CANCELLED
        prescription.end_date = now
        prescription.save(update_fields=['status', 'end_date', 'notes', 'updated_at'])

        _audit_prescription(
            principal, prescription, AuditAction.UPDATE, request,
            previousStatus=previous_status,
            hasReason=True,
        )
        _notify_patient_of_prescription(
            prescription,
            'Prescription Cancelled',
            f'{prescription.medication_name} was cancelled. Reason: {reason}',
            priority=NotificationPriority.HIGH,
        )

    log_domain_event(
        'prescription_cancelled',
        entity_type='Prescription',
        entity_id=str(prescription.pk),
        from_status=previous_status,
        to_status=PrescriptionStatus.CANCELLED,
    )
    return prescription


def list_prescriptions(
    principal,
    patient_id,
    status: Optional[str] = None,
    date_from=None,
    date_to=None,
    page: int = 0,
    page_size: int = 20,
    request=None,
):
    """
    Prescriptions for a linked patient, newest first.

    Providers see the ones they wrote; an admin who is also the linked
    provider sees all of the patient's prescriptions.

    Returns:
        (prescriptions, total)
    """
    require_permission(principal, Perm.MEDICATION_READ)
    ensure_provider_patient_link(principal, patient_id)
    patient_id = parse_uuid(patient_id, 'patientId')

    queryset = Prescription.objects.filter(patient_id=patient_id)
    if not principal.is_admin:
        queryset = queryset.filter(provider_id=principal.id)
    if status:
        status = status.lower()
        if status not in PrescriptionStatus.values:
            raise ValidationError(
                'Validation failed',
                issues=[{'path': 'status', 'message': f'Must be one of {", ".join(PrescriptionStatus.values)}'}],
            )
        queryset = queryset.filter(status=status)
    if date_from:
        queryset = queryset.filter(prescribed_date__gte=date_from)
    if date_to:
        queryset = queryset.filter(prescribed_date__lte=date_to)

    total = queryset.count()
    prescriptions = list(queryset.order_by('-prescribed_date')[page * page_size:(page + 1) * page_size])

    after_commit(
        audit,
        principal,
        AuditAction.VIEW,
        AuditEntityType.PRESCRIPTION,
        'list',
        request=request,
        metadata=build_provenance_metadata(
            principal,
            patientId=str(patient_id),
            status=status,
            resultCount=len(prescriptions),
        ),
        name='audit_prescription_list',
    )
    return prescriptions, total


def get_prescription(principal, prescription_id, request=None) -> Prescription:
    """
    One prescription, visible to its prescriber, its patient, admins and
    clerks. Anyone else gets the same 404 as for an unknown id.
    """
    if principal is None:
        raise UnauthorizedError()
    prescription = Prescription.objects.filter(pk=parse_uuid(prescription_id, 'id')).first()
    if prescription is None:
        raise NotFoundError('Prescription not found')

    if principal.is_patient:
        visible = prescription.patient_id == principal.id and prescription.status != PrescriptionStatus.DRAFT
    else:
        require_permission(principal, Perm.MEDICATION_READ)
        visible = (
            prescription.provider_id == principal.id
            or principal.is_admin
            or principal.is_clerk
        )
    if not visible:
        raise NotFoundError('Prescription not found')

    _audit_prescription(principal, prescription, AuditAction.READ, request)
    return prescription


def list_patient_prescriptions(principal, status: Optional[str] = None, page: int = 0, page_size: int = 20, request=None):
    """A patient's own prescriptions. Drafts are never shown to patients."""
    if not principal.is_patient:
        raise PermissionDeniedError('Patient access only')

    queryset = Prescription.objects.filter(patient_id=principal.id).exclude(status=PrescriptionStatus.DRAFT)
    if status:
        queryset = queryset.filter(status=status.lower())
    total = queryset.count()
    prescriptions = list(queryset.order_by('-prescribed_date')[page * page_size:(page + 1) * page_size])

    after_commit(
        audit,
        principal,
        AuditAction.VIEW,
        AuditEntityType.PRESCRIPTION,
        'list',
        request=request,
        metadata=build_provenance_metadata(principal, patientId=str(principal.id), resultCount=len(prescriptions)),
        name='audit_patient_prescription_list',
    )
    return prescriptions, total


def expire_prescriptions(principal=None, now=None, request=None) -> int:
    """
    Mark active prescriptions whose end_date has passed as expired.

    Run by the celery beat task (principal=None, source=system) or by an
    admin through the jobs endpoint. One audit row records the run.

    Returns:
        Number of prescriptions expired.
    """
    now = now or timezone.now()
    with transaction.atomic():
        updated = Prescription.objects.filter(
            status=PrescriptionStatus.ACTIVE,
            end_date__lt=now,
        ).update(status=PrescriptionStatus.EXPIRED, updated_at=now)

        after_commit(
            audit,
            principal,
            AuditAction.UPDATE,
            AuditEntityType.PRESCRIPTION,
            'expire_job',
            request=request,
            metadata=build_provenance_metadata(principal, event='prescriptions.expired', updatedCount=updated),
            source=AuditSource.API if principal else AuditSource.SYSTEM,
            name='audit_prescription_expire_job',
        )

    logger.info(
        'Prescriptions expired',
        extra={'event': 'prescriptions_expired', 'updated': updated, 'cutoff': now.isoformat()}
    )
    return updated

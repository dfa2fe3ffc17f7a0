"""
Provider <-> patient link services.

`ensure_provider_patient_link` is the relationship boundary for every
EMR endpoint. It is applied after the capability check
(apps.authz.capabilities.require_permission): permission says the role may
act on clinical data at all, the link says on *which* patient's data.
"""
import uuid
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.audit.models import AuditAction, AuditEntityType
from apps.audit.services import audit, build_provenance_metadata
from apps.connections.models import LinkStatus, ProviderPatientLink
from apps.core.exceptions import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    UnauthorizedError,
    ValidationError,
)
from apps.core.hooks import after_commit
from apps.core.observability.events import log_access_denied, log_domain_event
from apps.notifications.models import NotificationPriority, NotificationType
from apps.notifications.services import notify

User = get_user_model()


# ============================================================================
# Relationship boundary
# ============================================================================

def parse_uuid(value, field):
    """Coerce an id from the wire, raising a 400 that names the field."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(
            f'Invalid {field}',
            issues=[{'path': field, 'message': 'Must be a UUID'}],
        )


def has_approved_link(provider_id, patient_id) -> bool:
    return ProviderPatientLink.objects.filter(
        provider_id=provider_id,
        patient_id=patient_id,
        status=LinkStatus.APPROVED,
    ).exists()


def ensure_provider_patient_link(principal, patient_id) -> ProviderPatientLink:
    """
    Require an approved link between the calling provider and `patient_id`.

    Raises:
        UnauthorizedError: no principal (401)
        ValidationError: missing/malformed patient id (400)
        AccessDeniedError: caller is not a provider, or no approved link (403)

    Returns:
        The approved link (the most recently approved one if several
        treatment types are linked).
    """
    if principal is None:
        raise UnauthorizedError()
    if not patient_id:
        raise ValidationError(
            'patientId is required',
            issues=[{'path': 'patientId', 'message': 'Required'}],
        )
    patient_id = parse_uuid(patient_id, 'patientId')

    if not principal.is_provider:
        log_access_denied('provider_role_required', principal.id)
        raise AccessDeniedError('Provider role required')

    link = ProviderPatientLink.objects.filter(
        provider_id=principal.id,
        patient_id=patient_id,
        status=LinkStatus.APPROVED,
    ).order_by('-approved_at').first()

    if link is None:
        log_access_denied('no_approved_link', principal.id, patient_id=str(patient_id))
        raise AccessDeniedError('No approved provider-patient link')
    return link


# ============================================================================
# Lifecycle
# ============================================================================

def _audit_link(principal, link, action, request, **extra):
    after_commit(
        audit,
        principal,
        action,
        AuditEntityType.PROVIDER_PATIENT_LINK,
        link.pk,
        request=request,
        metadata=build_provenance_metadata(
            principal,
            providerId=str(link.provider_id),
            patientId=str(link.patient_id),
            treatmentType=link.treatment_type,
            **extra
        ),
        name=f'audit_link_{action}',
    )


def request_connection(
    principal,
    provider_id,
    treatment_type: str,
    message: str = '',
    request=None,
) -> ProviderPatientLink:
    """
    Patient asks a provider for a clinical relationship. Creates a pending link.

    BUSINESS RULES:
    1. Only patients initiate connections
    2. Target must exist and hold the provider flag
    3. One open (pending or approved) link per (provider, patient, treatment type)
    """
    if principal is None:
        raise UnauthorizedError()
    if not principal.is_patient:
        raise PermissionDeniedError('Only patients can request connections')
    provider_id = parse_uuid(provider_id, 'doctorId')

    with transaction.atomic():
        # Serialize requests to one provider on the provider row; the open-link
        # unique constraint backs this up
        provider = User.objects.select_for_update().filter(
            pk=provider_id,
            is_provider=True,
            is_active=True,
        ).first()
        if provider is None:
            raise NotFoundError('Doctor not found')

        existing = ProviderPatientLink.objects.filter(
            provider_id=provider.pk,
            patient_id=principal.id,
            treatment_type=treatment_type,
            status__in=ProviderPatientLink._OPEN_STATUSES,
        )
        if existing.exists():
            raise ConflictError('Connection already exists')

        try:
            with transaction.atomic():
                link = ProviderPatientLink.objects.create(
                    provider_id=provider.pk,
                    patient_id=principal.id,
                    treatment_type=treatment_type,
                    request_message=message or '',
                    status=LinkStatus.PENDING,
                )
        except IntegrityError:
            raise ConflictError('Connection already exists')

        _audit_link(principal, link, AuditAction.CREATE, request, event='connection.requested')
        notify(
            provider.pk,
            NotificationType.CONNECTION,
            'New Patient Connection Request',
            f'A patient has requested to connect with you for {treatment_type.replace("_", " ")}.',
            action_url='/provider/patients',
        )

    log_domain_event(
        'connection_requested',
        entity_type='ProviderPatientLink',
        entity_id=str(link.pk),
        entity_ids={'provider_id': str(provider.pk), 'patient_id': str(principal.id)},
        treatment_type=treatment_type,
    )
    return link


def respond_to_connection(principal, link_id, approve: bool, request=None) -> ProviderPatientLink:
    """
    Provider approves or rejects a pending link addressed to them.

    Approval needs an approved provider account; rejecting does not.
    """
    if principal is None:
        raise UnauthorizedError()
    if not principal.is_provider:
        raise PermissionDeniedError('Provider role required')
    if approve and not principal.is_approved_provider:
        raise PermissionDeniedError('Provider not approved for this action')

    with transaction.atomic():
        link = ProviderPatientLink.objects.select_for_update().filter(
            pk=link_id, provider_id=principal.id
        ).first()
        if link is None:
            raise NotFoundError('Connection not found')
        if link.status != LinkStatus.PENDING:
            raise ConflictError(f'Connection is already {link.status}')

        previous_status = link.status
        if approve:
            link.status = LinkStatus.APPROVED
            link.approved_at = timezone.now()
        else:
            link.status = LinkStatus.REJECTED
        # The partial unique constraint rejects a second approved link;
        # the exception handler answers that with 409
        link.save(update_fields=['status', 'approved_at', 'updated_at'])

        _audit_link(
            principal, link, AuditAction.UPDATE, request,
            event='connection.approved' if approve else 'connection.rejected',
            previousStatus=previous_status,
            newStatus=link.status,
        )
        notify(
            link.patient_id,
            NotificationType.CONNECTION,
            'Connection Approved' if approve else 'Connection Declined',
            'Your doctor accepted your connection request.' if approve
            else 'Your doctor declined your connection request.',
            action_url='/patient/my-doctors',
        )

    log_domain_event(
        'connection_approved' if approve else 'connection_rejected',
        entity_type='ProviderPatientLink',
        entity_id=str(link.pk),
    )
    return link


def disconnect(principal, link_id, reason: Optional[str] = None, request=None) -> ProviderPatientLink:
    """
    Patient ends a relationship.

    BUSINESS RULES (checked in this order):
    1. Only the patient on the link (404 for anyone else, no existence leak)
    2. outstanding_balance > 0 always blocks, whatever can_disconnect says (403)
    3. can_disconnect = False blocks (403)
    4. An already disconnected link cannot be disconnected again (409)
    """
    if principal is None:
        raise UnauthorizedError()
    if not principal.is_patient:
        raise PermissionDeniedError('Only patients can disconnect from a doctor')
    if not link_id:
        raise ValidationError(
            'connectionId is required',
            issues=[{'path': 'connectionId', 'message': 'Required'}],
        )
    link_id = parse_uuid(link_id, 'connectionId')

    with transaction.atomic():
        link = ProviderPatientLink.objects.select_for_update().filter(
            pk=link_id, patient_id=principal.id
        ).first()
        if link is None:
            raise NotFoundError('Connection not found')

        if link.outstanding_balance > 0:
            log_domain_event(
                'connection_disconnect_blocked',
                entity_type='ProviderPatientLink',
                entity_id=str(link.pk),
                result='blocked',
                reason_code='outstanding_balance',
            )
            raise PermissionDeniedError(
                'Outstanding balance must be settled before disconnecting',
                outstandingBalance=str(link.outstanding_balance),
            )
        if not link.can_disconnect:
            raise PermissionDeniedError('This connection cannot be disconnected')
        if link.status == LinkStatus.DISCONNECTED:
            raise ConflictError('Connection already disconnected')

        previous_status = link.status
        link.status = LinkStatus.DISCONNECTED
        link.disconnected_at = timezone.now()
        link.disconnect_reason = reason or ''
        link.save(update_fields=['status', 'disconnected_at', 'disconnect_reason', 'updated_at'])

        _audit_link(
            principal, link, AuditAction.UPDATE, request,
            event='connection.disconnected',
            previousStatus=previous_status,
        )
        notify(
            link.provider_id,
            NotificationType.CONNECTION,
            'Patient Disconnected',
            'A patient has ended their connection with you.',
            priority=NotificationPriority.NORMAL,
            action_url='/provider/patients',
        )
        notify(
            link.patient_id,
            NotificationType.CONNECTION,
            'Disconnected from Doctor',
            'You have been disconnected from your doctor.',
            action_url='/patient/my-doctors',
        )

    log_domain_event(
        'connection_disconnected',
        entity_type='ProviderPatientLink',
        entity_id=str(link.pk),
    )
    return link

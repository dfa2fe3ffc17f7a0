"""
User administration services (admin only).

Both operations lock the target row, validate, write, then schedule the
audit row and the user notification as post-commit hooks.
"""
from typing import Optional

from django.db import transaction

from apps.audit.models import AuditAction, AuditEntityType
from apps.audit.services import audit, build_provenance_metadata
from apps.authz.models import User, ProviderApprovalStatus
from apps.authz.serializers import ProviderApprovalSerializer, RoleChangeSerializer
from apps.core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    UnauthorizedError,
    ValidationError,
)
from apps.core.hooks import after_commit
from apps.core.observability.events import log_domain_event
from apps.notifications.models import NotificationPriority, NotificationType
from apps.notifications.services import notify


def _require_admin(principal):
    if principal is None:
        raise UnauthorizedError()
    if not principal.is_admin:
        raise PermissionDeniedError('Admin access required')


def _lock_user(user_id):
    try:
        return User.objects.select_for_update().get(pk=user_id)
    except (User.DoesNotExist, ValueError):
        raise NotFoundError('User not found')


def set_provider_approval(
    principal,
    user_id,
    action: str,
    license_number: Optional[str] = None,
    request=None,
) -> User:
    """
    Approve or reject a provider.

    BUSINESS RULES:
    1. Target must hold the provider flag
    2. Approval requires a license number (from the body or already on file)
    3. Re-deciding an already decided provider is an explicit admin override
       and is allowed; it is recorded with the previous status
    """
    _require_admin(principal)

    with transaction.atomic():
        user = _lock_user(user_id)
        if not user.is_provider:
            raise ValidationError('User is not a provider')

        previous_status = user.provider_approval_status
        license_number = (license_number or '').strip()

        if action == ProviderApprovalSerializer.ACTION_APPROVE:
            if not license_number and not user.license_number:
                raise ValidationError(
                    'License number is required for approval',
                    issues=[{'path': 'licenseNumber', 'message': 'Required to approve a provider'}],
                )
            if license_number:
                user.license_number = license_number
            user.provider_approval_status = ProviderApprovalStatus.APPROVED
        else:
            user.provider_approval_status = ProviderApprovalStatus.REJECTED

        user.save(update_fields=['provider_approval_status', 'license_number', 'updated_at'])

        after_commit(
            audit,
            principal,
            AuditAction.UPDATE,
            AuditEntityType.USER,
            user.pk,
            request=request,
            metadata=build_provenance_metadata(
                principal,
                event=f'provider.{action}',
                targetUserId=str(user.pk),
                previousStatus=previous_status,
                newStatus=user.provider_approval_status,
            ),
            name='audit_provider_approval',
        )

        approved = user.provider_approval_status == ProviderApprovalStatus.APPROVED
        notify(
            user.pk,
            NotificationType.SYSTEM,
            'Provider Application Approved' if approved else 'Provider Application Rejected',
            'Your provider account has been approved.' if approved
            else 'Your provider application was not approved.',
            priority=NotificationPriority.HIGH,
        )

    log_domain_event(
        'provider_approval_changed',
        entity_type='User',
        entity_id=str(user.pk),
        from_status=previous_status,
        to_status=user.provider_approval_status,
    )
    return user


def change_role(
    principal,
    user_id,
    role: str,
    value: bool,
    confirm_password: Optional[str] = None,
    acting_user=None,
    request=None,
) -> User:
    """
    Set or clear one role flag (isAdmin, isClerk, isProvider).

    BUSINESS RULES:
    1. Admins cannot change their own roles (no self-escalation, no lock-out)
    2. Granting admin requires the acting admin's password
    3. Granting the provider flag (re)starts approval at 'pending'
    """
    _require_admin(principal)

    field = RoleChangeSerializer.ROLE_FIELDS.get(role)
    if field is None:
        raise ValidationError('Invalid role', issues=[{'path': 'role', 'message': 'Unknown role'}])

    if str(user_id) == str(principal.id):
        raise PermissionDeniedError('Admins cannot modify their own roles')

    if role == 'isAdmin' and value:
        if not confirm_password:
            raise ValidationError(
                'Password confirmation is required to grant admin',
                issues=[{'path': 'confirmPassword', 'message': 'Required'}],
            )
        if acting_user is None or not acting_user.check_password(confirm_password):
            raise PermissionDeniedError('Password confirmation failed')

    with transaction.atomic():
        user = _lock_user(user_id)
        previous_value = getattr(user, field)
        setattr(user, field, value)
        update_fields = [field, 'updated_at']

        if field == 'is_provider' and value and not previous_value:
            user.provider_approval_status = ProviderApprovalStatus.PENDING
            update_fields.append('provider_approval_status')
        if field == 'is_admin':
            # Django admin site follows the platform admin flag
            user.is_staff = value
            update_fields.append('is_staff')

        user.save(update_fields=update_fields)

        after_commit(
            audit,
            principal,
            AuditAction.UPDATE,
            AuditEntityType.USER,
            user.pk,
            request=request,
            metadata=build_provenance_metadata(
                principal,
                event='user.role_changed',
                targetUserId=str(user.pk),
                role=role,
                previousValue=previous_value,
                newValue=value,
            ),
            name='audit_role_change',
        )

    log_domain_event(
        'user_role_changed',
        entity_type='User',
        entity_id=str(user.pk),
        role=role,
        new_value=value,
    )
    return user

"""
Permission predicate engine.

Maps (principal, permission) to allow/deny from a static capability table.
Pure: no database access, no logging, no side effects. Two calls with the
same principal and permission always give the same answer.
"""
from apps.authz.principal import RoleLabel
from apps.core.exceptions import PermissionDeniedError, UnauthorizedError


class Perm:
    """Permission names."""
    NOTE_READ = 'progress_note.read'
    NOTE_CREATE = 'progress_note.create'
    NOTE_UPDATE = 'progress_note.update'
    NOTE_FINALIZE = 'progress_note.finalize'
    NOTE_AMEND = 'progress_note.amend'
    ENCOUNTER_READ = 'encounter.read'
    ENCOUNTER_WRITE = 'encounter.write'
    APPOINTMENT_MANAGE = 'appointment.manage'
    CONNECTION_MANAGE = 'connection.manage'
    MEDICATION_READ = 'medication.read'
    MEDICATION_CREATE = 'medication.create'
    MEDICATION_UPDATE = 'medication.update'


_CLINICAL_FULL = frozenset({
    Perm.NOTE_READ,
    Perm.NOTE_CREATE,
    Perm.NOTE_UPDATE,
    Perm.NOTE_FINALIZE,
    Perm.NOTE_AMEND,
    Perm.ENCOUNTER_READ,
    Perm.ENCOUNTER_WRITE,
    Perm.APPOINTMENT_MANAGE,
    Perm.CONNECTION_MANAGE,
    Perm.MEDICATION_READ,
    Perm.MEDICATION_CREATE,
    Perm.MEDICATION_UPDATE,
})

_CLINICAL_READ_ONLY = frozenset({
    Perm.NOTE_READ,
    Perm.ENCOUNTER_READ,
    Perm.MEDICATION_READ,
})

# BUSINESS RULE: Patients (USER) hold no clinical capability; their own
# data is served through relationship-scoped patient endpoints instead.
ROLE_CAPABILITIES = {
    RoleLabel.ADMIN: _CLINICAL_FULL,
    RoleLabel.PROVIDER: _CLINICAL_FULL,
    RoleLabel.PROVIDER_PENDING: _CLINICAL_READ_ONLY,
    RoleLabel.PROVIDER_REVIEWING: _CLINICAL_READ_ONLY,
    RoleLabel.CLERK: _CLINICAL_READ_ONLY,
    RoleLabel.USER: frozenset(),
}


def capabilities_for(principal):
    """Union of the capability sets of every role the principal holds."""
    capabilities = set()
    for label in principal.role_labels:
        capabilities |= ROLE_CAPABILITIES.get(label, frozenset())
    return frozenset(capabilities)


def has_permission(principal, permission, require_approved_provider=False):
    if principal is None:
        return False
    if permission not in capabilities_for(principal):
        return False
    if require_approved_provider and not principal.is_approved_provider:
        return False
    return True


def require_permission(principal, permission, require_approved_provider=False):
    """
    Raise unless `principal` holds `permission`.

    Raises:
        UnauthorizedError: no principal (401)
        PermissionDeniedError: capability missing, or approval required and
            the principal is not an approved provider (403)
    """
    if principal is None:
        raise UnauthorizedError()
    if permission not in capabilities_for(principal):
        raise PermissionDeniedError('Insufficient permissions')
    if require_approved_provider and not principal.is_approved_provider:
        raise PermissionDeniedError('Provider not approved for this action')

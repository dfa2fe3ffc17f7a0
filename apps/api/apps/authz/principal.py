"""
Principal: the authenticated caller, resolved once per request.

Views build it from request.user and pass it explicitly into every service
call; services never look the user up from ambient state.
"""
from dataclasses import dataclass
from typing import Optional
import uuid

from apps.authz.models import ProviderApprovalStatus


class RoleLabel:
    """Role labels keying the capability table and audit provenance."""
    ADMIN = 'ADMIN'
    PROVIDER = 'PROVIDER'
    PROVIDER_PENDING = 'PROVIDER_PENDING'
    PROVIDER_REVIEWING = 'PROVIDER_REVIEWING'
    CLERK = 'CLERK'
    USER = 'USER'


@dataclass(frozen=True)
class Principal:
    id: uuid.UUID
    email: str
    is_admin: bool = False
    is_clerk: bool = False
    is_provider: bool = False
    provider_approval_status: str = ProviderApprovalStatus.PENDING

    @classmethod
    def from_user(cls, user) -> Optional['Principal']:
        """Principal for an authenticated user, None for anonymous."""
        if user is None or not getattr(user, 'is_authenticated', False):
            return None
        return cls(
            id=user.pk,
            email=user.email,
            is_admin=user.is_admin,
            is_clerk=user.is_clerk,
            is_provider=user.is_provider,
            provider_approval_status=user.provider_approval_status,
        )

    @property
    def is_patient(self) -> bool:
        return not (self.is_admin or self.is_clerk or self.is_provider)

    @property
    def is_approved_provider(self) -> bool:
        return self.is_provider and self.provider_approval_status == ProviderApprovalStatus.APPROVED

    @property
    def role_labels(self) -> frozenset:
        """Every role label this principal holds (flags are non-exclusive)."""
        labels = set()
        if self.is_admin:
            labels.add(RoleLabel.ADMIN)
        if self.is_provider:
            provider_label = {
                ProviderApprovalStatus.APPROVED: RoleLabel.PROVIDER,
                ProviderApprovalStatus.PENDING: RoleLabel.PROVIDER_PENDING,
                ProviderApprovalStatus.REVIEWING: RoleLabel.PROVIDER_REVIEWING,
            }.get(self.provider_approval_status)
            if provider_label:
                labels.add(provider_label)
        if self.is_clerk:
            labels.add(RoleLabel.CLERK)
        return frozenset(labels or {RoleLabel.USER})

    @property
    def role_label(self) -> str:
        """Dominant role, for audit provenance and logs."""
        for label in (
            RoleLabel.ADMIN,
            RoleLabel.PROVIDER,
            RoleLabel.PROVIDER_REVIEWING,
            RoleLabel.PROVIDER_PENDING,
            RoleLabel.CLERK,
        ):
            if label in self.role_labels:
                return label
        return RoleLabel.USER

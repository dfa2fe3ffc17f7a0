"""
DRF permission classes for role-level gates.

Fine-grained clinical checks go through apps.authz.capabilities inside the
services; these classes only keep whole endpoints away from the wrong role.
"""
from rest_framework import permissions


class IsAdmin(permissions.BasePermission):
    """
    Only users with the admin flag.

    Used for user administration and audit browsing.
    """
    message = 'Admin access required'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return bool(request.user.is_admin)


class IsProvider(permissions.BasePermission):
    """
    Users with the provider flag, approved or not.

    Approval is enforced per action by require_permission, because pending
    providers keep read-only capabilities.
    """
    message = 'Provider role required'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return bool(request.user.is_provider)


class IsPatient(permissions.BasePermission):
    """
    Patients: users holding none of the admin/clerk/provider flags.

    BUSINESS RULE: connection requests, disconnects and appointment requests
    are patient-initiated only.
    """
    message = 'Patient access only'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return request.user.is_patient

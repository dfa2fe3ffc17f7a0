"""
Tests for registration, profile and admin user management.
"""
import pytest
from rest_framework import status

from apps.audit.models import AuditAction, AuditLog
from apps.authz.models import ProviderApprovalStatus, User
from apps.notifications.models import Notification


def approval_url(user):
    return f'/api/v1/admin/users/{user.pk}/provider-approval/'


def role_url(user):
    return f'/api/v1/admin/users/{user.pk}/role/'


@pytest.mark.django_db
class TestRegister:
    endpoint = '/api/auth/register/'

    def test_patient_registration(self, api_client):
        response = api_client.post(
            self.endpoint,
            {'email': 'New.Patient@Test.com', 'password': 'Str0ng-passphrase!', 'firstName': 'Nina'},
            format='json',
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['data']['email'] == 'new.patient@test.com'
        assert response.data['data']['isProvider'] is False
        assert 'password' not in response.data['data']

    def test_provider_registration_starts_pending(self, api_client):
        response = api_client.post(
            self.endpoint,
            {
                'email': 'new.doctor@test.com',
                'password': 'Str0ng-passphrase!',
                'role': 'provider',
                'licenseNumber': 'LIC-9',
            },
            format='json',
        )

        assert response.status_code == status.HTTP_201_CREATED
        user = User.objects.get(email='new.doctor@test.com')
        assert user.is_provider
        assert user.provider_approval_status == ProviderApprovalStatus.PENDING
        assert not user.is_admin

    def test_duplicate_email(self, api_client, patient_user):
        response = api_client.post(
            self.endpoint,
            {'email': patient_user.email, 'password': 'Str0ng-passphrase!'},
            format='json',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['issues'][0]['path'] == 'email'


@pytest.mark.django_db
class TestMe:
    def test_me_reports_role_label(self, pending_provider_client):
        response = pending_provider_client.get('/api/auth/me/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['role'] == 'PROVIDER_PENDING'

    def test_me_requires_authentication(self, api_client):
        response = api_client.get('/api/auth/me/')
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestProviderApproval:
    def test_approve_with_license(
        self, admin_client, pending_provider_user, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            response = admin_client.patch(
                approval_url(pending_provider_user),
                {'action': 'approve', 'licenseNumber': 'LIC-3003'},
                format='json',
            )

        assert response.status_code == status.HTTP_200_OK
        pending_provider_user.refresh_from_db()
        assert pending_provider_user.provider_approval_status == ProviderApprovalStatus.APPROVED
        assert pending_provider_user.license_number == 'LIC-3003'

        entry = AuditLog.objects.get(action=AuditAction.UPDATE, entity_id=str(pending_provider_user.pk))
        assert entry.metadata['previousStatus'] == ProviderApprovalStatus.PENDING
        assert entry.metadata['newStatus'] == ProviderApprovalStatus.APPROVED
        assert Notification.objects.filter(
            user=pending_provider_user, title='Provider Application Approved'
        ).exists()

    def test_approve_without_license_is_rejected(self, admin_client, pending_provider_user):
        response = admin_client.patch(approval_url(pending_provider_user), {'action': 'approve'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['issues'][0]['path'] == 'licenseNumber'

    def test_reject(self, admin_client, pending_provider_user):
        response = admin_client.patch(approval_url(pending_provider_user), {'action': 'reject'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['providerApprovalStatus'] == ProviderApprovalStatus.REJECTED

    def test_target_must_be_provider(self, admin_client, patient_user):
        response = admin_client.patch(
            approval_url(patient_user),
            {'action': 'approve', 'licenseNumber': 'LIC-1'},
            format='json',
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_non_admin_is_forbidden(self, provider_client, pending_provider_user):
        response = provider_client.patch(
            approval_url(pending_provider_user),
            {'action': 'approve', 'licenseNumber': 'LIC-1'},
            format='json',
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestRoleChange:
    def test_grant_clerk(self, admin_client, patient_user):
        response = admin_client.patch(role_url(patient_user), {'role': 'isClerk', 'value': True}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['isClerk'] is True

    def test_admin_cannot_change_own_roles(self, admin_client, admin_user):
        response = admin_client.patch(role_url(admin_user), {'role': 'isAdmin', 'value': False}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['detail'] == 'Admins cannot modify their own roles'

    def test_granting_admin_requires_password(self, admin_client, patient_user):
        missing = admin_client.patch(role_url(patient_user), {'role': 'isAdmin', 'value': True}, format='json')
        wrong = admin_client.patch(
            role_url(patient_user),
            {'role': 'isAdmin', 'value': True, 'confirmPassword': 'nope'},
            format='json',
        )
        granted = admin_client.patch(
            role_url(patient_user),
            {'role': 'isAdmin', 'value': True, 'confirmPassword': 'testpass123'},
            format='json',
        )

        assert missing.status_code == status.HTTP_400_BAD_REQUEST
        assert wrong.status_code == status.HTTP_403_FORBIDDEN
        assert granted.status_code == status.HTTP_200_OK
        patient_user.refresh_from_db()
        assert patient_user.is_admin and patient_user.is_staff

    def test_granting_provider_restarts_approval(self, admin_client, patient_user):
        admin_client.patch(role_url(patient_user), {'role': 'isProvider', 'value': True}, format='json')

        patient_user.refresh_from_db()
        assert patient_user.is_provider
        assert patient_user.provider_approval_status == ProviderApprovalStatus.PENDING


@pytest.mark.django_db
class TestAdminUserList:
    def test_filter_by_provider_status(self, admin_client, provider_user, pending_provider_user):
        response = admin_client.get('/api/v1/admin/users/', {'providerStatus': 'pending'})

        assert response.status_code == status.HTTP_200_OK
        assert [row['email'] for row in response.data['data']['items']] == [pending_provider_user.email]

    def test_search(self, admin_client, provider_user, patient_user):
        response = admin_client.get('/api/v1/admin/users/', {'q': 'paula'})
        assert response.data['data']['total'] == 1

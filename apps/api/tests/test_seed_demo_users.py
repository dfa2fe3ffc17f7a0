"""
Tests for the seed_demo_users management command.
"""
from io import StringIO

import pytest
from django.core.management import call_command

from apps.authz.models import ProviderApprovalStatus, User
from apps.authz.principal import Principal, RoleLabel
from apps.connections.models import LinkStatus, ProviderPatientLink


@pytest.mark.django_db
class TestSeedDemoUsers:
    def test_creates_one_user_per_role(self):
        call_command('seed_demo_users', stdout=StringIO())

        labels = {
            user.email: Principal.from_user(user).role_label
            for user in User.objects.all()
        }
        assert labels == {
            'admin@example.com': RoleLabel.ADMIN,
            'doctor@example.com': RoleLabel.PROVIDER,
            'pending.doctor@example.com': RoleLabel.PROVIDER_PENDING,
            'clerk@example.com': RoleLabel.CLERK,
            'patient@example.com': RoleLabel.USER,
        }
        assert ProviderPatientLink.objects.filter(
            provider__email='doctor@example.com',
            patient__email='patient@example.com',
            status=LinkStatus.APPROVED,
        ).count() == 1

    def test_is_idempotent_and_resets_roles(self):
        call_command('seed_demo_users', stdout=StringIO())
        doctor = User.objects.get(email='doctor@example.com')
        doctor.provider_approval_status = ProviderApprovalStatus.REJECTED
        doctor.is_admin = True
        doctor.save()

        call_command('seed_demo_users', '--password', 'other-pass-99', stdout=StringIO())

        doctor.refresh_from_db()
        assert User.objects.count() == 5
        assert ProviderPatientLink.objects.count() == 1
        assert doctor.provider_approval_status == ProviderApprovalStatus.APPROVED
        assert doctor.is_admin is False
        assert doctor.check_password('other-pass-99')

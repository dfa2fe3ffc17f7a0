"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- Users for every role label (admin, approved/pending provider, clerk, patient)
- Authenticated API clients by role
- Model instances (approved link, encounter, draft note, appointment)
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from apps.authz.models import ProviderApprovalStatus, User
from apps.authz.principal import Principal
from apps.connections.models import LinkStatus, ProviderPatientLink
from apps.emr.models import Encounter, EncounterStatus, NoteStatus, ProgressNote
from apps.scheduling.models import Appointment, AppointmentStatus

SIGNATURE = 'sha256:0123456789abcdef0123456789abcdef'


def _client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# ============================================================================
# Users
# ============================================================================

@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        email='admin@test.com',
        password='testpass123',
        first_name='Ada',
        last_name='Admin',
        is_admin=True,
        is_staff=True,
    )


@pytest.fixture
def provider_user(db):
    """Approved provider."""
    return User.objects.create_user(
        email='doctor@test.com',
        password='testpass123',
        first_name='Dana',
        last_name='Doctor',
        is_provider=True,
        provider_approval_status=ProviderApprovalStatus.APPROVED,
        license_number='LIC-1001',
        specialty='General Practice',
    )


@pytest.fixture
def other_provider_user(db):
    """Second approved provider, with no link to patient_user."""
    return User.objects.create_user(
        email='other.doctor@test.com',
        password='testpass123',
        first_name='Omar',
        last_name='Other',
        is_provider=True,
        provider_approval_status=ProviderApprovalStatus.APPROVED,
        license_number='LIC-2002',
    )


@pytest.fixture
def pending_provider_user(db):
    return User.objects.create_user(
        email='pending.doctor@test.com',
        password='testpass123',
        first_name='Pat',
        last_name='Pending',
        is_provider=True,
        provider_approval_status=ProviderApprovalStatus.PENDING,
    )


@pytest.fixture
def clerk_user(db):
    return User.objects.create_user(
        email='clerk@test.com',
        password='testpass123',
        first_name='Cleo',
        last_name='Clerk',
        is_clerk=True,
    )


@pytest.fixture
def patient_user(db):
    return User.objects.create_user(
        email='patient@test.com',
        password='testpass123',
        first_name='Paula',
        last_name='Patient',
    )


@pytest.fixture
def other_patient_user(db):
    return User.objects.create_user(
        email='other.patient@test.com',
        password='testpass123',
        first_name='Otto',
        last_name='Patient',
    )


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    return _client_for(admin_user)


@pytest.fixture
def provider_client(provider_user):
    return _client_for(provider_user)


@pytest.fixture
def other_provider_client(other_provider_user):
    return _client_for(other_provider_user)


@pytest.fixture
def pending_provider_client(pending_provider_user):
    return _client_for(pending_provider_user)


@pytest.fixture
def clerk_client(clerk_user):
    return _client_for(clerk_user)


@pytest.fixture
def patient_client(patient_user):
    return _client_for(patient_user)


@pytest.fixture
def other_patient_client(other_patient_user):
    return _client_for(other_patient_user)


# ============================================================================
# Principals
# ============================================================================

@pytest.fixture
def provider_principal(provider_user):
    return Principal.from_user(provider_user)


@pytest.fixture
def patient_principal(patient_user):
    return Principal.from_user(patient_user)


# ============================================================================
# Domain objects
# ============================================================================

@pytest.fixture
def approved_link(provider_user, patient_user):
    return ProviderPatientLink.objects.create(
        provider=provider_user,
        patient=patient_user,
        treatment_type='general',
        status=LinkStatus.APPROVED,
        approved_at=timezone.now(),
        outstanding_balance=Decimal('0.00'),
    )


@pytest.fixture
def encounter(provider_user, patient_user, approved_link):
    return Encounter.objects.create(
        patient=patient_user,
        provider=provider_user,
        status=EncounterStatus.IN_PROGRESS,
        start_time=timezone.now(),
    )


@pytest.fixture
def draft_note(provider_user, patient_user, encounter):
    return ProgressNote.objects.create(
        encounter=encounter,
        patient=patient_user,
        author=provider_user,
        status=NoteStatus.DRAFT,
        subjective='Reports cough for three days',
        objective='Temp 37.9C',
        assessment='Likely viral URTI',
        plan='Fluids, rest, review in one week',
    )


@pytest.fixture
def finalized_note(draft_note):
    draft_note.status = NoteStatus.FINALIZED
    draft_note.finalized_at = timezone.now()
    draft_note.signature_hash = SIGNATURE
    draft_note.save()
    return draft_note


@pytest.fixture
def appointment(provider_user, patient_user):
    return Appointment.objects.create(
        patient=patient_user,
        provider=provider_user,
        date=timezone.now() + timedelta(days=2),
        duration=30,
        status=AppointmentStatus.SCHEDULED,
    )

"""
Tests for appointment booking and the provider-side lifecycle.

scheduled -> confirmed -> in-progress -> completed
scheduled|confirmed -> cancelled (decline), confirmed -> no-show
"""
from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework import status

from apps.audit.models import AuditEntityType, AuditLog
from apps.core.exceptions import ValidationError
from apps.notifications.models import Notification, NotificationPriority
from apps.scheduling import services
from apps.scheduling.models import Appointment, AppointmentStatus


def url(appointment, action):
    return f'/api/v1/appointments/{appointment.pk}/{action}/'


@pytest.mark.django_db
class TestAccept:
    def test_accept_confirms_and_notifies_both_parties(
        self, provider_client, provider_user, patient_user, appointment, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            response = provider_client.patch(url(appointment, 'accept'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['status'] == AppointmentStatus.CONFIRMED
        assert Notification.objects.filter(user=provider_user, title='Appointment Accepted').exists()
        assert Notification.objects.filter(user=patient_user, title='Appointment Confirmed').exists()

    def test_accept_non_scheduled_is_bad_request(self, provider_client, appointment):
        appointment.status = AppointmentStatus.CONFIRMED
        appointment.save()

        response = provider_client.patch(url(appointment, 'accept'))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['detail'] == 'Only scheduled appointments can be accepted'

    def test_other_provider_cannot_accept(self, other_provider_client, appointment):
        response = other_provider_client.patch(url(appointment, 'accept'))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        appointment.refresh_from_db()
        assert appointment.status == AppointmentStatus.SCHEDULED

    def test_patient_cannot_accept(self, patient_client, appointment):
        response = patient_client.patch(url(appointment, 'accept'))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_pending_provider_cannot_manage(self, pending_provider_user, pending_provider_client, patient_user):
        own = Appointment.objects.create(
            patient=patient_user,
            provider=pending_provider_user,
            date=timezone.now() + timedelta(days=1),
        )

        response = pending_provider_client.patch(url(own, 'accept'))

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestDecline:
    def test_scenario_d_decline_with_reason(
        self, provider_client, patient_user, appointment, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            response = provider_client.patch(
                url(appointment, 'decline'),
                {'reason': 'patient unavailable'},
                format='json',
            )

        assert response.status_code == status.HTTP_200_OK
        appointment.refresh_from_db()
        assert appointment.status == AppointmentStatus.CANCELLED
        assert 'cancelReason:patient unavailable' in appointment.notes

        notification = Notification.objects.get(user=patient_user, title='Appointment Declined')
        assert notification.priority == NotificationPriority.HIGH
        assert 'patient unavailable' in notification.message

        entry = AuditLog.objects.get(entity_type=AuditEntityType.APPOINTMENT, entity_id=str(appointment.pk))
        assert entry.metadata['event'] == 'appointment.declined'
        assert entry.metadata['hasReason'] is True
        assert 'reason' not in entry.metadata
        assert 'patient unavailable' not in str(entry.metadata)

    def test_existing_notes_are_kept(self, provider_client, appointment):
        appointment.notes = 'Bring previous results'
        appointment.save()

        provider_client.patch(url(appointment, 'decline'), {'reason': 'clinic closed'}, format='json')

        appointment.refresh_from_db()
        assert appointment.notes == 'Bring previous results\ncancelReason:clinic closed'

    def test_decline_without_reason(self, provider_client, appointment):
        response = provider_client.patch(url(appointment, 'decline'), {}, format='json')

        assert response.status_code == status.HTTP_200_OK
        appointment.refresh_from_db()
        assert appointment.notes == ''

    def test_cannot_decline_completed(self, provider_client, appointment):
        appointment.status = AppointmentStatus.COMPLETED
        appointment.save()

        response = provider_client.patch(url(appointment, 'decline'), {'reason': 'late'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestReschedule:
    def test_reschedule_keeps_status(
        self, provider_client, patient_user, appointment, django_capture_on_commit_callbacks
    ):
        appointment.status = AppointmentStatus.CONFIRMED
        appointment.save()
        new_date = timezone.now() + timedelta(days=5)

        with django_capture_on_commit_callbacks(execute=True):
            response = provider_client.patch(
                url(appointment, 'reschedule'),
                {'date': new_date.isoformat(), 'duration': 45},
                format='json',
            )

        assert response.status_code == status.HTTP_200_OK
        appointment.refresh_from_db()
        assert appointment.status == AppointmentStatus.CONFIRMED
        assert appointment.date == new_date
        assert appointment.duration == 45
        assert Notification.objects.filter(user=patient_user, title='Appointment Rescheduled').exists()

    def test_lead_time_is_enforced(self, provider_client, appointment):
        response = provider_client.patch(
            url(appointment, 'reschedule'),
            {'date': (timezone.now() + timedelta(minutes=5)).isoformat()},
            format='json',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'minimumTime' in response.data

    def test_overlap_conflicts(self, provider_client, provider_user, patient_user, appointment):
        busy = timezone.now() + timedelta(days=4)
        Appointment.objects.create(
            patient=patient_user, provider=provider_user, date=busy, duration=60,
            status=AppointmentStatus.CONFIRMED,
        )

        response = provider_client.patch(
            url(appointment, 'reschedule'),
            {'date': (busy + timedelta(minutes=30)).isoformat()},
            format='json',
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['detail'] == 'Provider is not available at the selected time'
        assert 'conflict' in response.data

    def test_back_to_back_is_allowed(self, provider_client, provider_user, patient_user, appointment):
        busy = timezone.now() + timedelta(days=4)
        Appointment.objects.create(
            patient=patient_user, provider=provider_user, date=busy, duration=60,
            status=AppointmentStatus.CONFIRMED,
        )

        response = provider_client.patch(
            url(appointment, 'reschedule'),
            {'date': (busy + timedelta(minutes=60)).isoformat()},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK

    def test_cancelled_slots_do_not_block(self, provider_client, provider_user, patient_user, appointment):
        busy = timezone.now() + timedelta(days=4)
        Appointment.objects.create(
            patient=patient_user, provider=provider_user, date=busy, duration=60,
            status=AppointmentStatus.CANCELLED,
        )

        response = provider_client.patch(url(appointment, 'reschedule'), {'date': busy.isoformat()}, format='json')

        assert response.status_code == status.HTTP_200_OK

    def test_missing_date_is_bad_request(self, provider_principal, appointment):
        with pytest.raises(ValidationError) as excinfo:
            services.reschedule(provider_principal, appointment.pk, None)
        assert excinfo.value.detail == 'New date is required'

    def test_cannot_reschedule_cancelled(self, provider_client, appointment):
        appointment.status = AppointmentStatus.CANCELLED
        appointment.save()

        response = provider_client.patch(
            url(appointment, 'reschedule'),
            {'date': (timezone.now() + timedelta(days=3)).isoformat()},
            format='json',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestMeetingLifecycle:
    def test_start_and_end_meeting(self, provider_client, patient_user, appointment, django_capture_on_commit_callbacks):
        appointment.status = AppointmentStatus.CONFIRMED
        appointment.save()

        with django_capture_on_commit_callbacks(execute=True):
            started = provider_client.post(url(appointment, 'meeting/start'))

        assert started.status_code == status.HTTP_200_OK
        assert started.data['data']['status'] == AppointmentStatus.IN_PROGRESS
        assert started.data['data']['meetingLink'].endswith(str(appointment.pk))
        assert started.data['data']['meetingStartAt'] is not None
        joined = Notification.objects.get(user=patient_user, title='Appointment Started')
        assert joined.priority == NotificationPriority.HIGH

        with django_capture_on_commit_callbacks(execute=True):
            ended = provider_client.post(url(appointment, 'meeting/end'))

        assert ended.data['data']['status'] == AppointmentStatus.COMPLETED
        assert ended.data['data']['meetingEndAt'] is not None
        entry = AuditLog.objects.filter(
            entity_id=str(appointment.pk),
            metadata__event='appointment.meeting_ended',
        ).get()
        assert entry.metadata['meetingDurationSeconds'] >= 0

    def test_cannot_start_unconfirmed(self, provider_client, appointment):
        response = provider_client.post(url(appointment, 'meeting/start'))
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_completed_is_terminal(self, provider_client, appointment):
        appointment.status = AppointmentStatus.COMPLETED
        appointment.save()

        response = provider_client.post(url(appointment, 'meeting/start'))

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestNoShow:
    def test_no_show_before_start_is_rejected(self, provider_client, appointment):
        appointment.status = AppointmentStatus.CONFIRMED
        appointment.save()

        response = provider_client.post(url(appointment, 'no-show'))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['detail'] == 'Cannot mark no-show before the appointment start time'

    def test_no_show_after_start(self, provider_client, appointment):
        appointment.status = AppointmentStatus.CONFIRMED
        appointment.date = timezone.now() - timedelta(minutes=20)
        appointment.save()

        response = provider_client.post(url(appointment, 'no-show'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['status'] == AppointmentStatus.NO_SHOW


@pytest.mark.django_db
class TestRequestAppointment:
    endpoint = '/api/v1/appointments/'

    def test_patient_requests_slot(
        self, patient_client, provider_user, django_capture_on_commit_callbacks
    ):
        start = timezone.now() + timedelta(days=3)

        with django_capture_on_commit_callbacks(execute=True):
            response = patient_client.post(
                self.endpoint,
                {'providerId': str(provider_user.pk), 'date': start.isoformat(), 'title': 'Checkup'},
                format='json',
            )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['data']['status'] == AppointmentStatus.SCHEDULED
        assert response.data['data']['duration'] == 30
        assert Notification.objects.filter(user=provider_user, title='New Appointment Request').exists()

    def test_overlapping_request_conflicts(self, patient_client, provider_user, appointment):
        response = patient_client.post(
            self.endpoint,
            {'providerId': str(provider_user.pk), 'date': appointment.date.isoformat()},
            format='json',
        )
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_unapproved_provider_is_not_found(self, patient_client, pending_provider_user):
        response = patient_client.post(
            self.endpoint,
            {
                'providerId': str(pending_provider_user.pk),
                'date': (timezone.now() + timedelta(days=3)).isoformat(),
            },
            format='json',
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['detail'] == 'Provider not found'

    def test_provider_cannot_request(self, provider_client, other_provider_user):
        response = provider_client.post(
            self.endpoint,
            {
                'providerId': str(other_provider_user.pk),
                'date': (timezone.now() + timedelta(days=3)).isoformat(),
            },
            format='json',
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_duration_bounds(self, patient_client, provider_user):
        response = patient_client.post(
            self.endpoint,
            {
                'providerId': str(provider_user.pk),
                'date': (timezone.now() + timedelta(days=3)).isoformat(),
                'duration': 600,
            },
            format='json',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['issues'][0]['path'] == 'duration'


@pytest.mark.django_db
class TestListAppointments:
    endpoint = '/api/v1/appointments/'

    def test_each_side_sees_own(self, provider_client, patient_client, other_patient_client, appointment):
        assert provider_client.get(self.endpoint).data['data']['total'] == 1
        assert patient_client.get(self.endpoint).data['data']['total'] == 1
        assert other_patient_client.get(self.endpoint).data['data']['total'] == 0

    def test_status_filter(self, provider_client, appointment):
        assert provider_client.get(self.endpoint, {'status': 'scheduled,confirmed'}).data['data']['total'] == 1
        assert provider_client.get(self.endpoint, {'status': 'cancelled'}).data['data']['total'] == 0

    def test_unknown_status_is_bad_request(self, provider_client):
        response = provider_client.get(self.endpoint, {'status': 'teleported'})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_anonymous_is_unauthorized(self, api_client):
        response = api_client.get(self.endpoint)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

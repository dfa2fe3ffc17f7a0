"""
Tests for the progress note state machine.

draft -> finalized -> amended, with immutability of signed content,
single finalization (second call is 409, signature never overwritten),
ownership rules and the note_finalized signal.
"""
import uuid
from unittest.mock import patch

import pytest
from django.db import DatabaseError
from rest_framework import status

from apps.audit.models import AuditAction, AuditLog
from apps.authz.principal import Principal
from apps.core.exceptions import ConflictError, PermissionDeniedError
from apps.emr import services
from apps.emr.models import Encounter, NoteStatus, ProgressNote
from apps.emr.signals import note_finalized
from apps.notifications.models import Notification

SIGNATURE = 'sha256:0123456789abcdef0123456789abcdef'


def notes_url(patient):
    return f'/api/v1/provider/patients/{patient.pk}/emr/notes/'


@pytest.mark.django_db
class TestCreateDraft:
    def test_create_draft_round_trip(self, provider_client, patient_user, encounter):
        payload = {
            'encounterId': str(encounter.pk),
            'subjective': 'cough',
            'objective': 'Lungs clear',
            'assessment': 'Viral URTI',
            'plan': 'Supportive care',
            'summary': 'Mild illness',
            'attachments': [{'name': 'xray.png', 'url': 'https://files.test/xray.png'}],
        }

        created = provider_client.post(notes_url(patient_user), payload, format='json')

        assert created.status_code == status.HTTP_201_CREATED
        note = created.data['data']
        assert note['status'] == NoteStatus.DRAFT
        assert note['rowVersion'] == 1

        fetched = provider_client.get(f'/api/v1/progress-notes/{note["id"]}/')

        assert fetched.status_code == status.HTTP_200_OK
        for field in ('subjective', 'objective', 'assessment', 'plan', 'summary', 'attachments'):
            assert fetched.data['data'][field] == payload[field]
        assert fetched.data['data']['encounterId'] == str(encounter.pk)
        assert fetched.data['data']['authorId'] == str(encounter.provider_id)

    def test_create_is_audited(self, provider_client, patient_user, approved_link, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            response = provider_client.post(notes_url(patient_user), {'subjective': 'cough'}, format='json')

        entry = AuditLog.objects.get(action=AuditAction.CREATE, entity_id=response.data['data']['id'])
        assert entry.metadata['patientId'] == str(patient_user.pk)
        assert 'subjective' not in entry.metadata

    def test_unlinked_provider_is_denied_before_validation(self, other_provider_client, patient_user):
        response = other_provider_client.post(
            notes_url(patient_user),
            {'attachments': 'not-a-list'},
            format='json',
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['title'] == 'Access Denied'
        assert response.data['detail'] == 'No approved provider-patient link'

    def test_pending_provider_cannot_create(self, pending_provider_client, patient_user):
        response = pending_provider_client.post(notes_url(patient_user), {'subjective': 'x'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_patient_cannot_create(self, patient_client, patient_user):
        response = patient_client.post(notes_url(patient_user), {'subjective': 'x'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unknown_encounter_is_not_found(self, provider_client, patient_user, approved_link):
        response = provider_client.post(
            notes_url(patient_user),
            {'encounterId': str(uuid.uuid4())},
            format='json',
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['detail'] == 'Encounter not found'

    def test_encounter_of_another_patient_conflicts(
        self, provider_client, provider_user, patient_user, other_patient_user, approved_link
    ):
        foreign = Encounter.objects.create(
            patient=other_patient_user,
            provider=provider_user,
            start_time='2026-01-01T10:00:00Z',
        )

        response = provider_client.post(
            notes_url(patient_user),
            {'encounterId': str(foreign.pk)},
            format='json',
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['detail'] == 'Patient mismatch for encounter'


@pytest.mark.django_db
class TestUpdateDraft:
    def test_author_updates_draft(self, provider_client, patient_user, draft_note):
        response = provider_client.put(
            notes_url(patient_user),
            {'id': str(draft_note.pk), 'plan': 'Add honey and lemon', 'autosave': True},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['plan'] == 'Add honey and lemon'
        assert response.data['data']['rowVersion'] == 2
        assert response.data['data']['autosavedAt'] is not None
        draft_note.refresh_from_db()
        assert draft_note.subjective == 'Reports cough for three days'

    def test_stale_row_version_conflicts(self, provider_client, patient_user, draft_note):
        provider_client.put(notes_url(patient_user), {'id': str(draft_note.pk), 'plan': 'v2'}, format='json')

        response = provider_client.put(
            notes_url(patient_user),
            {'id': str(draft_note.pk), 'plan': 'v3', 'rowVersion': 1},
            format='json',
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['detail'] == 'Note was modified by another request'
        assert response.data['currentRowVersion'] == 2
        draft_note.refresh_from_db()
        assert draft_note.plan == 'v2'

    def test_missing_note_is_not_found(self, provider_client, patient_user, approved_link):
        response = provider_client.put(notes_url(patient_user), {'id': str(uuid.uuid4())}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['detail'] == 'Progress note not found'

    def test_non_author_cannot_update(
        self, other_provider_user, other_provider_client, patient_user, draft_note
    ):
        from apps.connections.models import LinkStatus, ProviderPatientLink
        ProviderPatientLink.objects.create(
            provider=other_provider_user,
            patient=patient_user,
            treatment_type='general',
            status=LinkStatus.APPROVED,
        )

        response = other_provider_client.put(
            notes_url(patient_user),
            {'id': str(draft_note.pk), 'plan': 'hijack'},
            format='json',
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['detail'] == 'Forbidden: not author'


@pytest.mark.django_db
class TestFinalize:
    def test_scenario_b_finalize_then_conflict(self, provider_principal, patient_user, approved_link):
        note = services.create_draft(provider_principal, patient_user.pk, {'subjective': 'cough'})

        finalized = services.finalize_note(provider_principal, note.pk, 'abc123')

        assert finalized.status == NoteStatus.FINALIZED
        assert finalized.finalized_at is not None
        assert finalized.signature_hash == 'abc123'

        with pytest.raises(ConflictError) as excinfo:
            services.finalize_note(provider_principal, note.pk, 'def456')
        assert excinfo.value.status_code == 409
        assert excinfo.value.detail == 'Note already finalized'

        note.refresh_from_db()
        assert note.signature_hash == 'abc123'

    def test_finalize_over_http(self, provider_client, draft_note):
        response = provider_client.post(
            '/api/v1/progress-notes/finalize/',
            {'id': str(draft_note.pk), 'signatureHash': SIGNATURE},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['status'] == NoteStatus.FINALIZED
        assert response.data['data']['signatureHash'] == SIGNATURE

    def test_short_signature_is_rejected_over_http(self, provider_client, draft_note):
        response = provider_client.post(
            '/api/v1/progress-notes/finalize/',
            {'id': str(draft_note.pk), 'signatureHash': 'abc123'},
            format='json',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['issues'][0]['path'] == 'signatureHash'
        draft_note.refresh_from_db()
        assert draft_note.status == NoteStatus.DRAFT

    def test_patient_scoped_finalize(self, provider_client, patient_user, draft_note):
        response = provider_client.post(
            f'{notes_url(patient_user)}finalize/',
            {'id': str(draft_note.pk), 'signatureHash': SIGNATURE},
            format='json',
        )
        assert response.status_code == status.HTTP_200_OK

    def test_patient_scoped_finalize_hides_other_patients_notes(
        self, provider_client, provider_user, other_patient_user, draft_note
    ):
        from apps.connections.models import LinkStatus, ProviderPatientLink
        ProviderPatientLink.objects.create(
            provider=provider_user,
            patient=other_patient_user,
            treatment_type='general',
            status=LinkStatus.APPROVED,
        )

        response = provider_client.post(
            f'{notes_url(other_patient_user)}finalize/',
            {'id': str(draft_note.pk), 'signatureHash': SIGNATURE},
            format='json',
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_double_finalize_writes_one_audit_row(
        self, provider_client, draft_note, django_capture_on_commit_callbacks
    ):
        payload = {'id': str(draft_note.pk), 'signatureHash': SIGNATURE}
        with django_capture_on_commit_callbacks(execute=True):
            first = provider_client.post('/api/v1/progress-notes/finalize/', payload, format='json')
        with django_capture_on_commit_callbacks(execute=True):
            second = provider_client.post(
                '/api/v1/progress-notes/finalize/',
                {'id': str(draft_note.pk), 'signatureHash': 'another-signature-value'},
                format='json',
            )

        assert first.status_code == status.HTTP_200_OK
        assert second.status_code == status.HTTP_409_CONFLICT
        assert second.data['detail'] == 'Note already finalized'
        rows = AuditLog.objects.filter(action=AuditAction.FINALIZE, entity_id=str(draft_note.pk))
        assert rows.count() == 1
        assert rows.get().metadata['encounterId'] == str(draft_note.encounter_id)
        draft_note.refresh_from_db()
        assert draft_note.signature_hash == SIGNATURE

    def test_scenario_c_foreign_provider_is_forbidden(
        self, provider_user, provider_client, other_provider_user, patient_user
    ):
        foreign_encounter = Encounter.objects.create(
            patient=patient_user,
            provider=other_provider_user,
            start_time='2026-01-01T10:00:00Z',
        )
        foreign_note = ProgressNote.objects.create(
            encounter=foreign_encounter,
            patient=patient_user,
            author=other_provider_user,
            subjective='Written by provider B',
        )

        response = provider_client.post(
            '/api/v1/progress-notes/finalize/',
            {'id': str(foreign_note.pk), 'signatureHash': SIGNATURE},
            format='json',
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['detail'] == 'Forbidden: not author or encounter provider'
        foreign_note.refresh_from_db()
        assert foreign_note.status == NoteStatus.DRAFT

    def test_encounter_provider_may_finalize(self, provider_user, other_provider_user, patient_user, encounter):
        note = ProgressNote.objects.create(
            encounter=encounter,
            patient=patient_user,
            author=other_provider_user,
        )

        finalized = services.finalize_note(Principal.from_user(provider_user), note.pk, SIGNATURE)

        assert finalized.status == NoteStatus.FINALIZED

    def test_unknown_note_is_not_found(self, provider_client):
        response = provider_client.post(
            '/api/v1/progress-notes/finalize/',
            {'id': str(uuid.uuid4()), 'signatureHash': SIGNATURE},
            format='json',
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_pending_provider_cannot_finalize(self, pending_provider_client, draft_note):
        response = pending_provider_client.post(
            '/api/v1/progress-notes/finalize/',
            {'id': str(draft_note.pk), 'signatureHash': SIGNATURE},
            format='json',
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_lost_race_is_conflict(self, provider_principal, draft_note):
        """A concurrent finalize committed after this request read the draft."""
        stale = ProgressNote.objects.get(pk=draft_note.pk)
        ProgressNote.objects.filter(pk=draft_note.pk).update(
            status=NoteStatus.FINALIZED,
            signature_hash='winner-signature-0001',
        )

        with patch('apps.emr.services._load_note_for_update', return_value=stale):
            with pytest.raises(ConflictError) as excinfo:
                services.finalize_note(provider_principal, draft_note.pk, SIGNATURE)

        assert excinfo.value.detail == 'Note already finalized'
        draft_note.refresh_from_db()
        assert draft_note.signature_hash == 'winner-signature-0001'

    def test_audit_failure_does_not_block_finalize(
        self, provider_client, draft_note, django_capture_on_commit_callbacks
    ):
        with patch('apps.audit.services.AuditLog.objects.create', side_effect=DatabaseError('audit down')):
            with django_capture_on_commit_callbacks(execute=True):
                response = provider_client.post(
                    '/api/v1/progress-notes/finalize/',
                    {'id': str(draft_note.pk), 'signatureHash': SIGNATURE},
                    format='json',
                )

        assert response.status_code == status.HTTP_200_OK
        draft_note.refresh_from_db()
        assert draft_note.status == NoteStatus.FINALIZED
        assert AuditLog.objects.count() == 0


@pytest.mark.django_db
class TestNoteFinalizedSignal:
    def test_signal_carries_identifiers(self, provider_principal, draft_note, django_capture_on_commit_callbacks):
        received = []

        def listener(sender, **kwargs):
            received.append(kwargs)

        note_finalized.connect(listener)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                services.finalize_note(provider_principal, draft_note.pk, SIGNATURE)
        finally:
            note_finalized.disconnect(listener)

        assert len(received) == 1
        payload = received[0]
        assert payload['note_id'] == str(draft_note.pk)
        assert payload['encounter_id'] == str(draft_note.encounter_id)
        assert payload['patient_id'] == str(draft_note.patient_id)
        assert payload['author_id'] == str(draft_note.author_id)
        assert payload['signature_hash'] == SIGNATURE
        assert payload['finalized_at']

    def test_signal_not_sent_when_finalize_fails(self, provider_principal, finalized_note):
        received = []

        def listener(sender, **kwargs):
            received.append(kwargs)

        note_finalized.connect(listener)
        try:
            with pytest.raises(ConflictError):
                services.finalize_note(provider_principal, finalized_note.pk, SIGNATURE)
        finally:
            note_finalized.disconnect(listener)

        assert received == []

    def test_failing_receiver_does_not_affect_response(
        self, provider_client, draft_note, django_capture_on_commit_callbacks
    ):
        def broken(sender, **kwargs):
            raise RuntimeError('downstream outage')

        note_finalized.connect(broken)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                response = provider_client.post(
                    '/api/v1/progress-notes/finalize/',
                    {'id': str(draft_note.pk), 'signatureHash': SIGNATURE},
                    format='json',
                )
        finally:
            note_finalized.disconnect(broken)

        assert response.status_code == status.HTTP_200_OK

    def test_patient_is_notified(self, provider_principal, patient_user, draft_note, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            services.finalize_note(provider_principal, draft_note.pk, SIGNATURE)

        assert Notification.objects.filter(user=patient_user, type='note').count() == 1


@pytest.mark.django_db
class TestImmutability:
    """Signed content never changes; failed mutations leave it byte-identical."""

    def test_update_after_finalize_conflicts(self, provider_client, patient_user, finalized_note):
        before = finalized_note.clinical_snapshot()

        response = provider_client.put(
            notes_url(patient_user),
            {'id': str(finalized_note.pk), 'subjective': 'rewritten'},
            format='json',
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['detail'] == 'Finalized notes are immutable; use amendment flow'
        finalized_note.refresh_from_db()
        assert finalized_note.clinical_snapshot() == before

    def test_update_of_amended_note_conflicts(self, provider_principal, finalized_note):
        services.amend_note(provider_principal, finalized_note.pk, 'Late lab result', {})
        finalized_note.refresh_from_db()
        before = finalized_note.clinical_snapshot()

        with pytest.raises(ConflictError):
            services.update_draft(provider_principal, finalized_note.pk, {'plan': 'edit'})

        finalized_note.refresh_from_db()
        assert finalized_note.clinical_snapshot() == before


@pytest.mark.django_db
class TestAmend:
    endpoint = '/api/v1/progress-notes/amend/'

    def test_amend_creates_linked_draft(
        self, provider_client, finalized_note, django_capture_on_commit_callbacks
    ):
        before = finalized_note.clinical_snapshot()

        with django_capture_on_commit_callbacks(execute=True):
            response = provider_client.post(
                self.endpoint,
                {'originalId': str(finalized_note.pk), 'reason': 'Lab result arrived', 'plan': 'Start antibiotics'},
                format='json',
            )

        assert response.status_code == status.HTTP_201_CREATED
        amendment = response.data['data']
        assert amendment['status'] == NoteStatus.DRAFT
        assert amendment['amendedFromId'] == str(finalized_note.pk)
        assert amendment['amendmentReason'] == 'Lab result arrived'
        assert amendment['plan'] == 'Start antibiotics'
        assert amendment['subjective'] == before['subjective']

        finalized_note.refresh_from_db()
        assert finalized_note.status == NoteStatus.AMENDED
        assert finalized_note.clinical_snapshot() == before
        assert finalized_note.signature_hash == SIGNATURE
        assert AuditLog.objects.filter(action=AuditAction.AMEND, entity_id=str(finalized_note.pk)).exists()

    def test_amended_note_cannot_be_finalized(self, provider_principal, finalized_note):
        services.amend_note(provider_principal, finalized_note.pk, 'Correction', {})

        with pytest.raises(ConflictError) as excinfo:
            services.finalize_note(provider_principal, finalized_note.pk, SIGNATURE)
        assert excinfo.value.detail == 'Amended notes cannot be finalized'

    def test_amendment_follows_normal_flow(self, provider_principal, finalized_note):
        amendment = services.amend_note(provider_principal, finalized_note.pk, 'Correction', {})
        services.update_draft(provider_principal, amendment.pk, {'summary': 'Corrected summary'})

        signed = services.finalize_note(provider_principal, amendment.pk, SIGNATURE)

        assert signed.status == NoteStatus.FINALIZED
        assert signed.summary == 'Corrected summary'

    def test_draft_cannot_be_amended(self, provider_client, draft_note):
        response = provider_client.post(
            self.endpoint,
            {'originalId': str(draft_note.pk), 'reason': 'Typo'},
            format='json',
        )
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_reason_is_required(self, provider_client, finalized_note):
        response = provider_client.post(self.endpoint, {'originalId': str(finalized_note.pk)}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert {'path': 'reason', 'message': 'This field is required.'} in response.data['issues']

    def test_foreign_provider_cannot_amend(self, other_provider_user, patient_user, finalized_note):
        from apps.connections.models import LinkStatus, ProviderPatientLink
        ProviderPatientLink.objects.create(
            provider=other_provider_user,
            patient=patient_user,
            treatment_type='general',
            status=LinkStatus.APPROVED,
        )

        with pytest.raises(PermissionDeniedError):
            services.amend_note(Principal.from_user(other_provider_user), finalized_note.pk, 'Mine now', {})


@pytest.mark.django_db
class TestListNotes:
    def _make_notes(self, provider_user, patient_user, encounter):
        ProgressNote.objects.create(
            encounter=encounter, patient=patient_user, author=provider_user,
            subjective='Persistent COUGH at night',
        )
        ProgressNote.objects.create(
            patient=patient_user, author=provider_user,
            assessment='Sprained ankle', status=NoteStatus.FINALIZED,
        )
        ProgressNote.objects.create(
            patient=patient_user, author=provider_user,
            plan='Follow up for cough in two weeks',
        )

    def test_lists_in_list_envelope(self, provider_client, provider_user, patient_user, encounter):
        self._make_notes(provider_user, patient_user, encounter)

        response = provider_client.get(notes_url(patient_user))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['success'] is True
        assert response.data['data']['total'] == 3
        assert response.data['data']['page'] == 0
        assert response.data['data']['pageSize'] == 20
        assert response['Cache-Control'] == 'no-store'

    def test_keywords_match_any_section_case_insensitive(self, provider_client, provider_user, patient_user, encounter):
        self._make_notes(provider_user, patient_user, encounter)

        response = provider_client.get(notes_url(patient_user), {'keywords': 'cough'})

        assert response.data['data']['total'] == 2

    def test_status_and_encounter_filters(self, provider_client, provider_user, patient_user, encounter):
        self._make_notes(provider_user, patient_user, encounter)

        by_status = provider_client.get(notes_url(patient_user), {'status': 'finalized'})
        by_encounter = provider_client.get(notes_url(patient_user), {'encounterId': str(encounter.pk)})

        assert by_status.data['data']['total'] == 1
        assert by_encounter.data['data']['total'] == 1

    def test_page_size_is_capped(self, provider_client, patient_user, approved_link):
        response = provider_client.get(notes_url(patient_user), {'pageSize': 500})
        assert response.data['data']['pageSize'] == 100

    def test_pagination(self, provider_client, provider_user, patient_user, encounter):
        self._make_notes(provider_user, patient_user, encounter)

        response = provider_client.get(notes_url(patient_user), {'page': 1, 'pageSize': 2})

        assert response.data['data']['total'] == 3
        assert len(response.data['data']['items']) == 1

    def test_invalid_status_is_bad_request(self, provider_client, patient_user, approved_link):
        response = provider_client.get(notes_url(patient_user), {'status': 'shredded'})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_list_is_audited_as_view(self, provider_client, patient_user, approved_link, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            provider_client.get(notes_url(patient_user))

        entry = AuditLog.objects.get(action=AuditAction.VIEW, entity_id='list')
        assert entry.metadata['patientId'] == str(patient_user.pk)

    def test_pending_provider_with_link_can_read(
        self, pending_provider_user, pending_provider_client, patient_user
    ):
        from apps.connections.models import LinkStatus, ProviderPatientLink
        ProviderPatientLink.objects.create(
            provider=pending_provider_user,
            patient=patient_user,
            treatment_type='general',
            status=LinkStatus.APPROVED,
        )

        response = pending_provider_client.get(notes_url(patient_user))

        assert response.status_code == status.HTTP_200_OK


@pytest.mark.django_db
class TestGetNote:
    def _link_other_provider(self, other_provider_user, patient_user):
        from apps.connections.models import LinkStatus, ProviderPatientLink
        ProviderPatientLink.objects.create(
            provider=other_provider_user,
            patient=patient_user,
            treatment_type='general',
            status=LinkStatus.APPROVED,
        )

    def test_linked_colleague_cannot_read_foreign_draft(
        self, other_provider_user, other_provider_client, patient_user, draft_note
    ):
        self._link_other_provider(other_provider_user, patient_user)

        listed = other_provider_client.get(notes_url(patient_user))
        fetched = other_provider_client.get(f'/api/v1/progress-notes/{draft_note.pk}/')

        assert listed.data['data']['total'] == 0
        assert fetched.status_code == status.HTTP_404_NOT_FOUND
        assert 'subjective' not in fetched.data

    def test_encounter_provider_can_read_colleague_note(
        self, provider_client, other_provider_user, patient_user, encounter
    ):
        note = ProgressNote.objects.create(
            encounter=encounter, patient=patient_user, author=other_provider_user,
            subjective='Seen by locum',
        )

        response = provider_client.get(f'/api/v1/progress-notes/{note.pk}/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['subjective'] == 'Seen by locum'

    def test_read_is_audited(self, provider_client, draft_note, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            provider_client.get(f'/api/v1/progress-notes/{draft_note.pk}/')

        assert AuditLog.objects.filter(action=AuditAction.READ, entity_id=str(draft_note.pk)).count() == 1


@pytest.mark.django_db
class TestPatientNotes:
    def test_patient_sees_only_signed_notes(self, patient_client, draft_note, provider_user, patient_user):
        ProgressNote.objects.create(
            patient=patient_user, author=provider_user,
            status=NoteStatus.FINALIZED, signature_hash=SIGNATURE,
        )

        response = patient_client.get('/api/v1/patient/notes/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['total'] == 1
        assert response.data['data']['items'][0]['status'] == NoteStatus.FINALIZED

    def test_notes_of_unlinked_authors_are_hidden(self, patient_client, other_provider_user, patient_user):
        ProgressNote.objects.create(
            patient=patient_user, author=other_provider_user,
            status=NoteStatus.FINALIZED, signature_hash=SIGNATURE,
        )

        response = patient_client.get('/api/v1/patient/notes/')

        assert response.data['data']['total'] == 0

    def test_providers_cannot_use_patient_endpoint(self, provider_client):
        response = provider_client.get('/api/v1/patient/notes/')
        assert response.status_code == status.HTTP_403_FORBIDDEN

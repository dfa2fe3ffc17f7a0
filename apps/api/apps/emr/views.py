"""
EMR endpoints.

Patient-scoped (provider side):
- GET  /api/v1/provider/patients/{patientId}/emr/notes/            list notes
- POST /api/v1/provider/patients/{patientId}/emr/notes/            create draft
- PUT  /api/v1/provider/patients/{patientId}/emr/notes/            update draft
- POST /api/v1/provider/patients/{patientId}/emr/notes/finalize/   finalize
- GET  /api/v1/provider/patients/{patientId}/emr/encounters/       list encounters
- POST /api/v1/provider/patients/{patientId}/emr/encounters/       open encounter
- GET  /api/v1/provider/patients/{patientId}/emr/prescriptions/    list prescriptions
- POST /api/v1/provider/patients/{patientId}/emr/prescriptions/    prescribe
- PUT  /api/v1/provider/patients/{patientId}/emr/prescriptions/    update prescription

Note-scoped:
- POST /api/v1/progress-notes/finalize/
- POST /api/v1/progress-notes/amend/
- GET  /api/v1/progress-notes/{id}/
- POST /api/v1/encounters/{id}/close/

Prescription-scoped:
- GET    /api/v1/prescriptions/{id}/
- PATCH  /api/v1/prescriptions/{id}/                                update
- DELETE /api/v1/prescriptions/{id}/                                cancel with reason
- POST   /api/v1/jobs/prescriptions/expire/                         admin-run expiry

Patient side:
- GET  /api/v1/patient/notes/                                      own signed notes
- GET  /api/v1/patient/prescriptions/                              own prescriptions

Patient-scoped routes check permission and the provider-patient link
BEFORE validating the body, so an unlinked caller learns nothing from
validation errors.
"""
from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from rest_framework import status
from rest_framework.views import APIView

from apps.authz.capabilities import Perm, require_permission
from apps.authz.permissions import IsAdmin, IsPatient
from apps.authz.principal import Principal
from apps.connections.services import ensure_provider_patient_link
from apps.core.exceptions import ValidationError
from apps.core.responses import entity_response, list_response, parse_pagination
from apps.emr import services
from apps.emr.serializers import (
    AmendSerializer,
    DraftCreateSerializer,
    DraftUpdateSerializer,
    EncounterCloseSerializer,
    EncounterCreateSerializer,
    EncounterSerializer,
    FinalizeSerializer,
    PrescriptionCancelSerializer,
    PrescriptionCreateSerializer,
    PrescriptionSerializer,
    PrescriptionUpdateSerializer,
    ProgressNoteSerializer,
)


def _guard(request, permission, patient_id, require_approved_provider=False):
    principal = Principal.from_user(request.user)
    require_permission(principal, permission, require_approved_provider=require_approved_provider)
    ensure_provider_patient_link(principal, patient_id)
    return principal


def _pagination(request):
    return parse_pagination(
        request.query_params,
        default_size=settings.NOTES_DEFAULT_PAGE_SIZE,
        max_size=settings.NOTES_MAX_PAGE_SIZE,
    )


def _query_datetime(request, name):
    raw = request.query_params.get(name)
    if not raw:
        return None
    value = parse_datetime(raw)
    if value is None:
        raise ValidationError(
            'Validation failed',
            issues=[{'path': name, 'message': 'Must be an ISO-8601 datetime'}],
        )
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


class PatientNotesView(APIView):
    def get(self, request, patient_id):
        principal = _guard(request, Perm.NOTE_READ, patient_id)
        page, page_size = _pagination(request)
        notes, total = services.list_notes(
            principal,
            patient_id,
            encounter_id=request.query_params.get('encounterId'),
            status=request.query_params.get('status'),
            keywords=request.query_params.get('keywords'),
            page=page,
            page_size=page_size,
            request=request,
        )
        return list_response(ProgressNoteSerializer(notes, many=True).data, total, page, page_size, request)

    def post(self, request, patient_id):
        principal = _guard(request, Perm.NOTE_CREATE, patient_id, require_approved_provider=True)
        serializer = DraftCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        body_patient_id = data.get('patient_id')
        if body_patient_id is not None and body_patient_id != patient_id:
            raise ValidationError(
                'Validation failed',
                issues=[{'path': 'patientId', 'message': 'Does not match the patient in the URL'}],
            )

        note = services.create_draft(principal, patient_id, data, request=request)
        return entity_response(ProgressNoteSerializer(note).data, request, status=status.HTTP_201_CREATED)

    def put(self, request, patient_id):
        principal = _guard(request, Perm.NOTE_UPDATE, patient_id, require_approved_provider=True)
        serializer = DraftUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        note_id = data.pop('id')

        note = services.update_draft(principal, note_id, data, patient_id=patient_id, request=request)
        return entity_response(ProgressNoteSerializer(note).data, request)


class PatientNoteFinalizeView(APIView):
    def post(self, request, patient_id):
        principal = _guard(request, Perm.NOTE_FINALIZE, patient_id, require_approved_provider=True)
        serializer = FinalizeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        note = services.finalize_note(
            principal,
            data['id'],
            data['signature_hash'],
            finalized_at=data.get('finalized_at'),
            patient_id=patient_id,
            request=request,
        )
        return entity_response(ProgressNoteSerializer(note).data, request)


class NoteFinalizeView(APIView):
    def post(self, request):
        principal = Principal.from_user(request.user)
        require_permission(principal, Perm.NOTE_FINALIZE, require_approved_provider=True)
        serializer = FinalizeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        note = services.finalize_note(
            principal,
            data['id'],
            data['signature_hash'],
            finalized_at=data.get('finalized_at'),
            request=request,
        )
        return entity_response(ProgressNoteSerializer(note).data, request)


class NoteAmendView(APIView):
    def post(self, request):
        principal = Principal.from_user(request.user)
        require_permission(principal, Perm.NOTE_AMEND, require_approved_provider=True)
        serializer = AmendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        original_id = data.pop('original_id')
        reason = data.pop('reason')

        amendment = services.amend_note(principal, original_id, reason, data, request=request)
        return entity_response(ProgressNoteSerializer(amendment).data, request, status=status.HTTP_201_CREATED)


class NoteDetailView(APIView):
    def get(self, request, note_id):
        note = services.get_note(Principal.from_user(request.user), note_id, request=request)
        return entity_response(ProgressNoteSerializer(note).data, request)


class PatientEncountersView(APIView):
    def get(self, request, patient_id):
        principal = _guard(request, Perm.ENCOUNTER_READ, patient_id)
        page, page_size = parse_pagination(request.query_params)
        encounters, total = services.list_encounters(
            principal, patient_id, page=page, page_size=page_size, request=request
        )
        return list_response(EncounterSerializer(encounters, many=True).data, total, page, page_size, request)

    def post(self, request, patient_id):
        principal = _guard(request, Perm.ENCOUNTER_WRITE, patient_id, require_approved_provider=True)
        serializer = EncounterCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        encounter = services.open_encounter(principal, patient_id, serializer.validated_data, request=request)
        return entity_response(EncounterSerializer(encounter).data, request, status=status.HTTP_201_CREATED)


class EncounterCloseView(APIView):
    def post(self, request, encounter_id):
        serializer = EncounterCloseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        encounter = services.close_encounter(
            Principal.from_user(request.user),
            encounter_id,
            status=serializer.validated_data['status'],
            request=request,
        )
        return entity_response(EncounterSerializer(encounter).data, request)


class MyNotesView(APIView):
    permission_classes = [IsPatient]

    def get(self, request):
        page, page_size = _pagination(request)
        notes, total = services.list_patient_notes(
            Principal.from_user(request.user), page=page, page_size=page_size, request=request
        )
        return list_response(ProgressNoteSerializer(notes, many=True).data, total, page, page_size, request)


# ============================================================================
# Prescriptions
# ============================================================================

class PatientPrescriptionsView(APIView):
    def get(self, request, patient_id):
        principal = _guard(request, Perm.MEDICATION_READ, patient_id)
        page, page_size = parse_pagination(request.query_params)
        prescriptions, total = services.list_prescriptions(
            principal,
            patient_id,
            status=request.query_params.get('status'),
            date_from=_query_datetime(request, 'dateFrom'),
            date_to=_query_datetime(request, 'dateTo'),
            page=page,
            page_size=page_size,
            request=request,
        )
        return list_response(
            PrescriptionSerializer(prescriptions, many=True).data, total, page, page_size, request
        )

    def post(self, request, patient_id):
        principal = _guard(request, Perm.MEDICATION_CREATE, patient_id, require_approved_provider=True)
        serializer = PrescriptionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data['patient_id'] != patient_id:
            raise ValidationError(
                'Validation failed',
                issues=[{'path': 'patientId', 'message': 'Does not match the patient in the URL'}],
            )

        prescription, warnings = services.create_prescription(principal, patient_id, data, request=request)
        return entity_response(
            {'prescription': PrescriptionSerializer(prescription).data, 'warnings': warnings},
            request,
            status=status.HTTP_201_CREATED,
        )

    def put(self, request, patient_id):
        principal = _guard(request, Perm.MEDICATION_UPDATE, patient_id, require_approved_provider=True)
        serializer = PrescriptionUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        prescription_id = data.pop('id', None)
        if prescription_id is None:
            raise ValidationError(
                'Validation failed',
                issues=[{'path': 'id', 'message': 'This field is required.'}],
            )

        prescription = services.update_prescription(
            principal, prescription_id, data, patient_id=patient_id, request=request
        )
        return entity_response(PrescriptionSerializer(prescription).data, request)


class PrescriptionDetailView(APIView):
    def get(self, request, prescription_id):
        prescription = services.get_prescription(
            Principal.from_user(request.user), prescription_id, request=request
        )
        return entity_response(PrescriptionSerializer(prescription).data, request)

    def patch(self, request, prescription_id):
        principal = Principal.from_user(request.user)
        require_permission(principal, Perm.MEDICATION_UPDATE, require_approved_provider=True)
        serializer = PrescriptionUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        body_id = data.pop('id', None)
        if body_id is not None and body_id != prescription_id:
            raise ValidationError(
                'Validation failed',
                issues=[{'path': 'id', 'message': 'Does not match the prescription in the URL'}],
            )

        prescription = services.update_prescription(principal, prescription_id, data, request=request)
        return entity_response(PrescriptionSerializer(prescription).data, request)

    def delete(self, request, prescription_id):
        principal = Principal.from_user(request.user)
        require_permission(principal, Perm.MEDICATION_UPDATE, require_approved_provider=True)
        serializer = PrescriptionCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        prescription = services.cancel_prescription(
            principal, prescription_id, serializer.validated_data['reason'], request=request
        )
        return entity_response(PrescriptionSerializer(prescription).data, request)


class MyPrescriptionsView(APIView):
    permission_classes = [IsPatient]

    def get(self, request):
        page, page_size = parse_pagination(request.query_params)
        prescriptions, total = services.list_patient_prescriptions(
            Principal.from_user(request.user),
            status=request.query_params.get('status'),
            page=page,
            page_size=page_size,
            request=request,
        )
        return list_response(
            PrescriptionSerializer(prescriptions, many=True).data, total, page, page_size, request
        )


class PrescriptionExpireJobView(APIView):
    """Admin-triggered run of the hourly expiry job."""
    permission_classes = [IsAdmin]

    def post(self, request):
        principal = Principal.from_user(request.user)
        require_permission(principal, Perm.MEDICATION_UPDATE)
        updated = services.expire_prescriptions(principal, request=request)
        return entity_response({'updatedCount': updated}, request)

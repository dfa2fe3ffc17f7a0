"""
EMR serializers (wire format is camelCase).

Input serializers declare `source=` so validated_data arrives in model
field names and can be handed to the services unchanged.
"""
import re

from rest_framework import serializers

from apps.emr.models import (
    Encounter,
    EncounterMode,
    EncounterStatus,
    Prescription,
    PrescriptionStatus,
    ProgressNote,
)


# ============================================================================
# Output
# ============================================================================

class EncounterSerializer(serializers.ModelSerializer):
    patientId = serializers.UUIDField(source='patient_id', read_only=True)
    providerId = serializers.UUIDField(source='provider_id', read_only=True)
    appointmentId = serializers.UUIDField(source='appointment_id', read_only=True)
    startTime = serializers.DateTimeField(source='start_time', read_only=True)
    endTime = serializers.DateTimeField(source='end_time', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Encounter
        fields = [
            'id',
            'patientId',
            'providerId',
            'appointmentId',
            'type',
            'mode',
            'status',
            'startTime',
            'endTime',
            'location',
            'createdAt',
        ]
        read_only_fields = fields


class ProgressNoteSerializer(serializers.ModelSerializer):
    encounterId = serializers.UUIDField(source='encounter_id', read_only=True)
    patientId = serializers.UUIDField(source='patient_id', read_only=True)
    authorId = serializers.UUIDField(source='author_id', read_only=True)
    autosavedAt = serializers.DateTimeField(source='autosaved_at', read_only=True)
    finalizedAt = serializers.DateTimeField(source='finalized_at', read_only=True)
    signatureHash = serializers.CharField(source='signature_hash', read_only=True)
    amendedFromId = serializers.UUIDField(source='amended_from_id', read_only=True)
    amendmentReason = serializers.CharField(source='amendment_reason', read_only=True)
    rowVersion = serializers.IntegerField(source='row_version', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = ProgressNote
        fields = [
            'id',
            'encounterId',
            'patientId',
            'authorId',
            'status',
            'subjective',
            'objective',
            'assessment',
            'plan',
            'summary',
            'attachments',
            'autosavedAt',
            'finalizedAt',
            'signatureHash',
            'amendedFromId',
            'amendmentReason',
            'rowVersion',
            'createdAt',
            'updatedAt',
        ]
        read_only_fields = fields


# ============================================================================
# Input
# ============================================================================

class NoteContentSerializer(serializers.Serializer):
    subjective = serializers.CharField(required=False, allow_blank=True, allow_null=True, trim_whitespace=False)
    objective = serializers.CharField(required=False, allow_blank=True, allow_null=True, trim_whitespace=False)
    assessment = serializers.CharField(required=False, allow_blank=True, allow_null=True, trim_whitespace=False)
    plan = serializers.CharField(required=False, allow_blank=True, allow_null=True, trim_whitespace=False)
    summary = serializers.CharField(required=False, allow_blank=True, allow_null=True, trim_whitespace=False)
    attachments = serializers.ListField(
        child=serializers.DictField(),
        required=False,
        allow_null=True,
    )


class DraftCreateSerializer(NoteContentSerializer):
    encounterId = serializers.UUIDField(source='encounter_id', required=False, allow_null=True)
    patientId = serializers.UUIDField(source='patient_id', required=False)


class DraftUpdateSerializer(NoteContentSerializer):
    id = serializers.UUIDField()
    rowVersion = serializers.IntegerField(source='row_version', required=False, min_value=1)
    autosave = serializers.BooleanField(required=False, default=False)


class FinalizeSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    signatureHash = serializers.CharField(source='signature_hash', min_length=16, max_length=256)
    finalizedAt = serializers.DateTimeField(source='finalized_at', required=False)


class AmendSerializer(NoteContentSerializer):
    originalId = serializers.UUIDField(source='original_id')
    reason = serializers.CharField(max_length=2000)


class EncounterCreateSerializer(serializers.Serializer):
    appointmentId = serializers.UUIDField(source='appointment_id', required=False, allow_null=True)
    type = serializers.CharField(max_length=64, required=False, default='consultation')
    mode = serializers.ChoiceField(choices=EncounterMode.choices, required=False, default=EncounterMode.TELEMEDICINE)
    startTime = serializers.DateTimeField(source='start_time', required=False)
    location = serializers.CharField(max_length=255, required=False, allow_blank=True)


class EncounterCloseSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=[EncounterStatus.COMPLETED, EncounterStatus.CANCELLED],
        required=False,
        default=EncounterStatus.COMPLETED,
    )


# ============================================================================
# Prescriptions
# ============================================================================

DOSAGE_PATTERN = re.compile(r'^(\d+(\.\d+)?)\s?(mg|mcg)$', re.IGNORECASE)

# BUSINESS RULE: a single varenicline dose never exceeds 1 mg
VARENICLINE_MAX_MG = 1.0


def validate_dosage(value):
    if not DOSAGE_PATTERN.match(value.strip()):
        raise serializers.ValidationError('Invalid dosage (expected e.g. "0.5 mg" or "250mcg")')
    return value.strip()


class PrescriptionSerializer(serializers.ModelSerializer):
    patientId = serializers.UUIDField(source='patient_id', read_only=True)
    providerId = serializers.UUIDField(source='provider_id', read_only=True)
    appointmentId = serializers.UUIDField(source='appointment_id', read_only=True)
    medicationName = serializers.CharField(source='medication_name', read_only=True)
    prescribedDate = serializers.DateTimeField(source='prescribed_date', read_only=True)
    startDate = serializers.DateTimeField(source='start_date', read_only=True)
    endDate = serializers.DateTimeField(source='end_date', read_only=True)
    pharmacyPhone = serializers.CharField(source='pharmacy_phone', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Prescription
        fields = [
            'id',
            'patientId',
            'providerId',
            'appointmentId',
            'medicationName',
            'dosage',
            'frequency',
            'duration',
            'quantity',
            'refills',
            'instructions',
            'status',
            'prescribedDate',
            'startDate',
            'endDate',
            'pharmacy',
            'pharmacyPhone',
            'notes',
            'createdAt',
            'updatedAt',
        ]
        read_only_fields = fields


class PrescriptionCreateSerializer(serializers.Serializer):
    patientId = serializers.UUIDField(source='patient_id')
    appointmentId = serializers.UUIDField(source='appointment_id', required=False, allow_null=True)
    medicationName = serializers.CharField(source='medication_name', max_length=200)
    dosage = serializers.CharField(max_length=32, validators=[validate_dosage])
    frequency = serializers.CharField(max_length=100)
    duration = serializers.CharField(max_length=100)
    quantity = serializers.IntegerField(min_value=1, max_value=10000)
    refills = serializers.IntegerField(min_value=0, max_value=12, required=False, default=0)
    instructions = serializers.CharField()
    status = serializers.ChoiceField(
        choices=[PrescriptionStatus.DRAFT, PrescriptionStatus.ACTIVE],
        required=False,
        default=PrescriptionStatus.DRAFT,
    )
    prescribedDate = serializers.DateTimeField(source='prescribed_date', required=False)
    startDate = serializers.DateTimeField(source='start_date')
    endDate = serializers.DateTimeField(source='end_date', required=False, allow_null=True)
    pharmacy = serializers.CharField(max_length=200, required=False, allow_blank=True)
    pharmacyPhone = serializers.CharField(source='pharmacy_phone', max_length=32, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        name = attrs['medication_name'].lower()
        if 'varenicl' in name:
            match = DOSAGE_PATTERN.match(attrs['dosage'])
            if match and match.group(3).lower() == 'mg' and float(match.group(1)) > VARENICLINE_MAX_MG:
                raise serializers.ValidationError(
                    {'dosage': 'Unsafe dosage for Varenicline: max 1 mg per dose'}
                )
        end_date = attrs.get('end_date')
        if end_date is not None and end_date < attrs['start_date']:
            raise serializers.ValidationError({'endDate': 'Must not be before startDate'})
        return attrs


class PrescriptionUpdateSerializer(serializers.Serializer):
    id = serializers.UUIDField(required=False)
    status = serializers.ChoiceField(choices=PrescriptionStatus.choices, required=False)
    dosage = serializers.CharField(max_length=32, required=False, validators=[validate_dosage])
    frequency = serializers.CharField(max_length=100, required=False)
    duration = serializers.CharField(max_length=100, required=False)
    quantity = serializers.IntegerField(min_value=1, max_value=10000, required=False)
    refills = serializers.IntegerField(min_value=0, max_value=12, required=False)
    instructions = serializers.CharField(required=False)
    startDate = serializers.DateTimeField(source='start_date', required=False)
    endDate = serializers.DateTimeField(source='end_date', required=False, allow_null=True)
    pharmacy = serializers.CharField(max_length=200, required=False, allow_blank=True, allow_null=True)
    pharmacyPhone = serializers.CharField(
        source='pharmacy_phone', max_length=32, required=False, allow_blank=True, allow_null=True
    )
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class PrescriptionCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(min_length=3, max_length=2000)

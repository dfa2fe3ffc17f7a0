"""
Appointment serializers (wire format is camelCase).
"""
from rest_framework import serializers

from apps.scheduling.models import Appointment


class AppointmentSerializer(serializers.ModelSerializer):
    patientId = serializers.UUIDField(source='patient_id', read_only=True)
    providerId = serializers.UUIDField(source='provider_id', read_only=True)
    patientName = serializers.CharField(source='patient.full_name', read_only=True)
    providerName = serializers.CharField(source='provider.full_name', read_only=True)
    meetingLink = serializers.CharField(source='meeting_link', read_only=True)
    meetingStartAt = serializers.DateTimeField(source='meeting_start_at', read_only=True)
    meetingEndAt = serializers.DateTimeField(source='meeting_end_at', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Appointment
        fields = [
            'id',
            'patientId',
            'patientName',
            'providerId',
            'providerName',
            'title',
            'date',
            'duration',
            'status',
            'type',
            'notes',
            'meetingLink',
            'meetingStartAt',
            'meetingEndAt',
            'createdAt',
            'updatedAt',
        ]
        read_only_fields = fields


class AppointmentRequestSerializer(serializers.Serializer):
    providerId = serializers.UUIDField()
    date = serializers.DateTimeField()
    duration = serializers.IntegerField(min_value=5, max_value=480, default=30)
    type = serializers.CharField(max_length=64, default='consultation')
    title = serializers.CharField(max_length=200, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class DeclineSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, allow_null=True)


class RescheduleSerializer(serializers.Serializer):
    date = serializers.DateTimeField()
    duration = serializers.IntegerField(min_value=5, max_value=480, required=False)

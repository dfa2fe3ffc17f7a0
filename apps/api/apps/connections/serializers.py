"""
Connection serializers (wire format is camelCase).
"""
from rest_framework import serializers

from apps.connections.models import ProviderPatientLink


class ProviderPatientLinkSerializer(serializers.ModelSerializer):
    providerId = serializers.UUIDField(source='provider_id', read_only=True)
    patientId = serializers.UUIDField(source='patient_id', read_only=True)
    providerName = serializers.CharField(source='provider.full_name', read_only=True)
    patientName = serializers.CharField(source='patient.full_name', read_only=True)
    treatmentType = serializers.CharField(source='treatment_type', read_only=True)
    requestMessage = serializers.CharField(source='request_message', read_only=True)
    outstandingBalance = serializers.DecimalField(
        source='outstanding_balance', max_digits=10, decimal_places=2, read_only=True
    )
    canDisconnect = serializers.BooleanField(source='can_disconnect', read_only=True)
    approvedAt = serializers.DateTimeField(source='approved_at', read_only=True)
    disconnectedAt = serializers.DateTimeField(source='disconnected_at', read_only=True)
    disconnectReason = serializers.CharField(source='disconnect_reason', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = ProviderPatientLink
        fields = [
            'id',
            'providerId',
            'providerName',
            'patientId',
            'patientName',
            'treatmentType',
            'status',
            'requestMessage',
            'outstandingBalance',
            'canDisconnect',
            'approvedAt',
            'disconnectedAt',
            'disconnectReason',
            'createdAt',
            'updatedAt',
        ]
        read_only_fields = fields


class ConnectRequestSerializer(serializers.Serializer):
    doctorId = serializers.UUIDField()
    treatmentType = serializers.CharField(max_length=64, default='general')
    message = serializers.CharField(required=False, allow_blank=True, max_length=1000)


class DisconnectRequestSerializer(serializers.Serializer):
    connectionId = serializers.UUIDField()
    reason = serializers.CharField(required=False, allow_blank=True, max_length=1000)

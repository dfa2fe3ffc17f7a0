"""
Audit serializers (read-only).
"""
from rest_framework import serializers

from apps.audit.models import AuditLog


class AuditLogSerializer(serializers.ModelSerializer):
    userId = serializers.UUIDField(source='user_id', read_only=True)
    entityType = serializers.CharField(source='entity_type', read_only=True)
    entityId = serializers.CharField(source='entity_id', read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'userId', 'action', 'entityType', 'entityId', 'ip', 'source', 'timestamp', 'metadata']
        read_only_fields = fields

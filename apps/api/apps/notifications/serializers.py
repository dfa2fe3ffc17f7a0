from rest_framework import serializers

from apps.notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    actionUrl = serializers.CharField(source='action_url', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Notification
        fields = ['id', 'type', 'title', 'message', 'priority', 'read', 'actionUrl', 'createdAt']
        read_only_fields = fields

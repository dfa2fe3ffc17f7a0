"""
Notification endpoints for the current user.
"""
from rest_framework.views import APIView

from apps.core.exceptions import NotFoundError
from apps.core.responses import entity_response, list_response, parse_pagination
from apps.notifications import services
from apps.notifications.models import Notification
from apps.notifications.serializers import NotificationSerializer


class NotificationListView(APIView):
    """GET /api/v1/notifications/?unread=true"""

    def get(self, request):
        queryset = Notification.objects.filter(user=request.user)
        if request.query_params.get('unread', 'false').lower() == 'true':
            queryset = queryset.filter(read=False)

        page, page_size = parse_pagination(request.query_params)
        total = queryset.count()
        rows = queryset[page * page_size:(page + 1) * page_size]
        return list_response(NotificationSerializer(rows, many=True).data, total, page, page_size, request)


class NotificationReadView(APIView):
    """POST /api/v1/notifications/{id}/read/"""

    def post(self, request, notification_id):
        if not services.mark_read(request.user.pk, notification_id):
            raise NotFoundError('Notification not found')
        return entity_response({'id': str(notification_id), 'read': True}, request)


class NotificationMarkAllReadView(APIView):
    """POST /api/v1/notifications/mark-all-read/"""

    def post(self, request):
        updated = services.mark_all_read(request.user.pk)
        return entity_response({'updated': updated}, request)

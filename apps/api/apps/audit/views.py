"""
Audit log browsing (admin only).
"""
from rest_framework.views import APIView

from apps.audit.models import AuditLog
from apps.audit.serializers import AuditLogSerializer
from apps.authz.permissions import IsAdmin
from apps.core.responses import list_response, parse_pagination


class AuditLogListView(APIView):
    """
    GET /api/v1/admin/audit-logs/

    Query parameters: entityType, entityId, action, userId, page, pageSize.
    """
    permission_classes = [IsAdmin]

    FILTERS = {
        'entityType': 'entity_type',
        'entityId': 'entity_id',
        'action': 'action',
        'userId': 'user_id',
    }

    def get(self, request):
        queryset = AuditLog.objects.all()
        for param, field in self.FILTERS.items():
            value = request.query_params.get(param)
            if value:
                queryset = queryset.filter(**{field: value})

        page, page_size = parse_pagination(request.query_params, default_size=50, max_size=200)
        total = queryset.count()
        rows = queryset.order_by('-timestamp')[page * page_size:(page + 1) * page_size]
        return list_response(AuditLogSerializer(rows, many=True).data, total, page, page_size, request)

"""
Connection endpoints.

Patient side:
- GET  /api/v1/patient/my-doctors/              own links
- POST /api/v1/patient/doctors/connect/         request a link
- POST /api/v1/patient/my-doctors/disconnect/   end a link

Provider side:
- GET   /api/v1/provider/connections/                    links addressed to me
- PATCH /api/v1/provider/connections/{id}/approve/       approve pending
- PATCH /api/v1/provider/connections/{id}/reject/        reject pending
"""
from rest_framework import status
from rest_framework.views import APIView

from apps.authz.permissions import IsPatient, IsProvider
from apps.authz.principal import Principal
from apps.connections import services
from apps.connections.models import LinkStatus, ProviderPatientLink
from apps.connections.serializers import (
    ConnectRequestSerializer,
    DisconnectRequestSerializer,
    ProviderPatientLinkSerializer,
)
from apps.core.responses import entity_response, list_response, parse_pagination


def _links_response(request, queryset):
    status_filter = request.query_params.get('status')
    if status_filter in LinkStatus.values:
        queryset = queryset.filter(status=status_filter)
    page, page_size = parse_pagination(request.query_params)
    total = queryset.count()
    rows = queryset.order_by('-created_at')[page * page_size:(page + 1) * page_size]
    return list_response(ProviderPatientLinkSerializer(rows, many=True).data, total, page, page_size, request)


class MyDoctorsView(APIView):
    permission_classes = [IsPatient]

    def get(self, request):
        queryset = ProviderPatientLink.objects.select_related('provider', 'patient').filter(
            patient=request.user
        )
        return _links_response(request, queryset)


class ConnectView(APIView):
    permission_classes = [IsPatient]

    def post(self, request):
        serializer = ConnectRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        link = services.request_connection(
            Principal.from_user(request.user),
            serializer.validated_data['doctorId'],
            serializer.validated_data['treatmentType'],
            message=serializer.validated_data.get('message', ''),
            request=request,
        )
        return entity_response(
            ProviderPatientLinkSerializer(link).data, request, status=status.HTTP_201_CREATED
        )


class DisconnectView(APIView):
    permission_classes = [IsPatient]

    def post(self, request):
        serializer = DisconnectRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        link = services.disconnect(
            Principal.from_user(request.user),
            serializer.validated_data['connectionId'],
            reason=serializer.validated_data.get('reason'),
            request=request,
        )
        return entity_response(ProviderPatientLinkSerializer(link).data, request)


class ProviderConnectionsView(APIView):
    permission_classes = [IsProvider]

    def get(self, request):
        queryset = ProviderPatientLink.objects.select_related('provider', 'patient').filter(
            provider=request.user
        )
        return _links_response(request, queryset)


class ProviderConnectionDecisionView(APIView):
    permission_classes = [IsProvider]
    decision = None  # 'approve' | 'reject'

    def patch(self, request, link_id):
        link = services.respond_to_connection(
            Principal.from_user(request.user),
            link_id,
            approve=self.decision == 'approve',
            request=request,
        )
        return entity_response(ProviderPatientLinkSerializer(link).data, request)

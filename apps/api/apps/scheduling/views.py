"""
Appointment endpoints.

- GET   /api/v1/appointments/                      own appointments (?status=a,b)
- POST  /api/v1/appointments/                      patient requests a slot
- PATCH /api/v1/appointments/{id}/accept/          provider confirms
- PATCH /api/v1/appointments/{id}/decline/         provider cancels, body {reason?}
- PATCH /api/v1/appointments/{id}/reschedule/      provider moves, body {date, duration?}
- POST  /api/v1/appointments/{id}/meeting/start/
- POST  /api/v1/appointments/{id}/meeting/end/
- POST  /api/v1/appointments/{id}/no-show/
"""
from rest_framework import status
from rest_framework.views import APIView

from apps.authz.permissions import IsProvider
from apps.authz.principal import Principal
from apps.core.responses import entity_response, list_response, parse_pagination
from apps.scheduling import services
from apps.scheduling.serializers import (
    AppointmentRequestSerializer,
    AppointmentSerializer,
    DeclineSerializer,
    RescheduleSerializer,
)


class AppointmentListCreateView(APIView):
    def get(self, request):
        raw_status = request.query_params.get('status')
        statuses = None
        if raw_status and raw_status != 'all':
            statuses = [s.strip() for s in raw_status.split(',') if s.strip()]

        queryset = services.list_appointments(Principal.from_user(request.user), statuses)
        page, page_size = parse_pagination(request.query_params)
        total = queryset.count()
        rows = queryset[page * page_size:(page + 1) * page_size]
        return list_response(AppointmentSerializer(rows, many=True).data, total, page, page_size, request)

    def post(self, request):
        serializer = AppointmentRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        appointment = services.request_appointment(
            Principal.from_user(request.user),
            data['providerId'],
            data['date'],
            duration=data['duration'],
            type=data['type'],
            title=data.get('title', ''),
            notes=data.get('notes', ''),
            request=request,
        )
        return entity_response(AppointmentSerializer(appointment).data, request, status=status.HTTP_201_CREATED)


class AppointmentAcceptView(APIView):
    permission_classes = [IsProvider]

    def patch(self, request, appointment_id):
        appointment = services.accept(Principal.from_user(request.user), appointment_id, request=request)
        return entity_response(AppointmentSerializer(appointment).data, request)


class AppointmentDeclineView(APIView):
    permission_classes = [IsProvider]

    def patch(self, request, appointment_id):
        serializer = DeclineSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        appointment = services.decline(
            Principal.from_user(request.user),
            appointment_id,
            reason=serializer.validated_data.get('reason'),
            request=request,
        )
        return entity_response(AppointmentSerializer(appointment).data, request)


class AppointmentRescheduleView(APIView):
    permission_classes = [IsProvider]

    def patch(self, request, appointment_id):
        serializer = RescheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        appointment = services.reschedule(
            Principal.from_user(request.user),
            appointment_id,
            serializer.validated_data['date'],
            duration=serializer.validated_data.get('duration'),
            request=request,
        )
        return entity_response(AppointmentSerializer(appointment).data, request)


class AppointmentActionView(APIView):
    """Body-less provider actions; `operation` picks the service function."""
    permission_classes = [IsProvider]
    operation = None  # 'start_meeting' | 'end_meeting' | 'mark_no_show'

    def post(self, request, appointment_id):
        handler = getattr(services, self.operation)
        appointment = handler(Principal.from_user(request.user), appointment_id, request=request)
        return entity_response(AppointmentSerializer(appointment).data, request)

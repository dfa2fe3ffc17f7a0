from django.urls import path

from .views import (
    AppointmentAcceptView,
    AppointmentActionView,
    AppointmentDeclineView,
    AppointmentListCreateView,
    AppointmentRescheduleView,
)

urlpatterns = [
    path('appointments/', AppointmentListCreateView.as_view(), name='appointment-list'),
    path('appointments/<uuid:appointment_id>/accept/', AppointmentAcceptView.as_view(), name='appointment-accept'),
    path('appointments/<uuid:appointment_id>/decline/', AppointmentDeclineView.as_view(), name='appointment-decline'),
    path(
        'appointments/<uuid:appointment_id>/reschedule/',
        AppointmentRescheduleView.as_view(),
        name='appointment-reschedule',
    ),
    path(
        'appointments/<uuid:appointment_id>/meeting/start/',
        AppointmentActionView.as_view(operation='start_meeting'),
        name='appointment-meeting-start',
    ),
    path(
        'appointments/<uuid:appointment_id>/meeting/end/',
        AppointmentActionView.as_view(operation='end_meeting'),
        name='appointment-meeting-end',
    ),
    path(
        'appointments/<uuid:appointment_id>/no-show/',
        AppointmentActionView.as_view(operation='mark_no_show'),
        name='appointment-no-show',
    ),
]

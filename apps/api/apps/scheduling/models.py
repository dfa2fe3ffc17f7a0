"""
Scheduling models: appointment.

Lifecycle:

    scheduled --accept--> confirmed --start--> in-progress --end--> completed
        |                     |  \\
        +----decline----------+   +--no-show (after start time)--> no-show
                 |
                 v
             cancelled

Rescheduling changes `date` only; status is preserved.
"""
import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models

from apps.core.exceptions import ValidationError


class AppointmentStatus(models.TextChoices):
    SCHEDULED = 'scheduled', 'Scheduled'
    CONFIRMED = 'confirmed', 'Confirmed'
    IN_PROGRESS = 'in-progress', 'In Progress'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'
    NO_SHOW = 'no-show', 'No Show'


class Appointment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='patient_appointments',
    )
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='provider_appointments',
    )
    title = models.CharField(max_length=200, blank=True)
    date = models.DateTimeField(help_text='Start of the appointment')
    duration = models.PositiveIntegerField(default=30, help_text='Minutes')
    status = models.CharField(
        max_length=16,
        choices=AppointmentStatus.choices,
        default=AppointmentStatus.SCHEDULED,
    )
    type = models.CharField(max_length=64, default='consultation')
    notes = models.TextField(blank=True)

    meeting_link = models.CharField(max_length=500, blank=True)
    meeting_start_at = models.DateTimeField(blank=True, null=True)
    meeting_end_at = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'appointment'
        ordering = ['-date']
        indexes = [
            models.Index(fields=['provider', 'date'], name='idx_appointment_provider_date'),
            models.Index(fields=['patient'], name='idx_appointment_patient'),
            models.Index(fields=['status'], name='idx_appointment_status'),
        ]

    # BUSINESS RULE: Allowed status transitions
    _ALLOWED_TRANSITIONS = {
        AppointmentStatus.SCHEDULED: [AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED],
        AppointmentStatus.CONFIRMED: [
            AppointmentStatus.IN_PROGRESS,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        ],
        AppointmentStatus.IN_PROGRESS: [AppointmentStatus.COMPLETED],
        AppointmentStatus.COMPLETED: [],  # Terminal state
        AppointmentStatus.CANCELLED: [],  # Terminal state
        AppointmentStatus.NO_SHOW: [],    # Terminal state
    }

    # BUSINESS RULE: Active statuses that block provider availability
    _ACTIVE_STATUSES = [
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.IN_PROGRESS,
    ]

    def __str__(self):
        return f'Appointment {self.date:%Y-%m-%d %H:%M} ({self.status})'

    @property
    def end_at(self):
        return self.date + timedelta(minutes=self.duration)

    def transition_status(self, new_status):
        """
        Move to `new_status` in memory; the caller saves.

        Raises:
            ValidationError: terminal state, transition not in
                _ALLOWED_TRANSITIONS, or no-show before the start time
        """
        from django.utils import timezone

        allowed = self._ALLOWED_TRANSITIONS.get(self.status, [])
        if not allowed:
            raise ValidationError(
                f'Appointment is {self.status} and can no longer change status'
            )
        if new_status not in allowed:
            raise ValidationError(
                f'Cannot move appointment from {self.status} to {new_status}',
                allowedTransitions=[str(s) for s in allowed],
            )

        # RULE: no-show only after the start time
        if new_status == AppointmentStatus.NO_SHOW and self.date > timezone.now():
            raise ValidationError('Cannot mark no-show before the appointment start time')

        previous_status = self.status
        self.status = new_status
        return previous_status

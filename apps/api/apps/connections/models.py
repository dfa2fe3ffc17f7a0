"""
Provider <-> patient relationship records.

BUSINESS RULE: clinical data of a patient is visible to a provider only
through an approved link. Lifecycle:

    pending --(provider approves)--> approved --(patient disconnects)--> disconnected
       \\--(provider rejects)--> rejected
"""
import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models


class LinkStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'
    DISCONNECTED = 'disconnected', 'Disconnected'


class ProviderPatientLink(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='patient_links',
    )
    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='provider_links',
    )
    treatment_type = models.CharField(max_length=64, help_text='e.g. smoking_cessation, general')
    status = models.CharField(max_length=16, choices=LinkStatus.choices, default=LinkStatus.PENDING)
    request_message = models.TextField(blank=True)

    outstanding_balance = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    can_disconnect = models.BooleanField(default=True)

    approved_at = models.DateTimeField(blank=True, null=True)
    disconnected_at = models.DateTimeField(blank=True, null=True)
    disconnect_reason = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Statuses that count as an existing relationship for duplicate requests
    _OPEN_STATUSES = [LinkStatus.PENDING, LinkStatus.APPROVED]

    class Meta:
        db_table = 'provider_patient_link'
        verbose_name = 'Provider-Patient Link'
        verbose_name_plural = 'Provider-Patient Links'
        constraints = [
            # At most one open link per (provider, patient, treatment type)
            models.UniqueConstraint(
                fields=['provider', 'patient', 'treatment_type'],
                condition=models.Q(status__in=['pending', 'approved']),
                name='uniq_open_link_per_treatment',
            ),
        ]
        indexes = [
            models.Index(fields=['provider', 'patient', 'status'], name='idx_link_pair_status'),
        ]

    def __str__(self):
        return f'{self.provider_id} -> {self.patient_id} ({self.treatment_type}, {self.status})'

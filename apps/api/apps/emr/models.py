"""
EMR models: encounter, progress_note, prescription.

Progress note lifecycle:

    draft --finalize--> finalized --amend--> amended
                                      \\
                                       +--> new draft (amended_from = original)

BUSINESS RULES:
- Clinical fields (SOAP + summary) are editable only while status=draft
- A finalized note is never edited in place; amendment creates a new draft
- An amended note is historical and can never be finalized
"""
import uuid

from django.conf import settings
from django.db import models


# ============================================================================
# Encounter
# ============================================================================

class EncounterMode(models.TextChoices):
    IN_PERSON = 'in_person', 'In Person'
    TELEMEDICINE = 'telemedicine', 'Telemedicine'
    PHONE = 'phone', 'Phone'
    MESSAGING = 'messaging', 'Messaging'


class EncounterStatus(models.TextChoices):
    SCHEDULED = 'scheduled', 'Scheduled'
    IN_PROGRESS = 'in_progress', 'In Progress'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class Encounter(models.Model):
    """
    One clinical visit between a provider and a patient.

    Opened when a provider starts a consultation, closed (end_time set)
    when the visit ends.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='patient_encounters',
    )
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='provider_encounters',
    )
    appointment = models.ForeignKey(
        'scheduling.Appointment',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='encounters',
    )
    type = models.CharField(max_length=64, default='consultation')
    mode = models.CharField(max_length=16, choices=EncounterMode.choices, default=EncounterMode.TELEMEDICINE)
    status = models.CharField(max_length=16, choices=EncounterStatus.choices, default=EncounterStatus.IN_PROGRESS)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField(blank=True, null=True)
    location = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    _OPEN_STATUSES = [EncounterStatus.SCHEDULED, EncounterStatus.IN_PROGRESS]

    class Meta:
        db_table = 'encounter'
        ordering = ['-start_time']
        indexes = [
            models.Index(fields=['patient', 'start_time'], name='idx_encounter_patient_start'),
            models.Index(fields=['provider'], name='idx_encounter_provider'),
        ]

    def __str__(self):
        return f'Encounter {self.start_time:%Y-%m-%d} ({self.status})'

    @property
    def is_open(self):
        return self.status in self._OPEN_STATUSES


# ============================================================================
# Progress Note
# ============================================================================

class NoteStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    FINALIZED = 'finalized', 'Finalized'
    AMENDED = 'amended', 'Amended'


class ProgressNote(models.Model):
    """
    SOAP-structured clinical note.

    Owned by its author until finalized. `row_version` is bumped on every
    draft update; writers may send the version they read to detect lost
    updates.
    """
    CLINICAL_FIELDS = ('subjective', 'objective', 'assessment', 'plan', 'summary')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    encounter = models.ForeignKey(
        Encounter,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='progress_notes',
    )
    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='patient_progress_notes',
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='authored_progress_notes',
    )
    cosigners = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name='cosigned_progress_notes',
    )
    status = models.CharField(max_length=16, choices=NoteStatus.choices, default=NoteStatus.DRAFT)

    subjective = models.TextField(blank=True)
    objective = models.TextField(blank=True)
    assessment = models.TextField(blank=True)
    plan = models.TextField(blank=True)
    summary = models.TextField(blank=True)
    attachments = models.JSONField(default=list, blank=True)

    autosaved_at = models.DateTimeField(blank=True, null=True)
    finalized_at = models.DateTimeField(blank=True, null=True)
    signature_hash = models.CharField(max_length=256, blank=True, null=True)

    amended_from = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='amendments',
    )
    amendment_reason = models.TextField(blank=True)

    row_version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'progress_note'
        ordering = ['-updated_at']
        indexes = [
            models.Index(fields=['patient', 'updated_at'], name='idx_note_patient_updated'),
            models.Index(fields=['encounter'], name='idx_note_encounter'),
            models.Index(fields=['author'], name='idx_note_author'),
            models.Index(fields=['status'], name='idx_note_status'),
        ]

    def __str__(self):
        return f'ProgressNote {str(self.id)[:8]} ({self.status})'

    @property
    def is_editable(self):
        return self.status == NoteStatus.DRAFT

    def clinical_snapshot(self):
        """Clinical content as a dict (immutability checks, amendment copies)."""
        return {field: getattr(self, field) for field in self.CLINICAL_FIELDS}


# ============================================================================
# Prescription
# ============================================================================

class PrescriptionStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    ACTIVE = 'active', 'Active'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'
    EXPIRED = 'expired', 'Expired'


class Prescription(models.Model):
    """
    Medication order written by a provider for a linked patient.

    Lifecycle:

        draft --> active --> completed
          |         |---> expired   (end_date passed, batch job)
          +---------+---> cancelled (with reason, via cancel only)
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='patient_prescriptions',
    )
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='provider_prescriptions',
    )
    appointment = models.ForeignKey(
        'scheduling.Appointment',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='prescriptions',
    )

    medication_name = models.CharField(max_length=200)
    dosage = models.CharField(max_length=32)
    frequency = models.CharField(max_length=100)
    duration = models.CharField(max_length=100)
    quantity = models.PositiveIntegerField()
    refills = models.PositiveSmallIntegerField(default=0)
    instructions = models.TextField()
    status = models.CharField(max_length=16, choices=PrescriptionStatus.choices, default=PrescriptionStatus.DRAFT)

    prescribed_date = models.DateTimeField()
    start_date = models.DateTimeField()
    end_date = models.DateTimeField(blank=True, null=True)
    pharmacy = models.CharField(max_length=200, blank=True)
    pharmacy_phone = models.CharField(max_length=32, blank=True)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # BUSINESS RULE: cancellation is not listed; it goes through the cancel
    # flow so a reason is always recorded
    _ALLOWED_TRANSITIONS = {
        PrescriptionStatus.DRAFT: [PrescriptionStatus.ACTIVE],
        PrescriptionStatus.ACTIVE: [PrescriptionStatus.COMPLETED, PrescriptionStatus.EXPIRED],
        PrescriptionStatus.COMPLETED: [],  # Terminal state
        PrescriptionStatus.CANCELLED: [],  # Terminal state
        PrescriptionStatus.EXPIRED: [],    # Terminal state
    }

    class Meta:
        db_table = 'prescription'
        ordering = ['-prescribed_date']
        indexes = [
            models.Index(fields=['patient'], name='idx_prescription_patient'),
            models.Index(fields=['provider'], name='idx_prescription_provider'),
            models.Index(fields=['status', 'end_date'], name='idx_prescription_expiry'),
        ]

    def __str__(self):
        return f'{self.medication_name} {self.dosage} ({self.status})'

    @property
    def is_terminal(self):
        return not self._ALLOWED_TRANSITIONS.get(self.status)

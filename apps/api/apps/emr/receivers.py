"""
EMR signal receivers.
"""
from django.dispatch import receiver

from apps.emr.signals import note_finalized
from apps.notifications.models import NotificationType
from apps.notifications.services import create_notification


@receiver(note_finalized)
def notify_patient_on_finalize(sender, note_id, patient_id, **kwargs):
    """
    Tell the patient a signed note is available.

    note_finalized is only sent after commit, so the notification row is
    written directly instead of being deferred again.
    """
    create_notification(
        patient_id,
        NotificationType.NOTE,
        'New Clinical Note',
        'Your provider has finalized a clinical note for your record.',
        action_url=f'/patient/notes/{note_id}',
    )

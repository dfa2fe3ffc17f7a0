"""
EMR domain signals.
"""
from django.dispatch import Signal

# Sent after a progress note finalize commits (fire-and-forget, send_robust).
# Payload (identifiers only, NO clinical text):
#   - note_id, encounter_id (or None), patient_id, author_id: UUID strings
#   - finalized_at: ISO-8601 timestamp
#   - signature_hash: the stored signature hash
note_finalized = Signal()

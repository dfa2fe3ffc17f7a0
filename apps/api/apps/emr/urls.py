from django.urls import path

from .views import (
    EncounterCloseView,
    MyNotesView,
    MyPrescriptionsView,
    NoteAmendView,
    NoteDetailView,
    NoteFinalizeView,
    PatientEncountersView,
    PatientNoteFinalizeView,
    PatientNotesView,
    PatientPrescriptionsView,
    PrescriptionDetailView,
    PrescriptionExpireJobView,
)

urlpatterns = [
    path('provider/patients/<uuid:patient_id>/emr/notes/', PatientNotesView.as_view(), name='patient-notes'),
    path(
        'provider/patients/<uuid:patient_id>/emr/notes/finalize/',
        PatientNoteFinalizeView.as_view(),
        name='patient-note-finalize',
    ),
    path(
        'provider/patients/<uuid:patient_id>/emr/encounters/',
        PatientEncountersView.as_view(),
        name='patient-encounters',
    ),
    path(
        'provider/patients/<uuid:patient_id>/emr/prescriptions/',
        PatientPrescriptionsView.as_view(),
        name='patient-prescriptions',
    ),
    path('encounters/<uuid:encounter_id>/close/', EncounterCloseView.as_view(), name='encounter-close'),
    path('progress-notes/finalize/', NoteFinalizeView.as_view(), name='note-finalize'),
    path('progress-notes/amend/', NoteAmendView.as_view(), name='note-amend'),
    path('progress-notes/<uuid:note_id>/', NoteDetailView.as_view(), name='note-detail'),
    path('prescriptions/<uuid:prescription_id>/', PrescriptionDetailView.as_view(), name='prescription-detail'),
    path('jobs/prescriptions/expire/', PrescriptionExpireJobView.as_view(), name='prescription-expire-job'),
    path('patient/notes/', MyNotesView.as_view(), name='my-notes'),
    path('patient/prescriptions/', MyPrescriptionsView.as_view(), name='my-prescriptions'),
]

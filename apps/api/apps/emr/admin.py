from django.contrib import admin

from .models import Encounter, Prescription, ProgressNote


@admin.register(Encounter)
class EncounterAdmin(admin.ModelAdmin):
    list_display = ['start_time', 'patient', 'provider', 'mode', 'status']
    list_filter = ['status', 'mode']
    search_fields = ['patient__email', 'provider__email']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(ProgressNote)
class ProgressNoteAdmin(admin.ModelAdmin):
    """Read-only: notes change only through the finalize/amend flow."""
    list_display = ['id', 'patient', 'author', 'status', 'finalized_at', 'updated_at']
    list_filter = ['status']
    search_fields = ['patient__email', 'author__email']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ['medication_name', 'dosage', 'patient', 'provider', 'status', 'prescribed_date']
    list_filter = ['status']
    search_fields = ['medication_name', 'patient__email', 'provider__email']
    readonly_fields = ['id', 'created_at', 'updated_at']

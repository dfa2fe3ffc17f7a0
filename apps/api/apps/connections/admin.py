from django.contrib import admin

from .models import ProviderPatientLink


@admin.register(ProviderPatientLink)
class ProviderPatientLinkAdmin(admin.ModelAdmin):
    list_display = ['provider', 'patient', 'treatment_type', 'status', 'outstanding_balance', 'can_disconnect', 'created_at']
    list_filter = ['status', 'treatment_type', 'can_disconnect']
    search_fields = ['provider__email', 'patient__email']
    readonly_fields = ['id', 'created_at', 'updated_at', 'approved_at', 'disconnected_at']

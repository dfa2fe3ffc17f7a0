from django.contrib import admin

from .models import Appointment


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ['date', 'patient', 'provider', 'duration', 'status', 'type']
    list_filter = ['status', 'type']
    search_fields = ['patient__email', 'provider__email', 'title']
    date_hierarchy = 'date'
    readonly_fields = ['id', 'created_at', 'updated_at', 'meeting_start_at', 'meeting_end_at']

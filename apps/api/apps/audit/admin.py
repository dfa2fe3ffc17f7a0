from django.contrib import admin

from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['timestamp', 'action', 'entity_type', 'entity_id', 'user', 'source']
    list_filter = ['action', 'entity_type', 'source']
    search_fields = ['entity_id', 'user__email']
    readonly_fields = ['id', 'user', 'action', 'entity_type', 'entity_id', 'ip', 'source', 'timestamp', 'metadata']

    # Append-only: no edits or deletes from the admin site
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

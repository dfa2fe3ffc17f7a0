from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'user', 'type', 'title', 'priority', 'read']
    list_filter = ['type', 'priority', 'read']
    search_fields = ['user__email', 'title']
    readonly_fields = ['id', 'created_at']

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['email', 'first_name', 'last_name', 'is_admin', 'is_clerk', 'is_provider', 'provider_approval_status', 'is_active', 'created_at']
    list_filter = ['is_admin', 'is_clerk', 'is_provider', 'provider_approval_status', 'is_active']
    search_fields = ['email', 'first_name', 'last_name', 'license_number']
    readonly_fields = ['id', 'created_at', 'updated_at', 'last_login']

    fieldsets = (
        (None, {'fields': ('id', 'email', 'password')}),
        ('Personal Info', {'fields': ('first_name', 'last_name', 'phone')}),
        ('Roles', {'fields': ('is_admin', 'is_clerk', 'is_provider', 'provider_approval_status', 'license_number', 'specialty')}),
        ('Django Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Important dates', {'fields': ('last_login', 'created_at', 'updated_at')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'password1', 'password2', 'first_name', 'last_name', 'is_provider'),
        }),
    )

    ordering = ['email']

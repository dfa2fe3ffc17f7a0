"""
Authz URLs - registration, profile, user administration.
"""
from django.urls import path

from .views import (
    AdminUserListView,
    MeView,
    ProviderApprovalView,
    RegisterView,
    RoleChangeView,
)

auth_urlpatterns = [
    path('auth/register/', RegisterView.as_view(), name='register'),
    path('auth/me/', MeView.as_view(), name='me'),
]

urlpatterns = [
    path('admin/users/', AdminUserListView.as_view(), name='admin-user-list'),
    path('admin/users/<uuid:user_id>/provider-approval/', ProviderApprovalView.as_view(), name='admin-provider-approval'),
    path('admin/users/<uuid:user_id>/role/', RoleChangeView.as_view(), name='admin-user-role'),
]

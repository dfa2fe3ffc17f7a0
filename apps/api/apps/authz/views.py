"""
Authz views: registration, own profile, admin user management.
"""
from django.db.models import Q
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.authz import services
from apps.authz.models import User
from apps.authz.permissions import IsAdmin
from apps.authz.principal import Principal
from apps.authz.serializers import (
    ProviderApprovalSerializer,
    RegisterSerializer,
    RoleChangeSerializer,
    UserSerializer,
)
from apps.core.observability.events import log_domain_event
from apps.core.responses import entity_response, list_response, parse_pagination


class RegisterView(APIView):
    """POST /api/auth/register/ - create a patient or (pending) provider account."""
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'registration'

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        log_domain_event(
            'user_registered',
            entity_type='User',
            entity_id=str(user.pk),
            is_provider=user.is_provider,
        )
        return entity_response(UserSerializer(user).data, request, status=status.HTTP_201_CREATED)


class MeView(APIView):
    """GET /api/auth/me/ - the caller's profile and role flags."""

    def get(self, request):
        data = UserSerializer(request.user).data
        data['role'] = Principal.from_user(request.user).role_label
        return entity_response(data, request)


class AdminUserListView(APIView):
    """
    GET /api/v1/admin/users/

    Query parameters:
    - ?q=search_term - email / name search
    - ?providerStatus=pending|reviewing|approved|rejected - providers by approval status
    """
    permission_classes = [IsAdmin]

    def get(self, request):
        queryset = User.objects.all().order_by('-created_at')
        q = request.query_params.get('q')
        if q:
            queryset = queryset.filter(
                Q(email__icontains=q) | Q(first_name__icontains=q) | Q(last_name__icontains=q)
            )
        provider_status = request.query_params.get('providerStatus')
        if provider_status:
            queryset = queryset.filter(is_provider=True, provider_approval_status=provider_status)

        page, page_size = parse_pagination(request.query_params, default_size=50)
        total = queryset.count()
        rows = queryset[page * page_size:(page + 1) * page_size]
        return list_response(UserSerializer(rows, many=True).data, total, page, page_size, request)


class ProviderApprovalView(APIView):
    """PATCH /api/v1/admin/users/{id}/provider-approval/  {action, licenseNumber?}"""
    permission_classes = [IsAdmin]

    def patch(self, request, user_id):
        serializer = ProviderApprovalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.set_provider_approval(
            Principal.from_user(request.user),
            user_id,
            serializer.validated_data['action'],
            license_number=serializer.validated_data.get('licenseNumber'),
            request=request,
        )
        return entity_response(UserSerializer(user).data, request)


class RoleChangeView(APIView):
    """PATCH /api/v1/admin/users/{id}/role/  {role, value, confirmPassword?}"""
    permission_classes = [IsAdmin]

    def patch(self, request, user_id):
        serializer = RoleChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.change_role(
            Principal.from_user(request.user),
            user_id,
            serializer.validated_data['role'],
            serializer.validated_data['value'],
            confirm_password=serializer.validated_data.get('confirmPassword'),
            acting_user=request.user,
            request=request,
        )
        return entity_response(UserSerializer(user).data, request)

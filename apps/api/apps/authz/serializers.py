"""
Authz serializers: registration, profile, admin role management.
"""
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from apps.authz.models import User, ProviderApprovalStatus


class UserSerializer(serializers.ModelSerializer):
    """Public view of a user (own profile, admin listings)."""
    isAdmin = serializers.BooleanField(source='is_admin', read_only=True)
    isClerk = serializers.BooleanField(source='is_clerk', read_only=True)
    isProvider = serializers.BooleanField(source='is_provider', read_only=True)
    providerApprovalStatus = serializers.CharField(source='provider_approval_status', read_only=True)
    licenseNumber = serializers.CharField(source='license_number', read_only=True)
    firstName = serializers.CharField(source='first_name', read_only=True)
    lastName = serializers.CharField(source='last_name', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'firstName',
            'lastName',
            'isAdmin',
            'isClerk',
            'isProvider',
            'providerApprovalStatus',
            'licenseNumber',
            'specialty',
            'createdAt',
        ]
        read_only_fields = fields


class RegisterSerializer(serializers.Serializer):
    """
    Open registration.

    BUSINESS RULE: anyone may register as patient or provider; providers
    start in 'pending' and cannot write clinical data until an admin
    approves them. Admin and clerk flags are never self-assigned.
    """
    ROLE_PATIENT = 'patient'
    ROLE_PROVIDER = 'provider'

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    firstName = serializers.CharField(required=False, allow_blank=True, max_length=150)
    lastName = serializers.CharField(required=False, allow_blank=True, max_length=150)
    role = serializers.ChoiceField(choices=[ROLE_PATIENT, ROLE_PROVIDER], default=ROLE_PATIENT)
    licenseNumber = serializers.CharField(required=False, allow_blank=True, max_length=64)
    specialty = serializers.CharField(required=False, allow_blank=True, max_length=120)

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('An account with this email already exists')
        return value.lower()

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        is_provider = validated_data['role'] == self.ROLE_PROVIDER
        return User.objects.create_user(
            email=validated_data['email'],
            password=validated_data['password'],
            first_name=validated_data.get('firstName', ''),
            last_name=validated_data.get('lastName', ''),
            is_provider=is_provider,
            provider_approval_status=ProviderApprovalStatus.PENDING,
            license_number=validated_data.get('licenseNumber', '') if is_provider else '',
            specialty=validated_data.get('specialty', '') if is_provider else '',
        )


class ProviderApprovalSerializer(serializers.Serializer):
    ACTION_APPROVE = 'approve'
    ACTION_REJECT = 'reject'

    action = serializers.ChoiceField(choices=[ACTION_APPROVE, ACTION_REJECT])
    licenseNumber = serializers.CharField(required=False, allow_blank=True, max_length=64)
    note = serializers.CharField(required=False, allow_blank=True, max_length=500)


class RoleChangeSerializer(serializers.Serializer):
    ROLE_FIELDS = {
        'isAdmin': 'is_admin',
        'isClerk': 'is_clerk',
        'isProvider': 'is_provider',
    }

    role = serializers.ChoiceField(choices=list(ROLE_FIELDS))
    value = serializers.BooleanField()
    confirmPassword = serializers.CharField(required=False, allow_blank=True, write_only=True)

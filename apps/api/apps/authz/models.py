"""
Authz models: auth_user with non-exclusive role flags.

A user may hold several flags at once (an admin who is also a provider).
A user holding none of them is a patient.
"""
import uuid
from django.db import models
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin


# ============================================================================
# Enums
# ============================================================================

class ProviderApprovalStatus(models.TextChoices):
    """
    Provider vetting status.

    BUSINESS RULE: pending -> reviewing -> approved|rejected moves forward
    only; going back is an explicit admin override.
    """
    PENDING = 'pending', 'Pending'
    REVIEWING = 'reviewing', 'Reviewing'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'


# ============================================================================
# User Management
# ============================================================================

class UserManager(BaseUserManager):
    """Custom user manager for email-based authentication."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email is required')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('is_admin', True)
        return self.create_user(email, password, **extra_fields)

    def providers(self):
        return self.filter(is_provider=True, is_active=True)

    def approved_providers(self):
        return self.providers().filter(provider_approval_status=ProviderApprovalStatus.APPROVED)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Platform user (patient, provider, clerk, admin).

    Role flags:
    - is_admin: platform administration, every clinical capability
    - is_clerk: read-only clinical access
    - is_provider: clinical staff; write access once provider_approval_status=approved

    Flags are mutated only through the admin role endpoint.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True, max_length=255)
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    phone = models.CharField(max_length=32, blank=True)

    is_admin = models.BooleanField(default=False)
    is_clerk = models.BooleanField(default=False)
    is_provider = models.BooleanField(default=False)
    provider_approval_status = models.CharField(
        max_length=16,
        choices=ProviderApprovalStatus.choices,
        default=ProviderApprovalStatus.PENDING,
        help_text='Only meaningful while is_provider is set'
    )
    license_number = models.CharField(max_length=64, blank=True)
    specialty = models.CharField(max_length=120, blank=True)

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)  # Django admin site access
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        db_table = 'auth_user'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        indexes = [
            models.Index(fields=['email'], name='idx_user_email'),
            models.Index(fields=['is_provider', 'provider_approval_status'], name='idx_user_provider_status'),
        ]

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'.strip() or self.email

    @property
    def is_patient(self):
        return not (self.is_admin or self.is_clerk or self.is_provider)

    @property
    def is_approved_provider(self):
        return self.is_provider and self.provider_approval_status == ProviderApprovalStatus.APPROVED

"""
Management command to seed one demo user per role.

Usage:
    python manage.py seed_demo_users
    python manage.py seed_demo_users --password secret123

This command is idempotent and safe to run multiple times.
Creates demo users if they don't exist, resets their role flags, and links
the demo provider with the demo patient.
"""
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from apps.authz.models import ProviderApprovalStatus
from apps.connections.models import LinkStatus, ProviderPatientLink

DEMO_USERS = [
    {
        'email': 'admin@example.com',
        'first_name': 'Admin',
        'last_name': 'User',
        'is_admin': True,
        'is_staff': True,
    },
    {
        'email': 'doctor@example.com',
        'first_name': 'Demo',
        'last_name': 'Doctor',
        'is_provider': True,
        'provider_approval_status': ProviderApprovalStatus.APPROVED,
        'license_number': 'MMC-00001',
        'specialty': 'General Practice',
    },
    {
        'email': 'pending.doctor@example.com',
        'first_name': 'Pending',
        'last_name': 'Doctor',
        'is_provider': True,
        'provider_approval_status': ProviderApprovalStatus.PENDING,
    },
    {
        'email': 'clerk@example.com',
        'first_name': 'Front',
        'last_name': 'Desk',
        'is_clerk': True,
    },
    {
        'email': 'patient@example.com',
        'first_name': 'Demo',
        'last_name': 'Patient',
    },
]

ROLE_FLAGS = ('is_admin', 'is_clerk', 'is_provider', 'is_staff')


class Command(BaseCommand):
    help = 'Ensure demo users exist for every role, plus an approved provider-patient link'

    def add_arguments(self, parser):
        parser.add_argument(
            '--password',
            default='demo12345',
            help='Password set on every demo user (default: demo12345)',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        User = get_user_model()
        users = {}

        self.stdout.write('Ensuring demo users exist with correct roles...')
        for spec in DEMO_USERS:
            data = dict(spec)
            email = data.pop('email')
            for flag in ROLE_FLAGS:
                data.setdefault(flag, False)

            user, created = User.objects.get_or_create(email=email, defaults=data)
            if not created:
                for field, value in data.items():
                    setattr(user, field, value)
            user.set_password(options['password'])
            user.save()
            users[email] = user

            label = 'Created' if created else 'Updated'
            self.stdout.write(self.style.SUCCESS(f'  {label} user: {email}'))

        provider = users['doctor@example.com']
        patient = users['patient@example.com']
        link, created = ProviderPatientLink.objects.get_or_create(
            provider=provider,
            patient=patient,
            treatment_type='general',
            status=LinkStatus.APPROVED,
            defaults={'approved_at': timezone.now()},
        )
        if created:
            self.stdout.write(self.style.SUCCESS(f'  Linked {provider.email} <-> {patient.email}'))
        else:
            self.stdout.write(f'  - Link exists: {provider.email} <-> {patient.email}')

        self.stdout.write(self.style.SUCCESS('Done'))

"""
Delete audit log rows older than the retention window.

Usage:
    python manage.py prune_audit_logs            # AUDIT_RETENTION_DAYS (default 365)
    python manage.py prune_audit_logs --days 90
"""
from django.core.management.base import BaseCommand, CommandError

from apps.audit.services import prune_old_audit_logs


class Command(BaseCommand):
    help = 'Prune audit log rows older than the retention window'

    def add_arguments(self, parser):
        parser.add_argument('--days', type=int, default=None, help='Retention window in days')

    def handle(self, *args, **options):
        days = options['days']
        if days is not None and days < 0:
            raise CommandError('--days must be >= 0')
        deleted = prune_old_audit_logs(days)
        self.stdout.write(self.style.SUCCESS(f'Pruned {deleted} audit log rows'))

"""
Health check endpoints.

Provides /healthz and /readyz endpoints for monitoring.
"""
import logging

from django.conf import settings
from django.db import connection
from django.db.migrations.executor import MigrationExecutor
from django.http import JsonResponse
from django.views import View

logger = logging.getLogger(__name__)


class HealthzView(View):
    """
    Liveness: 200 while the process is up. No dependency checks.
    """

    def get(self, request):
        health_data = {
            'status': 'ok',
            'version': getattr(settings, 'VERSION', 'unknown'),
        }

        commit_hash = getattr(settings, 'COMMIT_HASH', None)
        if commit_hash:
            health_data['commit'] = commit_hash

        return JsonResponse(health_data, status=200)


class ReadyzView(View):
    """
    Readiness: database reachable and no unapplied migrations.
    """

    def get(self, request):
        checks = {
            'database': self._check_database(),
        }
        checks['migrations'] = checks['database'] and self._check_migrations()

        all_healthy = all(checks.values())

        response_data = {
            'status': 'ready' if all_healthy else 'not_ready',
            'checks': checks,
        }

        return JsonResponse(response_data, status=200 if all_healthy else 503)

    def _check_database(self):
        try:
            with connection.cursor() as cursor:
                cursor.execute('SELECT 1')
                return True
        except Exception as e:
            logger.error(
                'Database health check failed',
                extra={
                    'event': 'health_check_failed',
                    'check': 'database',
                    'error_type': e.__class__.__name__,
                }
            )
            return False

    def _check_migrations(self):
        executor = MigrationExecutor(connection)
        plan = executor.migration_plan(executor.loader.graph.leaf_nodes())
        if plan:
            logger.warning(
                'Unapplied migrations detected',
                extra={'event': 'health_check_failed', 'check': 'migrations', 'pending': len(plan)}
            )
        return not plan

"""
Metrics instrumentation on prometheus_client.
"""
from prometheus_client import Counter, Histogram


class MetricsRegistry:
    """
    Central metrics registry for the telehealth API.

    Provides typed access to all application metrics.
    """

    def __init__(self):
        self._setup_metrics()

    def _create_counter(self, name, description, labels=None):
        return Counter(name, description, labels or [])

    def _create_histogram(self, name, description, labels=None, buckets=None):
        if buckets:
            return Histogram(name, description, labels or [], buckets=buckets)
        return Histogram(name, description, labels or [])

    def _setup_metrics(self):
        """Setup all application metrics."""

        # ===================================================================
        # HTTP Metrics
        # ===================================================================
        self.http_requests_total = self._create_counter(
            'telehealth_http_requests_total',
            'Total HTTP requests',
            ['method', 'status']
        )

        self.http_request_duration_seconds = self._create_histogram(
            'telehealth_http_request_duration_seconds',
            'HTTP request duration in seconds',
            ['method'],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
        )

        self.exceptions_total = self._create_counter(
            'telehealth_exceptions_total',
            'Unhandled exceptions converted to 500',
            ['exception_type', 'location']
        )

        self.permission_denials_total = self._create_counter(
            'telehealth_permission_denials_total',
            'Requests rejected by permission or relationship checks',
            ['reason']
        )

        self.post_commit_hook_failures_total = self._create_counter(
            'telehealth_post_commit_hook_failures_total',
            'Post-commit side effects that raised',
            ['hook']
        )

        # ===================================================================
        # Clinical Metrics
        # ===================================================================
        self.note_transitions_total = self._create_counter(
            'telehealth_note_transitions_total',
            'Progress note status transitions',
            ['from_status', 'to_status', 'result']
        )

        self.audit_writes_total = self._create_counter(
            'telehealth_audit_writes_total',
            'Audit log writes',
            ['result']  # success|failure
        )

        self.audit_pruned_total = self._create_counter(
            'telehealth_audit_pruned_total',
            'Audit log rows removed by retention prune'
        )

        # ===================================================================
        # Scheduling Metrics
        # ===================================================================
        self.appointment_transitions_total = self._create_counter(
            'telehealth_appointment_transitions_total',
            'Appointment status changes',
            ['to_status']
        )


# Global metrics instance
metrics = MetricsRegistry()

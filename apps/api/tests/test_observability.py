"""
Tests for the observability layer.

Request correlation, PHI redaction in logs and the post-commit hook
failure path.
"""
from unittest.mock import Mock

import pytest
from django.http import HttpResponse

from apps.core.hooks import after_commit
from apps.core.observability.correlation import (
    RequestCorrelationMiddleware,
    clear_request_context,
    get_request_id,
)
from apps.core.observability.logging import sanitize_dict
from apps.core.observability.metrics import metrics


class TestRequestCorrelation:
    def setup_method(self):
        clear_request_context()

    def test_generates_request_id_if_missing(self):
        middleware = RequestCorrelationMiddleware(lambda r: Mock(status_code=200))
        request = Mock(META={}, path='/api/v1/appointments/', method='GET')
        request.user = Mock(is_authenticated=False)

        middleware.process_request(request)

        assert request.request_id
        assert get_request_id() == request.request_id

    def test_prefers_request_id_over_correlation_id(self):
        middleware = RequestCorrelationMiddleware(lambda r: Mock(status_code=200))
        request = Mock(
            META={'HTTP_X_REQUEST_ID': 'req-1', 'HTTP_X_CORRELATION_ID': 'corr-1'},
            path='/api/v1/appointments/',
            method='GET',
        )
        request.user = Mock(is_authenticated=False)

        middleware.process_request(request)

        assert request.request_id == 'req-1'

    def test_response_gets_request_id_and_no_store(self):
        middleware = RequestCorrelationMiddleware(lambda r: Mock(status_code=200))
        request = Mock(META={}, path='/healthz', method='GET', request_id='req-9')
        request.user = Mock(is_authenticated=False)
        del request.start_time

        response = middleware.process_response(request, HttpResponse())

        assert response['X-Request-ID'] == 'req-9'
        assert response['Cache-Control'] == 'no-store'
        assert get_request_id() is None


class TestSanitization:
    def test_clinical_text_and_contact_data_are_redacted(self):
        data = {
            'note_id': 'n-1',
            'subjective': 'Reports chest pain',
            'plan': 'ECG',
            'email': 'paula@test.com',
            'signatureHash': 'sha256:abc',
            'status': 'finalized',
        }

        sanitized = sanitize_dict(data)

        assert sanitized['note_id'] == 'n-1'
        assert sanitized['status'] == 'finalized'
        assert sanitized['subjective'] == '[REDACTED]'
        assert sanitized['plan'] == '[REDACTED]'
        assert sanitized['email'] == '[REDACTED]'
        assert sanitized['signatureHash'] == '[REDACTED]'

    def test_nested_dicts_are_redacted(self):
        sanitized = sanitize_dict({'appointment': {'id': 'a-1', 'notes': 'cancelReason:ill'}})

        assert sanitized['appointment']['id'] == 'a-1'
        assert sanitized['appointment']['notes'] == '[REDACTED]'


@pytest.mark.django_db
class TestAfterCommit:
    def test_runs_after_commit(self, django_capture_on_commit_callbacks):
        calls = []

        with django_capture_on_commit_callbacks(execute=True):
            after_commit(calls.append, 'done', name='append')
            assert calls == []

        assert calls == ['done']

    def test_failing_hook_is_counted_not_raised(self, django_capture_on_commit_callbacks):
        counter = metrics.post_commit_hook_failures_total.labels(hook='exploding_hook')
        before = counter._value.get()

        def explode():
            raise RuntimeError('boom')

        with django_capture_on_commit_callbacks(execute=True):
            after_commit(explode, name='exploding_hook')

        assert counter._value.get() == before + 1

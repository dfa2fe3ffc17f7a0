"""
Response envelopes.

Three shapes leave the API:

- list:    {"success": true, "data": {"items", "total", "page", "pageSize"}, "requestId"}
- entity:  {"success": true, "data": {...}, "requestId"}
- problem: {"type", "title", "status", "detail", "requestId", ...extras}

All of them are marked non-cacheable because payloads may contain PHI.
"""
import uuid

from rest_framework import status as http_status
from rest_framework.response import Response

from apps.core.observability.correlation import get_request_id as get_context_request_id

PROBLEM_CONTENT_TYPE = 'application/problem+json'


def resolve_request_id(request=None):
    """
    Request id for the envelope.

    Prefers the id the correlation middleware stored on the request, then
    the thread-local context, then a fresh UUID (e.g. for calls made
    outside the middleware stack).
    """
    request_id = getattr(request, 'request_id', None) if request is not None else None
    return request_id or get_context_request_id() or str(uuid.uuid4())


def apply_no_store(response, request_id):
    response['Cache-Control'] = 'no-store'
    response['Pragma'] = 'no-cache'
    response['X-Request-ID'] = request_id
    return response


def list_response(items, total, page, page_size, request=None):
    request_id = resolve_request_id(request)
    body = {
        'success': True,
        'data': {
            'items': items,
            'total': total,
            'page': page,
            'pageSize': page_size,
        },
        'requestId': request_id,
    }
    return apply_no_store(Response(body, status=http_status.HTTP_200_OK), request_id)


def entity_response(data, request=None, status=http_status.HTTP_200_OK):
    request_id = resolve_request_id(request)
    body = {'success': True, 'data': data, 'requestId': request_id}
    return apply_no_store(Response(body, status=status), request_id)


def problem_response(status, title, detail, request=None, **extras):
    """Problem-details body; `extras` are merged at the top level (e.g. issues)."""
    request_id = resolve_request_id(request)
    body = {
        'type': 'about:blank',
        'title': title,
        'status': status,
        'detail': detail,
        'requestId': request_id,
    }
    body.update(extras)
    response = Response(body, status=status, content_type=PROBLEM_CONTENT_TYPE)
    return apply_no_store(response, request_id)


def parse_pagination(params, default_size=20, max_size=100):
    """
    Parse zero-based `page` / `pageSize` query params.

    Invalid values fall back to defaults; page size is clamped to
    [1, max_size].
    """
    try:
        page = max(int(params.get('page', 0)), 0)
    except (TypeError, ValueError):
        page = 0
    try:
        page_size = int(params.get('pageSize', default_size))
    except (TypeError, ValueError):
        page_size = default_size
    page_size = min(max(page_size, 1), max_size)
    return page, page_size

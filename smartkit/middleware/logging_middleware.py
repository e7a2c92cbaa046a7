"""
HTTP request logging middleware.

One "http_request" event per request. The request id, and the project id when
the path is project-scoped, are bound into structlog contextvars so every
userop_* event emitted while the request runs carries them.
"""

import re
import time
import uuid
from typing import Dict

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.stdlib.get_logger("http")

REQUEST_ID_HEADER = "x-request-id"

_PROJECT_PATH = re.compile(r"^/projects/(?P<project_id>[^/]+)(?:/wallets/(?P<wallet>0x[0-9a-fA-F]{40}))?")

# Polled by load balancers; logged at debug only
_PROBE_PATHS = frozenset({"/healthz", "/"})


def request_context(request: Request) -> Dict[str, str]:
    context = {"request_id": request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]}
    match = _PROJECT_PATH.match(request.url.path)
    if match:
        context["project_id"] = match.group("project_id")
        if match.group("wallet"):
            context["wallet"] = match.group("wallet").lower()
    return context


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests with timing, status and project context."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        context = request_context(request)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(**context)

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = context["request_id"]
            return response
        finally:
            if status_code >= 500:
                log = logger.error
            elif status_code >= 400:
                log = logger.warning
            elif request.url.path in _PROBE_PATHS:
                log = logger.debug
            else:
                log = logger.info

            log(
                "http_request",
                method=request.method,
                path=request.url.path,
                status=status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 1),
            )

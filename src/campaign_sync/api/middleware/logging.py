"""Structured request logging middleware.

Logs every request with method, path, status_code, duration_ms and a
request_id. The id is taken from an incoming X-Request-ID header (so a sync
triggered by the campaign generator can be traced end to end) or generated,
bound into structlog's context for the duration of the request, and echoed
back on the response.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that logs every request with timing and a request id.

    Everything logged while the request is handled (adapter calls, registry
    changes, sync log entries) carries the same ``request_id``.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        start_time = time.monotonic()
        log = logger.bind(method=request.method, path=request.url.path)

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception:
                log.error(
                    "request_error",
                    status_code=500,
                    duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                )
                raise

            response.headers[REQUEST_ID_HEADER] = request_id

            if response.status_code >= 500:
                emit = log.error
            elif response.status_code >= 400:
                emit = log.warning
            else:
                emit = log.info
            emit(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round((time.monotonic() - start_time) * 1000, 2),
            )

        return response

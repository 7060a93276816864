"""Prometheus metrics for HTTP traffic and CRM sync runs.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- record_sync_run(): Record the outcome of one orchestration run
- get_metrics_response(): FastAPI route handler body for /metrics
"""

from __future__ import annotations

import time

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Sync Metrics ─────────────────────────────────────────────────────────────

crm_sync_runs_total = Counter(
    "crm_sync_runs_total",
    "Total CRM orchestration runs",
    ["provider", "outcome"],
)

crm_sync_duration_seconds = Histogram(
    "crm_sync_duration_seconds",
    "CRM orchestration run duration in seconds",
    ["provider"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

crm_records_created_total = Counter(
    "crm_records_created_total",
    "Total CRM records created by sync runs",
    ["provider"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Skips the /metrics endpoint itself. Requests are labelled by route
    template (``/v1/crm/connections/{connection_id}``), falling back to the
    raw path for unmatched requests.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        # Route template keeps connection ids out of the label set
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


def record_sync_run(
    provider: str,
    outcome: str,
    duration_ms: int,
    records_created: int,
) -> None:
    """Record one orchestration run.

    Args:
        provider: CRM provider tag, or "none" when no connection was used.
        outcome: "success", "failure", "skipped" or "no_connection".
        duration_ms: Run duration in milliseconds.
        records_created: Records created remotely during the run.
    """
    crm_sync_runs_total.labels(provider=provider, outcome=outcome).inc()
    crm_sync_duration_seconds.labels(provider=provider).observe(duration_ms / 1000)
    if records_created:
        crm_records_created_total.labels(provider=provider).inc(records_created)


def get_metrics_response() -> Response:
    """Render the default registry in Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

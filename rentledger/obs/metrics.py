"""Prometheus metrics for the API process and the scoring services."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_LATENCY_SECONDS = Histogram(
    "rentledger_http_request_latency_seconds",
    "Latency of HTTP requests in seconds.",
    labelnames=("method", "path"),
)
REQUEST_COUNTER = Counter(
    "rentledger_http_requests_total",
    "Total number of HTTP requests processed.",
    labelnames=("method", "path", "status"),
)
REQUEST_ERROR_COUNTER = Counter(
    "rentledger_http_request_errors_total",
    "Total number of HTTP requests that resulted in server errors.",
    labelnames=("method", "path", "status"),
)
LEDGER_RECORDS_SKIPPED_COUNTER = Counter(
    "rentledger_ledger_records_skipped_total",
    "Payment records left out of a history because they could not be interpreted.",
)
REPORTS_GENERATED_COUNTER = Counter(
    "rentledger_reports_generated_total",
    "Report snapshots generated.",
    labelnames=("report_type",),
)
BADGES_AWARDED_COUNTER = Counter(
    "rentledger_badges_awarded_total",
    "Achievement badges issued to tenants.",
    labelnames=("badge_type",),
)
NOTIFICATION_PUBLISH_FAILURES_COUNTER = Counter(
    "rentledger_notification_publish_failures_total",
    "Notification events that could not be handed to Kafka.",
    labelnames=("event_type",),
)
SHARE_RESOLUTION_COUNTER = Counter(
    "rentledger_share_resolutions_total",
    "Attempts to open a shared report link.",
    labelnames=("outcome",),
)
SCORE_COMPUTATION_SECONDS = Histogram(
    "rentledger_score_computation_seconds",
    "Time spent loading a payment history and computing its metrics.",
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Records request count, errors and latency per route path."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        method = request.method
        path = request.url.path
        # Share tokens would otherwise create one label set per link.
        if path.startswith("/api/shared-report/"):
            path = "/api/shared-report/{token}"
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            status = str(response.status_code)
            if response.status_code >= 500:
                REQUEST_ERROR_COUNTER.labels(method=method, path=path, status=status).inc()
            return response
        except Exception:
            REQUEST_ERROR_COUNTER.labels(method=method, path=path, status="500").inc()
            raise
        finally:
            latency = time.perf_counter() - start_time
            REQUEST_LATENCY_SECONDS.labels(method=method, path=path).observe(latency)
            REQUEST_COUNTER.labels(method=method, path=path, status=status).inc()


metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    """Expose Prometheus metrics for scraping."""
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "BADGES_AWARDED_COUNTER",
    "LEDGER_RECORDS_SKIPPED_COUNTER",
    "NOTIFICATION_PUBLISH_FAILURES_COUNTER",
    "PrometheusMiddleware",
    "REPORTS_GENERATED_COUNTER",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "SCORE_COMPUTATION_SECONDS",
    "SHARE_RESOLUTION_COUNTER",
    "metrics_endpoint",
    "metrics_router",
]

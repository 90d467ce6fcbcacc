"""Prometheus metrics for the registry API and its domain services."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_LATENCY_SECONDS = Histogram(
    "http_request_latency_seconds",
    "Latency of HTTP requests in seconds.",
    labelnames=("method", "path"),
)
REQUEST_COUNTER = Counter(
    "http_requests_total",
    "Total number of HTTP requests processed.",
    labelnames=("method", "path", "status"),
)
REQUEST_ERROR_COUNTER = Counter(
    "http_request_errors_total",
    "Total number of HTTP requests that resulted in server errors.",
    labelnames=("method", "path", "status"),
)
POSITION_DERIVATION_SECONDS = Histogram(
    "position_derivation_seconds",
    "Time spent deriving positions from the transfer journal.",
    labelnames=("scope",),
)
TRANSFERS_POSTED_COUNTER = Counter(
    "transfers_posted_total",
    "Journal entries written, by posting kind.",
    labelnames=("kind",),
)
NOTIFICATION_EMAIL_COUNTER = Counter(
    "notification_emails_total",
    "Notification emails attempted, by outcome.",
    labelnames=("outcome",),
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware that records request metrics for Prometheus scraping."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        method = request.method
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            path = _path_label(request)
            if status.startswith("5"):
                REQUEST_ERROR_COUNTER.labels(method=method, path=path, status=status).inc()
            latency = time.perf_counter() - start_time
            REQUEST_LATENCY_SECONDS.labels(method=method, path=path).observe(latency)
            REQUEST_COUNTER.labels(method=method, path=path, status=status).inc()


def _path_label(request: Request) -> str:
    # Route templates keep issuer and shareholder ids out of label values.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    """Expose Prometheus metrics for scraping."""
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "NOTIFICATION_EMAIL_COUNTER",
    "POSITION_DERIVATION_SECONDS",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "TRANSFERS_POSTED_COUNTER",
    "metrics_endpoint",
    "metrics_router",
]

"""Observability utilities."""

from .audit import AuditLogRecord, AuditMiddleware
from .metrics import (
    NOTIFICATION_EMAIL_COUNTER,
    POSITION_DERIVATION_SECONDS,
    REQUEST_COUNTER,
    REQUEST_ERROR_COUNTER,
    REQUEST_LATENCY_SECONDS,
    TRANSFERS_POSTED_COUNTER,
    PrometheusMiddleware,
    metrics_router,
)
from .tracing import (
    initialise_tracing,
    instrument_fastapi_app,
    instrument_sqlalchemy_engine,
    traced,
)

__all__ = [
    "AuditLogRecord",
    "AuditMiddleware",
    "NOTIFICATION_EMAIL_COUNTER",
    "POSITION_DERIVATION_SECONDS",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "TRANSFERS_POSTED_COUNTER",
    "metrics_router",
    "initialise_tracing",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "traced",
]

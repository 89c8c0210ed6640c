"""Observability utilities."""

from .audit import AuditLogRecord, AuditMiddleware, mask_mapping, mask_value
from .metrics import (
    BADGES_AWARDED_COUNTER,
    LEDGER_RECORDS_SKIPPED_COUNTER,
    NOTIFICATION_PUBLISH_FAILURES_COUNTER,
    REPORTS_GENERATED_COUNTER,
    REQUEST_COUNTER,
    REQUEST_ERROR_COUNTER,
    REQUEST_LATENCY_SECONDS,
    SCORE_COMPUTATION_SECONDS,
    SHARE_RESOLUTION_COUNTER,
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
    "initialise_tracing",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "mask_mapping",
    "mask_value",
    "metrics_router",
    "traced",
]

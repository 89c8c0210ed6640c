"""FastAPI application entrypoint."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from rentledger.api.routes import register_routes
from rentledger.core.config import Settings, get_settings
from rentledger.core.logging import configure_logging
from rentledger.models import ImmutableReportError
from rentledger.obs import (
    AuditMiddleware,
    PrometheusMiddleware,
    initialise_tracing,
    instrument_fastapi_app,
    metrics_router,
)
from rentledger.services.errors import RentLedgerError

logger = logging.getLogger("rentledger")

OPENAPI_TAGS = [
    {"name": "auth", "description": "Login and refresh token rotation."},
    {"name": "payments", "description": "Bank-synced and manually logged rent payments."},
    {"name": "achievements", "description": "Payment streaks, badges and dashboard statistics."},
    {"name": "reports", "description": "Report snapshots and time-limited share links."},
    {"name": "admin", "description": "Audit trail access for administrators."},
    {"name": "health", "description": "Liveness and readiness probes."},
]


async def _immutable_report_handler(request: Request, exc: ImmutableReportError) -> JSONResponse:
    logger.error("attempt to modify stored report", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


async def _service_error_handler(request: Request, exc: RentLedgerError) -> JSONResponse:
    # Routes translate expected errors; anything reaching here was not anticipated.
    logger.exception("unhandled service error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal error"},
    )


def create_application(settings: Settings | None = None) -> FastAPI:
    """Application factory used by ASGI servers and tests."""
    configure_logging()
    settings = settings or get_settings()

    if settings.enable_tracing:
        initialise_tracing(service_name=settings.app_name, endpoint=settings.otel_exporter_endpoint)

    application = FastAPI(
        title=settings.app_name,
        version=settings.version,
        description="Rent payment history, Rent Score and shareable tenant reports.",
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        openapi_tags=OPENAPI_TAGS,
    )
    application.add_exception_handler(ImmutableReportError, _immutable_report_handler)
    application.add_exception_handler(RentLedgerError, _service_error_handler)

    application.add_middleware(AuditMiddleware, settings=settings)
    if settings.enable_metrics:
        application.add_middleware(PrometheusMiddleware)
        application.include_router(metrics_router)
    register_routes(application)

    if settings.enable_tracing:
        instrument_fastapi_app(application)

    logger.info(
        "application configured",
        extra={"share_ttl_days": settings.share_ttl_days, "grace_period_days": settings.grace_period_days},
    )
    return application


app = create_application()

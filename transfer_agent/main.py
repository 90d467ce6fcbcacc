"""FastAPI application entrypoint."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from transfer_agent.api.routes import register_routes
from transfer_agent.core.config import Settings, get_settings
from transfer_agent.core.logging import configure_logging
from transfer_agent.obs import (
    AuditMiddleware,
    PrometheusMiddleware,
    initialise_tracing,
    instrument_fastapi_app,
    metrics_router,
)
from transfer_agent.services.email import EmailDeliveryError
from transfer_agent.services.positions import DataFetchError
from transfer_agent.services.storage import StorageError

logger = logging.getLogger(__name__)


async def upstream_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Report database and object-store failures that escaped a router as 502."""
    logger.error(
        "upstream dependency failed",
        extra={"path": request.url.path, "error_type": type(exc).__name__, "error": str(exc)},
    )
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})


def create_application(settings: Settings | None = None) -> FastAPI:
    """Application factory used by ASGI servers and tests."""
    configure_logging()
    settings = settings or get_settings()

    if settings.enable_tracing:
        initialise_tracing(service_name=settings.app_name, endpoint=settings.otel_exporter_endpoint)

    application = FastAPI(
        title=settings.app_name,
        version=settings.version,
        description="Multi-issuer shareholder registry: journal, positions, restrictions and broker requests.",
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
    )

    application.add_middleware(AuditMiddleware, settings=settings)
    if settings.enable_metrics:
        application.add_middleware(PrometheusMiddleware)
        application.include_router(metrics_router)
    for error_type in (DataFetchError, StorageError, EmailDeliveryError):
        application.add_exception_handler(error_type, upstream_error_handler)
    register_routes(application)

    if settings.enable_tracing:
        instrument_fastapi_app(application)

    logger.info("application created", extra={"service": settings.app_name, "version": settings.version})
    return application


app = create_application()

"""
ThreatScope FastAPI application entry point.

Creates and configures the FastAPI app with:
- CORS middleware
- Security headers middleware
- API v1 router
- Domain error to HTTP status mapping
- Health check endpoint
- A lifespan that provisions the incident table, builds the
  :class:`SecurityService` and stops monitoring on shutdown
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from threatscope.api.schemas.scan import ScanReportResponse
from threatscope.api.v1.router import router as v1_router
from threatscope.config import get_settings
from threatscope.core.database import build_engine, build_session_factory, create_tables
from threatscope.core.errors import InvalidInput, InvalidTransition, TargetUnreachable
from threatscope.core.logging import configure_logging, get_logger
from threatscope.monitoring.incident_store import SqlIncidentStore
from threatscope.service import SecurityService

# ── Constants ────────────────────────────────────────────────────────────────

_HEALTH_CHECK_PATH: str = "/health"
_VERSION: str = "1.0.0"

_RESPONSE_HEADERS: dict[str, str] = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds the same security headers the scanner audits to every response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response: Response = await call_next(request)
        for header_name, header_value in _RESPONSE_HEADERS.items():
            response.headers[header_name] = header_value
        return response


# ── Lifespan ─────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Provision storage and the service; stop monitoring on shutdown."""
    settings = get_settings()
    configure_logging()
    logger = get_logger(__name__)
    logger.info(
        "Application starting",
        extra={"action": "startup", "target": settings.APP_NAME},
    )

    engine = build_engine()
    await create_tables(engine)
    application.state.service = SecurityService(
        incident_store=SqlIncidentStore(build_session_factory(engine)),
        settings=settings,
    )
    logger.info(
        "Incident store ready",
        extra={"action": "db_check", "target": settings.DATABASE_URL.split("@")[-1]},
    )

    try:
        yield
    finally:
        logger.info(
            "Application shutting down",
            extra={"action": "shutdown", "target": settings.APP_NAME},
        )
        await application.state.service.stop_monitoring()
        await engine.dispose()


# ── Error mapping ────────────────────────────────────────────────────────────

def _register_exception_handlers(application: FastAPI) -> None:
    @application.exception_handler(InvalidInput)
    async def invalid_input_handler(request: Request, exc: InvalidInput) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": str(exc)},
        )

    @application.exception_handler(InvalidTransition)
    async def invalid_transition_handler(
        request: Request, exc: InvalidTransition
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": str(exc)},
        )

    @application.exception_handler(TargetUnreachable)
    async def unreachable_handler(
        request: Request, exc: TargetUnreachable
    ) -> JSONResponse:
        content: dict[str, Any] = {"detail": exc.reason}
        if exc.report is not None:
            content["report"] = ScanReportResponse.model_validate(exc.report).model_dump(
                mode="json"
            )
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=content)


# ── Application Factory ─────────────────────────────────────────────────────

def create_app() -> FastAPI:
    """Build and return the configured FastAPI application instance."""
    settings = get_settings()

    application = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Security scanning and continuous threat monitoring -- "
            "reachability, ports, services, TLS, headers, CVEs, alert "
            "triage and incident escalation."
        ),
        version=_VERSION,
        docs_url="/docs",
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Middleware (order matters: outermost first) ───────────────────────

    application.add_middleware(SecurityHeadersMiddleware)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        max_age=600,
    )

    _register_exception_handlers(application)
    application.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    @application.get(
        _HEALTH_CHECK_PATH,
        tags=["health"],
        summary="Application health check",
        response_class=JSONResponse,
    )
    async def health_check() -> dict[str, Any]:
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": _VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return application


# ── Module-Level App Instance ────────────────────────────────────────────────

app: FastAPI = create_app()

"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from cleanbook.api.v1.router import api_router
from cleanbook.config import settings
from cleanbook.core.exceptions import AppException, InternalError, ValidationError
from cleanbook.core.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from cleanbook.database import AsyncSessionLocal, close_db, init_db
from cleanbook.services.lifecycle_service import LifecycleEngine
from cleanbook.services.notification_hub import NotificationHub

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def install_services(app: FastAPI, session_factory=AsyncSessionLocal) -> NotificationHub:
    """Create the notification hub and lifecycle engine and attach them to the app."""
    hub = NotificationHub(queue_size=settings.hub_queue_size)
    app.state.session_factory = session_factory
    app.state.notification_hub = hub
    app.state.lifecycle_engine = LifecycleEngine(session_factory, hub)
    return hub


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    # Startup
    if settings.debug or settings.auto_create_tables:
        await init_db()
    hub = install_services(app)
    logger.info("%s %s started (%s)", settings.app_name, settings.app_version, settings.environment)

    yield

    # Shutdown
    hub.close()
    await close_db()
    logger.info("%s stopped", settings.app_name)


def error_body(exc: AppException) -> dict:
    body = {"detail": exc.detail, "code": exc.code}
    if getattr(exc, "errors", None):
        body["errors"] = exc.errors
    return body


def create_application(use_lifespan: bool = True, rate_limit: bool | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``rate_limit`` overrides ``settings.rate_limit_enabled`` when given.
    """
    configure_logging()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="CleanBook - booking lifecycle and realtime status API",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan if use_lifespan else None,
    )

    # Exception handlers
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Handle custom application exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed requests are reported as 400 ValidationError."""
        error = ValidationError(
            "Invalid request",
            errors=[{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()],
        )
        return JSONResponse(status_code=error.status_code, content=error_body(error))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error_body(error))

    # Middleware (order matters - first added = last executed)
    app.add_middleware(SecurityHeadersMiddleware)

    if rate_limit is None:
        rate_limit = settings.rate_limit_enabled
    if rate_limit:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_minute=settings.rate_limit_per_minute,
        )

    app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check(request: Request) -> dict:
        """Health check endpoint."""
        hub = getattr(request.app.state, "notification_hub", None)
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "realtime_connections": hub.connection_count if hub else 0,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cleanbook.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )

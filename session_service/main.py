"""
Session Service - Main Application Entry Point

This module provides the FastAPI application for the Session Service: a
multi-tenant JSON session store with per-type collections, content-checksum
deduplication and ad-hoc field queries.

- create_app(): application factory (tests pass their own settings and Redis)
- lifespan(): builds the Redis client, document store and session service
- Exception handlers mapping ErrorCode to HTTP status codes
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from session_service.api.middleware.logging import RequestLoggingMiddleware
from session_service.api.routes.health import router as health_router
from session_service.api.routes.sessions import router as sessions_router
from session_service.core.config import Settings, get_settings
from session_service.core.exceptions import (
    ErrorCode,
    SessionInvalidError,
    SessionServiceException,
)
from session_service.models.responses import ErrorDetail, ErrorResponse
from session_service.observability.logging import configure_logging, get_logger
from session_service.observability.metrics import MetricsMiddleware
from session_service.observability.tracing import TracingMiddleware, setup_tracing
from session_service.sessions.repository import SessionRepository
from session_service.sessions.service import SessionService
from session_service.store.redis_store import RedisDocumentStore

APP_NAME = "Session Service"
APP_DESCRIPTION = "Multi-tenant JSON session store with content deduplication"

# Error code -> HTTP status
ERROR_STATUS_CODES: dict[str, int] = {
    ErrorCode.SESSION_INVALID: 400,
    ErrorCode.SESSION_QUERY_INVALID: 400,
    ErrorCode.SESSION_NOT_FOUND: 404,
    ErrorCode.SESSION_ALREADY_EXISTS: 409,
    ErrorCode.STORE_UNAVAILABLE: 503,
    ErrorCode.SERVICE_ERROR: 500,
}

# Probes and scrapes are not traced or counted
_UNINSTRUMENTED_PATHS = ["/metrics", "/health", "/health/ready"]


def get_cors_origins(settings: Settings) -> list[str]:
    """
    Get CORS allowed origins based on environment.

    - Development: Allow all origins (["*"])
    - Staging/Production: SESSION_SERVICE_CORS_ORIGINS (JSON list)
    - If not configured outside development: empty list (blocks cross-origin requests)

    Returns:
        List of allowed origin strings.
    """
    if settings.environment == "development":
        return ["*"]
    return [origin.strip() for origin in settings.cors_origins if origin.strip()]


# =============================================================================
# Exception Handlers
# =============================================================================


def _error_response(status_code: int, error: SessionServiceException) -> JSONResponse:
    errors = getattr(error, "errors", None) or None
    body = ErrorResponse(
        error=ErrorDetail(code=str(error.error_code.value), message=error.message, errors=errors)
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


async def session_service_exception_handler(
    request: Request, exc: SessionServiceException
) -> JSONResponse:
    """Translate a typed service error into its HTTP status and error body."""
    status_code = ERROR_STATUS_CODES.get(exc.error_code, 500)
    logger = get_logger(__name__)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "request rejected",
        path=request.url.path,
        code=str(exc.error_code.value),
        status=status_code,
        message=exc.message,
    )
    return _error_response(status_code, exc)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Missing or malformed request parameters are reported as invalid sessions."""
    errors = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    error = SessionInvalidError("request parameters are invalid", errors=errors)
    return _error_response(400, error)


# =============================================================================
# Lifespan Context Manager
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager for startup/shutdown events.

    Builds the Redis client (unless one was injected), the document store,
    repository and service, and closes the client it created on shutdown.
    """
    settings: Settings = app.state.settings
    logger = get_logger(__name__)

    # =========================================================================
    # STARTUP
    # =========================================================================
    redis_client = app.state.redis_client
    owns_client = redis_client is None
    if owns_client:
        redis_client = redis.from_url(settings.redis_url, decode_responses=True)

    store = RedisDocumentStore(redis_client, key_prefix=settings.redis_key_prefix)
    app.state.document_store = store
    app.state.session_service = SessionService(SessionRepository(store), settings)
    app.state.initialized = True

    logger.info(
        "service starting",
        service=settings.service_name,
        version=settings.version,
        environment=settings.environment,
        session_types=settings.session_types,
    )

    yield

    # =========================================================================
    # SHUTDOWN
    # =========================================================================
    logger.info("service shutting down", service=settings.service_name)
    app.state.initialized = False
    if owns_client:
        await redis_client.aclose()


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    settings: Optional[Settings] = None,
    redis_client: Optional[Any] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Service settings. Defaults to get_settings().
        redis_client: Pre-built async Redis client (e.g. fakeredis in tests).
            When omitted the lifespan connects to settings.redis_url.

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    configure_logging(level=settings.log_level)
    if settings.otlp_endpoint:
        setup_tracing(settings.service_name, settings.otlp_endpoint)

    app = FastAPI(
        title=APP_NAME,
        description=APP_DESCRIPTION,
        version=settings.version,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.redis_client = redis_client

    # Last added runs first: tracing sets the correlation id the logs carry
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware, exclude_paths=_UNINSTRUMENTED_PATHS)
    app.add_middleware(TracingMiddleware, exclude_paths=_UNINSTRUMENTED_PATHS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(settings),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SessionServiceException, session_service_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(health_router)
    app.include_router(sessions_router)

    @app.get("/", tags=["Info"])
    async def root() -> dict[str, Any]:
        """Root endpoint returning basic service information."""
        return {
            "service": APP_NAME,
            "version": settings.version,
            "docs": "/docs" if settings.environment != "production" else "disabled",
        }

    return app


app = create_app()

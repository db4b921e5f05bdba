"""
Health Router - liveness, readiness, info and metrics endpoints

Anti-Patterns Avoided:
- No bare except clauses; the store's ping reports failures as False
- Readiness reflects the document store, liveness never touches it
"""

from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from session_service.api.deps import get_document_store, get_settings
from session_service.core.config import Settings
from session_service.models.responses import InfoResponse
from session_service.observability.logging import get_logger
from session_service.observability.metrics import CONTENT_TYPE_LATEST, generate_metrics
from session_service.store.base import DocumentStore


# =============================================================================
# Response Models
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    status: str
    checks: dict[str, bool]


# =============================================================================
# Health Service
# =============================================================================


class HealthService:
    """
    Service class for health check operations.

    Wraps the dependency checks so tests can substitute the store.
    """

    def __init__(self, store: DocumentStore):
        """Initialize health service with the document store to probe."""
        self._store = store
        self._logger = get_logger(__name__)

    async def check_store(self) -> bool:
        """
        Check document store connectivity.

        Returns:
            bool: True if the store answers a ping, False otherwise
        """
        healthy = await self._store.ping()
        if not healthy:
            self._logger.warning("document store health check failed")
        return healthy


def get_health_service(store: DocumentStore = Depends(get_document_store)) -> HealthService:
    """Dependency injection factory for HealthService."""
    return HealthService(store)


# =============================================================================
# Router
# =============================================================================

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Liveness endpoint.

    Returns:
        HealthResponse: Health status and version
    """
    return HealthResponse(status="healthy", version=settings.version)


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(
    response: Response,
    health_service: HealthService = Depends(get_health_service),
) -> ReadinessResponse:
    """
    Readiness endpoint; 503 when the document store is unreachable.

    Args:
        response: FastAPI response object for setting status code
        health_service: Injected health service dependency

    Returns:
        ReadinessResponse: Readiness status with dependency checks
    """
    checks = {"redis": await health_service.check_store()}
    all_healthy = all(checks.values())

    if not all_healthy:
        response.status_code = 503

    return ReadinessResponse(
        status="ready" if all_healthy else "not_ready",
        checks=checks,
    )


@router.get("/info", response_model=InfoResponse)
async def info(settings: Settings = Depends(get_settings)) -> InfoResponse:
    """Service name and version."""
    return InfoResponse(service=settings.service_name, version=settings.version)


@router.get("/metrics")
async def metrics() -> PlainTextResponse:
    """Prometheus metrics endpoint."""
    return PlainTextResponse(content=generate_metrics(), media_type=CONTENT_TYPE_LATEST)

"""
API Dependencies

This module provides FastAPI dependency injection functions for the API layer.

Pattern: Centralized dependency injection following FastAPI best practices.
The store and service are built once in the application lifespan and kept on
``app.state``; these factories hand them to route handlers and can be
overridden in tests using FastAPI's dependency_overrides mechanism.
"""

from fastapi import Request

from session_service.core.config import Settings, get_settings as _get_settings
from session_service.sessions.service import SessionService
from session_service.store.base import DocumentStore


# =============================================================================
# get_settings Dependency
# Pattern: Re-export from core.config for API layer
# =============================================================================


def get_settings(request: Request) -> Settings:
    """
    Get application settings.

    Returns the settings the application was created with, falling back to the
    @lru_cache singleton from core.config.

    Returns:
        Settings: Application settings instance
    """
    settings = getattr(request.app.state, "settings", None)
    return settings or _get_settings()


# =============================================================================
# get_document_store Dependency
# =============================================================================


def get_document_store(request: Request) -> DocumentStore:
    """Get the document store built by the application lifespan."""
    return request.app.state.document_store


# =============================================================================
# get_session_service Dependency
# Pattern: Factory function for service layer
# =============================================================================


def get_session_service(request: Request) -> SessionService:
    """
    Get the SessionService instance.

    Returns:
        SessionService: Service bound to the application's document store
    """
    return request.app.state.session_service


__all__ = [
    "get_settings",
    "get_document_store",
    "get_session_service",
]

"""Routes Package - API endpoint definitions.

- health: liveness, readiness and service info
- sessions: session storage endpoints

Note: Import routers directly from individual modules to avoid circular imports.
Example: from session_service.api.routes.sessions import router as sessions_router
"""

__all__ = ["health", "sessions"]

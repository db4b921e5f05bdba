"""API Package - FastAPI routes, middleware, and dependencies.

Components:
- routes: API endpoint routers (health, sessions)
- middleware: Request/response logging
- deps: FastAPI dependency injection functions

Note: Import routers directly from session_service.api.routes to avoid circular imports.
"""

__all__ = ["routes", "middleware", "deps"]

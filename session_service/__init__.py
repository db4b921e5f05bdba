"""Session Service - Source Package.

Multi-tenant JSON session store with per-type collections, content-checksum
deduplication and ad-hoc field queries.

Note: Import `app` directly from `session_service.main` to avoid circular imports.
"""

__all__ = ["main", "api", "core", "models", "observability", "sessions", "store"]

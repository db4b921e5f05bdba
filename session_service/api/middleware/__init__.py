"""
API Middleware Package

Middleware Components:
- logging: Request/response logging with header redaction
"""

from session_service.api.middleware.logging import RequestLoggingMiddleware, redact_sensitive_headers

__all__ = [
    "RequestLoggingMiddleware",
    "redact_sensitive_headers",
]

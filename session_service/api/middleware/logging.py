"""
Request Logging Middleware

One structured event per request, written after the route has run so it can
name the session the request addressed:

    {"event": "request completed", "method": "GET",
     "route": "/api/sessions/{source}/{session_type}/{session_id}",
     "source": "portalA", "type": "main_session", "session_id": "5f0c...",
     "status": 404, "duration_ms": 1.7, ...}

Client errors (4xx) are logged at INFO since most are expected outcomes of the
session API (unknown ids, duplicates); server errors at ERROR. Request headers
are only logged at DEBUG, with credentials redacted.
"""

import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from session_service.observability.logging import get_logger, session_log_fields
from session_service.observability.metrics import route_template


# Substrings of header names whose values are never logged
SENSITIVE_HEADER_MARKERS = ("authorization", "api-key", "apikey", "api_key", "token", "cookie")

REDACTED = "[REDACTED]"


def redact_sensitive_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return a copy of ``headers`` with credential-bearing values replaced."""
    return {
        key: REDACTED if any(marker in key.lower() for marker in SENSITIVE_HEADER_MARKERS) else value
        for key, value in headers.items()
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each HTTP request with its route template and session coordinates."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        logger = get_logger(__name__)
        start_time = time.perf_counter()

        logger.debug(
            "request received",
            method=request.method,
            path=request.url.path,
            headers=redact_sensitive_headers(dict(request.headers)),
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request failed",
                method=request.method,
                route=route_template(request.scope),
                error=f"{type(e).__name__}: {e}",
                duration_ms=_elapsed_ms(start_time),
                **session_log_fields(request.path_params),
            )
            raise

        log = logger.error if response.status_code >= 500 else logger.info
        log(
            "request completed",
            method=request.method,
            route=route_template(request.scope),
            status=response.status_code,
            duration_ms=_elapsed_ms(start_time),
            **session_log_fields(request.path_params),
        )
        return response


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)

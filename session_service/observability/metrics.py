"""
Prometheus Metrics Module

This module provides Prometheus metrics for observability:

- HTTP request counter, latency histogram and in-progress gauge
- Session operation counter by operation and outcome
- Deduplication counter (writes resolved to an existing session)
- MetricsMiddleware ASGI middleware and the /metrics exposition

Requests are labelled by their route template
(``/api/sessions/{source}/{session_type}/{session_id}``), never by the raw URL,
so caller-chosen sources and ids cannot grow the number of series.
"""

import time
from typing import Any, Callable, Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# =============================================================================
# Route Labels
# =============================================================================

UNMATCHED_ROUTE = "unmatched"


def route_template(scope: dict[str, Any]) -> str:
    """
    Return the path template of the route that handled a request.

    The router stores the matched route in the ASGI scope, so this is only
    meaningful once the downstream app has run. Requests that matched no route
    (404s, CORS preflights) share a single label.
    """
    route = scope.get("route")
    path = getattr(route, "path", None)
    return path if isinstance(path, str) else UNMATCHED_ROUTE


# =============================================================================
# HTTP Metrics
# =============================================================================

REQUESTS_TOTAL = Counter(
    name="session_service_requests_total",
    documentation="Total number of HTTP requests",
    labelnames=["method", "path", "status"],
)

REQUEST_DURATION_SECONDS = Histogram(
    name="session_service_request_duration_seconds",
    documentation="HTTP request duration in seconds",
    labelnames=["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

REQUESTS_IN_PROGRESS = Gauge(
    name="session_service_requests_in_progress",
    documentation="Number of HTTP requests currently being processed",
    labelnames=["method"],
)

# =============================================================================
# Session Metrics
# =============================================================================

SESSION_OPERATIONS_TOTAL = Counter(
    name="session_service_session_operations_total",
    documentation="Session operations by type, operation and outcome",
    labelnames=["type", "operation", "outcome"],
)

SESSION_DEDUPLICATIONS_TOTAL = Counter(
    name="session_service_session_deduplications_total",
    documentation="Writes resolved to an existing session with the same checksum",
    labelnames=["type"],
)


def record_session_operation(session_type: str, operation: str, outcome: str) -> None:
    """
    Record the outcome of a session operation.

    Args:
        session_type: Session type (collection)
        operation: Service operation name (add, create, get, ...)
        outcome: Result label (ok, invalid, not_found, conflict, ...)
    """
    SESSION_OPERATIONS_TOTAL.labels(
        type=session_type,
        operation=operation,
        outcome=outcome,
    ).inc()


def record_deduplication(session_type: str) -> None:
    """Record a write that returned an existing session instead of a new one."""
    SESSION_DEDUPLICATIONS_TOTAL.labels(type=session_type).inc()


# =============================================================================
# MetricsMiddleware ASGI Middleware
# =============================================================================


class MetricsMiddleware:
    """
    ASGI middleware for Prometheus metrics collection.

    This middleware:
    - Increments request counter per method/path/status
    - Records request latency histogram
    - Tracks in-progress requests gauge
    - Excludes /metrics path from metrics
    """

    def __init__(
        self,
        app: Callable[..., Any],
        exclude_paths: Optional[list[str]] = None,
    ) -> None:
        self.app = app
        self.exclude_paths = exclude_paths or ["/metrics"]

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET")

        if scope.get("path", "/") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        REQUESTS_IN_PROGRESS.labels(method=method).inc()
        start_time = time.perf_counter()
        status_code = "500"  # Default if not captured

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = str(message.get("status", 500))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration = time.perf_counter() - start_time
            path = route_template(scope)

            REQUESTS_TOTAL.labels(
                method=method,
                path=path,
                status=status_code,
            ).inc()

            REQUEST_DURATION_SECONDS.labels(
                method=method,
                path=path,
            ).observe(duration)

            REQUESTS_IN_PROGRESS.labels(method=method).dec()


# =============================================================================
# Metrics Endpoint
# =============================================================================


def generate_metrics() -> str:
    """Generate Prometheus metrics text format."""
    return generate_latest(REGISTRY).decode("utf-8")

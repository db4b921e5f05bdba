"""
OpenTelemetry Tracing Module

This module provides distributed tracing via OpenTelemetry.

Until setup_tracing() installs a TracerProvider the OpenTelemetry API hands out
no-op tracers, so spans created by the session layer cost nothing when tracing
is not configured.
"""

import functools
from contextlib import contextmanager
from typing import Any, Callable, Generator, Optional, TypeVar

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.propagate import extract
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, Tracer

from session_service.observability.logging import clear_correlation_id, set_correlation_id
from session_service.observability.metrics import route_template

F = TypeVar("F", bound=Callable[..., Any])

TRACER_NAME = "session_service"

_tracer_provider: Optional[TracerProvider] = None


# =============================================================================
# TracerProvider Configuration
# =============================================================================


def setup_tracing(
    service_name: str = "session-service",
    otlp_endpoint: Optional[str] = None,
) -> TracerProvider:
    """
    Configure the global OpenTelemetry TracerProvider.

    Args:
        service_name: Name of the service for resource identification
        otlp_endpoint: Optional OTLP exporter endpoint (http://localhost:4317)

    Returns:
        Configured TracerProvider
    """
    global _tracer_provider

    resource = Resource.create({SERVICE_NAME: service_name})
    provider = TracerProvider(resource=resource)

    if otlp_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )
            exporter = OTLPSpanExporter(endpoint=otlp_endpoint)
        except ImportError:
            # OTLP exporter is an optional extra
            exporter = ConsoleSpanExporter()
    else:
        exporter = ConsoleSpanExporter()

    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    _tracer_provider = provider

    return provider


def get_tracer(name: str = TRACER_NAME) -> Tracer:
    """Get a named tracer instance."""
    return trace.get_tracer(name)


def get_current_trace_id() -> Optional[str]:
    """
    Get the current trace ID as hex string.

    Returns:
        32-character hex string or None if no active span
    """
    span_context = trace.get_current_span().get_span_context()
    if span_context.trace_id == 0:
        return None
    return format(span_context.trace_id, "032x")


def extract_trace_context(headers: dict[str, Any]) -> Context:
    """Extract trace context from incoming headers."""
    return extract(headers)


def _headers_to_dict(headers: list[tuple[bytes, bytes]]) -> dict[str, str]:
    """Convert ASGI headers to dict for propagation."""
    return {
        key.decode("utf-8").lower(): value.decode("utf-8")
        for key, value in headers
    }


# =============================================================================
# TracingMiddleware
# =============================================================================


class TracingMiddleware:
    """
    ASGI middleware for OpenTelemetry tracing.

    This middleware:
    - Creates a server span per HTTP request, continuing any incoming trace
    - Sets span attributes (method, path, status)
    - Uses the trace id as the logging correlation id
    """

    def __init__(
        self,
        app: Callable[..., Any],
        exclude_paths: Optional[list[str]] = None,
        tracer_name: str = "session_service.http",
    ) -> None:
        self.app = app
        self.exclude_paths = exclude_paths or []
        self.tracer = get_tracer(tracer_name)

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
        path = scope.get("path", "/")

        if path in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        parent_context = extract_trace_context(_headers_to_dict(scope.get("headers", [])))
        status_code = 500  # Default if not captured

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
            await send(message)

        with self.tracer.start_as_current_span(
            f"{method} {path}",
            context=parent_context,
            kind=SpanKind.SERVER,
        ) as span:
            trace_id = get_current_trace_id()
            if trace_id:
                set_correlation_id(trace_id)

            span.set_attribute("http.method", method)

            try:
                await self.app(scope, receive, send_wrapper)
                route = route_template(scope)
                span.update_name(f"{method} {route}")
                span.set_attribute("http.route", route)
                span.set_attribute("http.status_code", status_code)
                if status_code >= 500:
                    span.set_status(Status(StatusCode.ERROR))
                else:
                    span.set_status(Status(StatusCode.OK))
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
                raise
            finally:
                clear_correlation_id()


# =============================================================================
# Span Creation Helpers
# =============================================================================


@contextmanager
def create_span(
    name: str,
    attributes: Optional[dict[str, Any]] = None,
) -> Generator[Span, None, None]:
    """
    Context manager for creating a span.

    Example:
        >>> with create_span("store.find", {"collection": "main_session"}):
        ...     documents = await store.find("main_session", {"source": "portal"})
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, value)
        yield span


def traced(name: str) -> Callable[[F], F]:
    """
    Decorator creating a span around a coroutine function.

    Example:
        >>> @traced("sessions.add")
        ... async def add_session(self, source, session_type, raw_data):
        ...     ...
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            with get_tracer().start_as_current_span(name) as span:
                try:
                    result = await func(*args, **kwargs)
                    span.set_status(Status(StatusCode.OK))
                    return result
                except Exception as e:
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    raise
        return wrapper  # type: ignore
    return decorator

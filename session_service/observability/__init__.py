"""
Observability Package

This package provides observability infrastructure including:
- Structured JSON logging (structlog)
- Prometheus metrics (prometheus-client)
- OpenTelemetry tracing
"""

from session_service.observability.logging import (
    clear_correlation_id,
    configure_logging,
    get_correlation_id,
    get_logger,
    session_log_fields,
    set_correlation_id,
)

from session_service.observability.metrics import (
    MetricsMiddleware,
    generate_metrics,
    record_deduplication,
    record_session_operation,
)

from session_service.observability.tracing import (
    TracingMiddleware,
    create_span,
    get_current_trace_id,
    get_tracer,
    setup_tracing,
    traced,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "session_log_fields",
    # Metrics
    "MetricsMiddleware",
    "generate_metrics",
    "record_session_operation",
    "record_deduplication",
    # Tracing
    "TracingMiddleware",
    "setup_tracing",
    "get_tracer",
    "get_current_trace_id",
    "create_span",
    "traced",
]

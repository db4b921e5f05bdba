"""
Structured Logging Module

Every event is rendered as one JSON object carrying a timestamp, the level and
the logger name. The correlation id (the trace id, bound by the tracing
middleware) lives in structlog's contextvars and is merged into every event
logged while handling a request. Request log lines also carry the session a
request addressed (``source``, ``type``, ``session_id``), read from the matched
route's path parameters.

Pattern: Configure once at startup; loggers pick up defaults if nobody did.
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, TextIO

import structlog
from structlog.contextvars import (
    bind_contextvars,
    get_contextvars,
    merge_contextvars,
    unbind_contextvars,
)
from structlog.types import EventDict, Processor


# Route path parameters and the log fields they are reported under
SESSION_PATH_PARAMS = {
    "source": "source",
    "session_type": "type",
    "session_id": "session_id",
}


# =============================================================================
# Request Context
# =============================================================================


def set_correlation_id(correlation_id: str) -> None:
    """Bind the correlation id for the current request."""
    bind_contextvars(correlation_id=correlation_id)


def get_correlation_id() -> Optional[str]:
    """Get the current correlation id, or None outside a request."""
    return get_contextvars().get("correlation_id")


def clear_correlation_id() -> None:
    unbind_contextvars("correlation_id")


def session_log_fields(path_params: Mapping[str, Any]) -> dict[str, Any]:
    """
    Pick the session coordinates out of a route's path parameters.

    Example:
        >>> session_log_fields({"source": "portalA", "session_type": "main_session"})
        {'source': 'portalA', 'type': 'main_session'}
    """
    return {
        field: path_params[param]
        for param, field in SESSION_PATH_PARAMS.items()
        if path_params.get(param) is not None
    }


# =============================================================================
# Processors
# =============================================================================


def add_timestamp(
    logger: logging.Logger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO 8601 timestamp to log event."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def rename_level(
    logger: logging.Logger, _method_name: str, event_dict: EventDict
) -> EventDict:
    if "log_level" in event_dict:
        event_dict["level"] = event_dict.pop("log_level")
    return event_dict


# =============================================================================
# Configuration
# =============================================================================


def configure_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """
    Configure structlog for the application.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        stream: Output stream (default: sys.stdout)
    """
    processors: list[Processor] = [
        merge_contextvars,
        structlog.stdlib.add_log_level,
        add_timestamp,
        rename_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_to_int(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stdout),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger bound to ``name``.

    Applies the default configuration if the application has not configured
    logging yet.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("session created", source="portal", type="main_session")
    """
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger().bind(logger=name)


def _level_to_int(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO

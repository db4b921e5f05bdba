"""
Tests for structured JSON logging.
"""

import io
import json

import pytest
import structlog

from session_service.observability.logging import (
    clear_correlation_id,
    configure_logging,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)


@pytest.fixture
def log_stream():
    """Route log output into a buffer; restore stdout logging afterwards."""
    stream = io.StringIO()
    configure_logging(level="DEBUG", stream=stream)
    yield stream
    clear_correlation_id()
    configure_logging()


def read_events(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestStructuredOutput:
    """Each event is one JSON object."""

    def test_event_fields(self, log_stream):
        get_logger("tests.logging").info("session added", source="portalA", id="abc")

        [event] = read_events(log_stream)
        assert event["event"] == "session added"
        assert event["level"] == "info"
        assert event["logger"] == "tests.logging"
        assert event["source"] == "portalA"
        assert event["id"] == "abc"
        assert "timestamp" in event

    def test_level_filtering(self):
        stream = io.StringIO()
        configure_logging(level="WARNING", stream=stream)
        try:
            logger = get_logger("tests.logging")
            logger.info("hidden")
            logger.warning("shown")
        finally:
            configure_logging()

        assert [event["event"] for event in read_events(stream)] == ["shown"]

    def test_unknown_level_falls_back_to_info(self):
        stream = io.StringIO()
        configure_logging(level="chatty", stream=stream)
        try:
            logger = get_logger("tests.logging")
            logger.debug("hidden")
            logger.info("shown")
        finally:
            configure_logging()

        assert [event["event"] for event in read_events(stream)] == ["shown"]

    def test_get_logger_keeps_existing_configuration(self, log_stream):
        assert structlog.is_configured()
        get_logger("tests.logging").debug("still debug")

        assert [event["event"] for event in read_events(log_stream)] == ["still debug"]


class TestCorrelationId:
    """The correlation id is attached to events inside a request."""

    def test_bound_id_is_merged_into_events(self, log_stream):
        logger = get_logger("tests.logging")

        set_correlation_id("req-123")
        logger.info("inside")
        clear_correlation_id()
        logger.info("outside")

        inside, outside = read_events(log_stream)
        assert inside["correlation_id"] == "req-123"
        assert "correlation_id" not in outside

    def test_set_and_clear(self):
        set_correlation_id("abc")
        assert get_correlation_id() == "abc"
        clear_correlation_id()
        assert get_correlation_id() is None

    def test_clear_without_id(self):
        clear_correlation_id()
        assert get_correlation_id() is None

"""
Tests for the request logging middleware.
"""

import io
import json

import pytest

from session_service.api.middleware.logging import REDACTED, redact_sensitive_headers
from session_service.observability.logging import configure_logging, session_log_fields

POINT_ROUTE = "/api/sessions/{source}/{session_type}/{session_id}"


@pytest.fixture
def log_stream(client):
    """Capture request logs from the running app; restore stdout afterwards."""
    stream = io.StringIO()
    configure_logging(level="DEBUG", stream=stream)
    yield stream
    configure_logging()


def completed(stream):
    events = [json.loads(line) for line in stream.getvalue().splitlines() if line]
    return [event for event in events if event["event"] == "request completed"]


class TestRedaction:
    """Credentials never reach the logs."""

    def test_sensitive_headers_are_redacted(self):
        headers = {
            "Authorization": "Bearer abc",
            "X-API-Key": "k",
            "Cookie": "sid=1",
            "X-Auth-Token": "t",
            "Content-Type": "application/json",
        }

        redacted = redact_sensitive_headers(headers)

        assert redacted == {
            "Authorization": REDACTED,
            "X-API-Key": REDACTED,
            "Cookie": REDACTED,
            "X-Auth-Token": REDACTED,
            "Content-Type": "application/json",
        }

    def test_original_is_untouched(self):
        headers = {"authorization": "secret"}
        redact_sensitive_headers(headers)
        assert headers == {"authorization": "secret"}


class TestSessionLogFields:
    """Path parameters are reported under the session field names."""

    def test_maps_path_params(self):
        params = {"source": "portalA", "session_type": "main_session", "session_id": "abc"}
        assert session_log_fields(params) == {
            "source": "portalA",
            "type": "main_session",
            "session_id": "abc",
        }

    def test_ignores_missing_and_unrelated_params(self):
        assert session_log_fields({"source": "portalA", "other": "x"}) == {"source": "portalA"}
        assert session_log_fields({}) == {}


class TestRequestLoggingMiddleware:
    """One event per request, tagged with the session it addressed."""

    def test_point_request_is_tagged_with_session(self, client, log_stream):
        client.get("/api/sessions/portalA/main_session/ghost")

        [event] = completed(log_stream)
        assert event["method"] == "GET"
        assert event["route"] == POINT_ROUTE
        assert event["status"] == 404
        assert event["level"] == "info"
        assert event["source"] == "portalA"
        assert event["type"] == "main_session"
        assert event["session_id"] == "ghost"
        assert "duration_ms" in event

    def test_collection_request_has_no_session_id(self, client, log_stream):
        client.post("/api/sessions/portalA/main_session", content='{"k": "v"}')

        [event] = completed(log_stream)
        assert event["route"] == "/api/sessions/{source}/{session_type}"
        assert event["status"] == 200
        assert "session_id" not in event

    def test_headers_are_logged_redacted_at_debug(self, client, log_stream):
        client.get("/health", headers={"Authorization": "Bearer secret"})

        assert "Bearer secret" not in log_stream.getvalue()
        [event] = completed(log_stream)
        assert event["route"] == "/health"

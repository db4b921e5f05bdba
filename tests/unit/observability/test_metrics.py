"""
Tests for Prometheus metrics.
"""

from types import SimpleNamespace

import pytest
from prometheus_client import REGISTRY

from session_service.observability.metrics import (
    UNMATCHED_ROUTE,
    MetricsMiddleware,
    generate_metrics,
    record_deduplication,
    record_session_operation,
    route_template,
)

POINT_ROUTE = "/api/sessions/{source}/{session_type}/{session_id}"


def request_paths():
    """Every path label recorded so far on the request counter."""
    return {
        sample.labels["path"]
        for metric in REGISTRY.collect()
        if metric.name == "session_service_requests"
        for sample in metric.samples
        if sample.name == "session_service_requests_total"
    }


class TestRouteTemplate:
    """Requests are labelled by the route that handled them."""

    def test_matched_route(self):
        scope = {"path": "/api/sessions/a/b/c", "route": SimpleNamespace(path=POINT_ROUTE)}
        assert route_template(scope) == POINT_ROUTE

    def test_unmatched_request(self):
        assert route_template({"path": "/nowhere/custom-id-1"}) == UNMATCHED_ROUTE


class TestSessionMetrics:
    """Session counters."""

    def test_record_session_operation(self):
        labels = {"type": "main_session", "operation": "add", "outcome": "ok"}
        before = REGISTRY.get_sample_value("session_service_session_operations_total", labels) or 0

        record_session_operation("main_session", "add", "ok")

        after = REGISTRY.get_sample_value("session_service_session_operations_total", labels)
        assert after == before + 1

    def test_record_deduplication(self):
        labels = {"type": "virtual_cohort"}
        before = REGISTRY.get_sample_value("session_service_session_deduplications_total", labels) or 0

        record_deduplication("virtual_cohort")

        after = REGISTRY.get_sample_value("session_service_session_deduplications_total", labels)
        assert after == before + 1

    def test_generate_metrics(self):
        record_session_operation("main_session", "get", "ok")
        assert "session_service_session_operations_total" in generate_metrics()


class TestMetricsMiddleware:
    """The ASGI middleware counts HTTP requests."""

    @pytest.mark.asyncio
    async def test_counts_request(self):
        async def app(scope, receive, send):
            scope["route"] = SimpleNamespace(path=POINT_ROUTE)
            await send({"type": "http.response.start", "status": 204, "headers": []})
            await send({"type": "http.response.body", "body": b""})

        async def send(message):
            pass

        labels = {"method": "DELETE", "path": POINT_ROUTE, "status": "204"}
        before = REGISTRY.get_sample_value("session_service_requests_total", labels) or 0

        middleware = MetricsMiddleware(app)
        scope = {
            "type": "http",
            "method": "DELETE",
            "path": "/api/sessions/portalA/main_session/5f0c3a9e2b7d4c1a8e6f0b3d2c1a9e8f",
        }
        await middleware(scope, None, send)

        after = REGISTRY.get_sample_value("session_service_requests_total", labels)
        assert after == before + 1

    @pytest.mark.asyncio
    async def test_excluded_path_is_not_counted(self):
        calls = []

        async def app(scope, receive, send):
            calls.append(scope["path"])

        labels = {"method": "GET", "path": "/metrics", "status": "500"}
        before = REGISTRY.get_sample_value("session_service_requests_total", labels)

        await MetricsMiddleware(app)({"type": "http", "method": "GET", "path": "/metrics"}, None, None)

        assert calls == ["/metrics"]
        assert REGISTRY.get_sample_value("session_service_requests_total", labels) == before

    def test_sources_and_ids_share_one_label(self, client):
        before = request_paths()

        for i in range(5):
            client.get(f"/api/sessions/src-{i}/main_session/custom-id-{i}")
        client.get("/api/sessions/src-9/main_session/query", params={"field": "k", "value": "v"})
        client.get("/no/such/route/custom-id-7")

        added = request_paths() - before
        assert added <= {
            POINT_ROUTE,
            "/api/sessions/{source}/{session_type}/query",
            UNMATCHED_ROUTE,
        }
        assert POINT_ROUTE in request_paths()
        assert not any("custom-id" in path or "src-" in path for path in request_paths())

"""
Unit tests for API endpoints.

Tests endpoint behavior using FastAPI TestClient over the seeded in-memory store.
"""

import json
import logging
import re

import pytest
from fastapi.testclient import TestClient

from calendar_engine import __version__
from calendar_engine.api.main import app
from calendar_engine.api.middleware import RequestIdFilter
from calendar_engine.api.tools import TOOLS
from calendar_engine.services.calendar_service import set_calendar_service


@pytest.fixture
def client(service):
    """Create test client with the seeded calendar service installed."""
    set_calendar_service(service)
    with TestClient(app) as client:
        yield client


class TestHealthEndpoint:
    """Test /health endpoint."""

    def test_health_check(self, client):
        """Test health check returns healthy status."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert data["service_ready"] is True
        assert "store_provider" in data

    def test_health_check_has_request_id(self, client):
        """Test health check includes request ID and timing headers."""
        response = client.get("/health")

        assert re.fullmatch(r"[0-9a-f]{8}", response.headers["X-Request-ID"])
        assert response.headers["X-Response-Time"].endswith("s")

    def test_request_ids_differ(self, client):
        first = client.get("/health").headers["X-Request-ID"]
        second = client.get("/health").headers["X-Request-ID"]
        assert first != second

    def test_unhealthy_before_startup(self):
        """Without the lifespan the service is not ready."""
        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "unhealthy"


class TestToolDiscovery:
    """Test GET /tools endpoints."""

    def test_list_tools(self, client):
        response = client.get("/tools")

        assert response.status_code == 200
        assert set(response.json()["tools"]) == set(TOOLS)

    def test_describe_tool(self, client):
        response = client.get("/tools/create_event")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "create_event"
        assert data["description"]
        assert {"title", "start_time", "recurrence"} <= set(data["arguments"]["properties"])
        assert "title" in data["arguments"]["required"]

    def test_describe_unknown_tool(self, client):
        response = client.get("/tools/make_coffee")

        assert response.status_code == 404
        assert response.json() == {"content": "Error: Unknown tool: make_coffee", "is_error": True}


class TestRunTool:
    """Test POST /tools/{name} endpoint."""

    def test_run_tool(self, client):
        """Test a successful tool call returns JSON content."""
        response = client.post("/tools/list_calendars", json={"type": "reminder"})

        assert response.status_code == 200
        body = response.json()
        assert body["is_error"] is False
        assert json.loads(body["content"])["count"] == 2

    def test_run_tool_without_body(self, client):
        response = client.post("/tools/list_calendars")

        assert response.status_code == 200
        assert json.loads(response.json()["content"])["count"] == 6

    def test_create_then_list(self, client):
        created = client.post(
            "/tools/create_event",
            json={
                "title": "Dentist",
                "start_time": "2026-02-06T14:00",
                "calendar_name": "Personal",
            },
        )
        listed = client.post(
            "/tools/list_events",
            json={"start_date": "2026-02-06", "end_date": "2026-02-07"},
        )

        assert created.json()["is_error"] is False
        events = json.loads(listed.json()["content"])["events"]
        assert [e["title"] for e in events] == ["Dentist"]

    def test_tool_error_is_200(self, client):
        """Test tool failures are reported in the body, not the status."""
        response = client.post(
            "/tools/create_event",
            json={"title": "Sync", "start_time": "2026-02-06T14:00", "calendar_name": "Work"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["is_error"] is True
        assert body["content"].startswith("Error: Multiple calendars named 'Work'")

    def test_validation_error(self, client):
        response = client.post("/tools/create_event", json={"start_time": "2026-02-06T14:00"})

        assert response.status_code == 200
        assert response.json() == {
            "content": "Error: Invalid parameter: title is required",
            "is_error": True,
        }

    def test_unknown_tool(self, client):
        response = client.post("/tools/make_coffee", json={})

        assert response.status_code == 404
        assert response.json()["content"] == "Error: Unknown tool: make_coffee"

    def test_service_not_ready(self):
        """Test tool calls fail with 503 before startup."""
        response = TestClient(app).post("/tools/list_calendars", json={})

        assert response.status_code == 503
        body = response.json()
        assert body["is_error"] is True
        assert "not initialized" in body["content"]


class TestRequestTracking:
    """Test request ids and request logging."""

    def test_caller_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "agent-42.call_7"})
        assert response.headers["X-Request-ID"] == "agent-42.call_7"

    @pytest.mark.parametrize("supplied", ["", "has spaces", "x" * 65, "semi;colon"])
    def test_unusable_request_id_replaced(self, client, supplied):
        response = client.get("/health", headers={"X-Request-ID": supplied})
        assert re.fullmatch(r"[0-9a-f]{8}", response.headers["X-Request-ID"])

    def test_tool_logs_carry_request_id(self, client, caplog):
        """Records written while a tool runs are stamped with the request id."""
        caplog.set_level(logging.INFO)
        caplog.handler.addFilter(RequestIdFilter())

        client.post(
            "/tools/create_event",
            json={"title": "Dentist", "start_time": "2026-02-06T14:00", "calendar_name": "Personal"},
            headers={"X-Request-ID": "req-1"},
        )

        created = [r for r in caplog.records if r.getMessage().startswith("Created event")]
        completed = [r for r in caplog.records if r.name == "calendar_engine.api.middleware"]
        assert [r.request_id for r in created] == ["req-1"]
        assert completed[-1].getMessage().startswith("tool create_event -> 200 in ")
        assert completed[-1].request_id == "req-1"

    def test_other_requests_labelled_by_path(self, client, caplog):
        caplog.set_level(logging.INFO, logger="calendar_engine.api.middleware")

        client.get("/tools")

        completed = [r for r in caplog.records if r.name == "calendar_engine.api.middleware"]
        assert completed[-1].getMessage().startswith("GET /tools -> 200 in ")

    def test_request_id_outside_request(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "message", None, None)

        assert RequestIdFilter().filter(record) is True
        assert record.request_id == "-"

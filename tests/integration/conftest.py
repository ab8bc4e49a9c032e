"""
Integration test fixtures for Calendar Engine.

Workflows run over HTTP against a real SQL-backed local store (in-memory
SQLite) with a fixed clock, so every layer from request validation down to
the database is exercised.
"""

import json
from datetime import datetime, timezone
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from calendar_engine.api.main import app
from calendar_engine.config import Settings
from calendar_engine.database import create_db_engine, create_session_factory, init_db
from calendar_engine.integrations.local import LocalCalendarRepository
from calendar_engine.services.calendar_service import CalendarService, set_calendar_service

UTC = timezone.utc

# Monday
INTEGRATION_NOW = datetime(2026, 2, 2, 8, 0, tzinfo=UTC)


@pytest.fixture
def local_repository():
    """SQL-backed store over a fresh in-memory database."""
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    repository = LocalCalendarRepository(create_session_factory(engine), tz=UTC)
    yield repository
    repository._executor.shutdown(wait=True)
    engine.dispose()


@pytest.fixture
def local_service(local_repository) -> CalendarService:
    settings = Settings(
        _env_file=None,
        store_provider="local",
        timezone="UTC",
        week_starts_on="monday",
    )
    return CalendarService(
        local_repository, settings, tz=UTC, clock=lambda: INTEGRATION_NOW
    )


@pytest.fixture
def integration_api_client(local_service):
    """TestClient with the local-store service installed."""
    set_calendar_service(local_service)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def call_tool(integration_api_client) -> Callable:
    """
    Factory: call_tool(name, **arguments) -> parsed result.

    JSON results are decoded; sentence results (deletes) come back as text.
    Tool errors fail the test unless expect_error=True, in which case the
    error text is returned.
    """

    def call(name: str, expect_error: bool = False, **arguments):
        response = integration_api_client.post(f"/tools/{name}", json=arguments)
        assert response.status_code == 200
        body = response.json()
        assert body["is_error"] is expect_error, body["content"]
        if expect_error:
            return body["content"]
        try:
            return json.loads(body["content"])
        except json.JSONDecodeError:
            return body["content"]

    return call


@pytest.fixture
def family_calendars(call_tool):
    """Event calendars Home and Work, and a Chores reminder list."""
    call_tool("create_calendar", title="Home", color="#3366FF")
    call_tool("create_calendar", title="Work")
    call_tool("create_calendar", title="Chores", type="reminder")

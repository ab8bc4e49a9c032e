"""
Pytest configuration and fixtures for Calendar Engine tests.

Provides a seeded in-memory store, a fixed clock and UTC settings so that
every test sees the same calendars and the same "now".
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from calendar_engine.config import Settings
from calendar_engine.integrations.base import Calendar, EntityKind, Event, Reminder
from calendar_engine.integrations.memory import InMemoryCalendarStore
from calendar_engine.services.calendar_service import CalendarService, reset_calendar_service

UTC = timezone.utc

# Thursday
FIXED_NOW = datetime(2026, 1, 29, 12, 0, tzinfo=UTC)


def _at(day: int, hour: int, minute: int = 0, month: int = 1) -> datetime:
    """Instant in January 2026 (UTC) by day of month and time."""
    return datetime(2026, month, day, hour, minute, tzinfo=UTC)


def _make_event(
    calendar: Calendar,
    title: str,
    start: datetime,
    end: Optional[datetime] = None,
    **fields,
) -> Event:
    return Event(
        id=None,
        title=title,
        start_time=start,
        end_time=end or start + timedelta(hours=1),
        calendar=calendar,
        **fields,
    )


def _make_reminder(calendar: Calendar, title: str, **fields) -> Reminder:
    return Reminder(id=None, title=title, calendar=calendar, **fields)


@pytest.fixture(autouse=True)
def reset_service_singleton():
    """Each test starts without a cached calendar service."""
    reset_calendar_service()
    yield
    reset_calendar_service()


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the environment and any .env file."""
    return Settings(
        _env_file=None,
        python_env="development",
        store_provider="memory",
        timezone="UTC",
        week_starts_on="monday",
    )


@pytest.fixture
def store() -> InMemoryCalendarStore:
    """
    In-memory store with two sources.

    Calendars:
    - Work (iCloud), Work (Google), Personal (iCloud)
    - Holidays (Google, subscribed, read-only)
    - Reminder lists: Tasks (iCloud), Groceries (iCloud)
    """
    store = InMemoryCalendarStore(sources=("iCloud", "Google"))
    store.add_calendar("Work", source="iCloud", default=True)
    store.add_calendar("Work", source="Google")
    store.add_calendar("Personal", source="iCloud", color="#00FF00")
    store.add_calendar("Holidays", source="Google", read_only=True, subscribed=True)
    store.add_calendar("Tasks", kind=EntityKind.REMINDER, source="iCloud", default=True)
    store.add_calendar("Groceries", kind=EntityKind.REMINDER, source="iCloud")
    return store


def calendar_named(
    store: InMemoryCalendarStore,
    title: str,
    source: str = "iCloud",
    kind: EntityKind = EntityKind.EVENT,
) -> Calendar:
    """Look up a seeded calendar synchronously."""
    for calendar in store._calendars.values():
        if calendar.title == title and calendar.source == source and calendar.kind == kind:
            return calendar
    raise LookupError(f"No seeded calendar {title} ({source})")


@pytest.fixture
def work(store) -> Calendar:
    return calendar_named(store, "Work", "iCloud")


@pytest.fixture
def work_google(store) -> Calendar:
    return calendar_named(store, "Work", "Google")


@pytest.fixture
def personal(store) -> Calendar:
    return calendar_named(store, "Personal", "iCloud")


@pytest.fixture
def holidays(store) -> Calendar:
    return calendar_named(store, "Holidays", "Google")


@pytest.fixture
def tasks(store) -> Calendar:
    return calendar_named(store, "Tasks", "iCloud", EntityKind.REMINDER)


@pytest.fixture
def groceries(store) -> Calendar:
    return calendar_named(store, "Groceries", "iCloud", EntityKind.REMINDER)


@pytest.fixture
def service(store, settings) -> CalendarService:
    """Calendar service over the seeded store with a fixed clock."""
    return CalendarService(store, settings, tz=UTC, clock=lambda: FIXED_NOW)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def at():
    """Factory: at(day, hour, minute=0, month=1) -> UTC instant in 2026."""
    return _at


@pytest.fixture
def make_event():
    """Factory for unsaved events: make_event(calendar, title, start, end=None, **fields)."""
    return _make_event


@pytest.fixture
def make_reminder():
    """Factory for unsaved reminders: make_reminder(calendar, title, **fields)."""
    return _make_reminder

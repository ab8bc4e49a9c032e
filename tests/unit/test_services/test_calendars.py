"""
Unit tests for calendar resolution and source disambiguation.
"""

import pytest

from calendar_engine.errors import (
    AmbiguousCalendarError,
    CalendarNotFoundError,
    CalendarNotFoundInSourceError,
)
from calendar_engine.integrations.base import Calendar, EntityKind
from calendar_engine.services.calendars import resolve, resolve_all


def calendar(id: str, title: str, source: str) -> Calendar:
    return Calendar(id=id, title=title, kind=EntityKind.EVENT, source=source)


@pytest.fixture
def calendars():
    return [
        calendar("1", "Work", "B"),
        calendar("2", "Work", "A"),
        calendar("3", "Personal", "A"),
    ]


class TestResolve:
    """Single-result resolution."""

    def test_unique_name(self, calendars):
        assert resolve(calendars, "Personal").id == "3"

    def test_ambiguous_without_source(self, calendars):
        with pytest.raises(AmbiguousCalendarError) as exc_info:
            resolve(calendars, "Work")

        error = exc_info.value
        assert error.sources == ["A", "B"]
        assert "found in sources: A, B" in error.message
        assert "calendar_source" in error.message

    def test_source_disambiguates(self, calendars):
        assert resolve(calendars, "Work", "A").id == "2"
        assert resolve(calendars, "Work", "B").id == "1"

    def test_title_match_is_exact(self, calendars):
        with pytest.raises(CalendarNotFoundError):
            resolve(calendars, "work")

    def test_not_found(self, calendars):
        with pytest.raises(CalendarNotFoundError) as exc_info:
            resolve(calendars, "Family")
        assert exc_info.value.message == "Calendar not found: Family"

    def test_not_found_in_source(self, calendars):
        with pytest.raises(CalendarNotFoundInSourceError) as exc_info:
            resolve(calendars, "Personal", "B")
        assert exc_info.value.message == "Calendar 'Personal' not found in source 'B'"

    def test_not_found_in_source_is_not_found(self, calendars):
        """Callers catching CalendarNotFoundError also see the source variant."""
        with pytest.raises(CalendarNotFoundError):
            resolve(calendars, "Family", "A")

    def test_duplicate_within_source_takes_first(self):
        calendars = [calendar("1", "Work", "A"), calendar("2", "Work", "A")]
        assert resolve(calendars, "Work", "A").id == "1"


class TestResolveAll:
    """Multi-result resolution used for aggregation."""

    def test_returns_every_match(self, calendars):
        assert [c.id for c in resolve_all(calendars, "Work")] == ["1", "2"]

    def test_restricted_to_source(self, calendars):
        assert [c.id for c in resolve_all(calendars, "Work", "A")] == ["2"]

    def test_empty_raises(self, calendars):
        with pytest.raises(CalendarNotFoundError):
            resolve_all(calendars, "Family")

"""
Unit tests for API response builder.

Tests transformation of engine entities to wire dicts.
"""

import json
from datetime import timedelta, timezone

from dateutil import tz

from calendar_engine.api.response_builder import (
    alarm_to_dict,
    calendar_to_dict,
    duplicate_to_dict,
    event_to_dict,
    format_result,
    preview_to_dict,
    query_to_dict,
    recurrence_to_dict,
    reminder_to_dict,
)
from calendar_engine.integrations.base import (
    Alarm,
    LocationTrigger,
    Proximity,
    StructuredLocation,
)
from calendar_engine.services.batch import BatchPreview
from calendar_engine.services.conflicts import DuplicatePair, EventSummary
from calendar_engine.services.queries import QueryResult

BERLIN = tz.gettz("Europe/Berlin")


class TestFormatResult:

    def test_sorted_and_indented(self):
        text = format_result({"b": 1, "a": {"d": 2, "c": 3}})

        assert text == json.dumps({"a": {"c": 3, "d": 2}, "b": 1}, indent=2)
        assert text.index('"a"') < text.index('"b"')

    def test_non_ascii_kept(self):
        assert "Café" in format_result({"title": "Café"})


class TestCalendarToDict:

    def test_flags(self, holidays):
        data = calendar_to_dict(holidays)

        assert data["title"] == "Holidays"
        assert data["type"] == "event"
        assert data["source"] == "Google"
        assert data["read_only"] is True
        assert data["allows_modifications"] is False

    def test_color(self, personal):
        assert calendar_to_dict(personal)["color"] == "#00FF00"


class TestEventToDict:
    """Test event_to_dict function."""

    def test_minimal_event(self, personal, make_event, at):
        event = make_event(personal, "Dentist", at(6, 14, month=2))
        event.id = "evt_1"

        data = event_to_dict(event, BERLIN)

        assert data == {
            "id": "evt_1",
            "title": "Dentist",
            "start_time": "2026-02-06T15:00:00+01:00",
            "end_time": "2026-02-06T16:00:00+01:00",
            "all_day": False,
            "calendar": "Personal",
            "calendar_source": "iCloud",
            "is_recurring": False,
        }

    def test_optional_fields(self, personal, make_event, at):
        event = make_event(
            personal,
            "Dentist",
            at(6, 14, month=2),
            notes="Cleaning",
            location="Main St",
            structured_location=StructuredLocation("Clinic", 52.5, 13.4, radius=100.0),
            url="https://example.com/booking",
            alarms=[Alarm.minutes_before(15)],
        )

        data = event_to_dict(event)

        assert data["notes"] == "Cleaning"
        assert data["location"] == "Main St"
        assert data["structured_location"] == {
            "title": "Clinic", "latitude": 52.5, "longitude": 13.4, "radius": 100.0,
        }
        assert data["url"] == "https://example.com/booking"
        assert data["alarms"] == [{"minutes_before": 15}]

    def test_recurring_occurrence(self, work, make_event, at):
        occurrence = at(3, 9, month=2)
        event = make_event(
            work,
            "Standup",
            occurrence,
            occurrence + timedelta(minutes=15),
            recurrence_rule="FREQ=DAILY;COUNT=5",
            occurrence_date=occurrence,
        )

        data = event_to_dict(event, timezone.utc)

        assert data["is_recurring"] is True
        assert data["recurrence"] == {
            "frequency": "daily",
            "interval": 1,
            "occurrence_count": 5,
            "rule": "FREQ=DAILY;COUNT=5",
        }
        assert data["occurrence_date"] == "2026-02-03T09:00:00+00:00"


class TestRecurrenceToDict:

    def test_until_rendered_in_zone(self):
        data = recurrence_to_dict("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;UNTIL=20260301T000000Z", BERLIN)

        assert data == {
            "frequency": "weekly",
            "interval": 2,
            "days_of_week": [2, 4],
            "end_date": "2026-03-01T01:00:00+01:00",
            "rule": "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;UNTIL=20260301T000000Z",
        }

    def test_unparseable_rule_keeps_raw_form(self):
        assert recurrence_to_dict("INTERVAL=2") == {"rule": "INTERVAL=2"}


class TestAlarmToDict:

    def test_relative_alarm(self):
        assert alarm_to_dict(Alarm.minutes_before(30)) == {"minutes_before": 30}

    def test_location_alarm(self):
        trigger = LocationTrigger(StructuredLocation("Home", 1.0, 2.0), Proximity.LEAVE)

        assert alarm_to_dict(Alarm(location_trigger=trigger)) == {
            "location_trigger": {
                "title": "Home", "latitude": 1.0, "longitude": 2.0, "proximity": "leave",
            }
        }


class TestReminderToDict:
    """Test reminder_to_dict function."""

    def test_minimal_reminder(self, tasks, make_reminder):
        reminder = make_reminder(tasks, "Taxes")
        reminder.id = "rem_1"

        assert reminder_to_dict(reminder) == {
            "id": "rem_1",
            "title": "Taxes",
            "list": "Tasks",
            "list_source": "iCloud",
            "priority": 0,
            "priority_label": "none",
            "completed": False,
            "due_date": None,
        }

    def test_completed_reminder(self, groceries, make_reminder, at):
        reminder = make_reminder(
            groceries,
            "Buy milk",
            priority=9,
            completed=True,
            completion_date=at(29, 12),
            due_date=at(29, 9),
            notes="Oat",
        )

        data = reminder_to_dict(reminder, BERLIN)

        assert data["priority_label"] == "low"
        assert data["completion_date"] == "2026-01-29T13:00:00+01:00"
        assert data["due_date"] == "2026-01-29T10:00:00+01:00"
        assert data["notes"] == "Oat"

    def test_location_trigger(self, tasks, make_reminder):
        trigger = LocationTrigger(StructuredLocation("Office", 1.0, 2.0))
        data = reminder_to_dict(make_reminder(tasks, "Badge", location_trigger=trigger))

        assert data["location_trigger"]["proximity"] == "enter"


class TestAggregates:

    def test_query_counts(self, tasks, make_reminder):
        result = QueryResult(
            items=[make_reminder(tasks, "One")],
            total_count=5,
            filtered_count=3,
        )

        data = query_to_dict(result, "reminders", reminder_to_dict)

        assert [r["title"] for r in data["reminders"]] == ["One"]
        assert (data["total_count"], data["filtered_count"], data["returned_count"]) == (5, 3, 1)

    def test_preview(self, personal, make_event, at):
        preview = BatchPreview([make_event(personal, "Gym", at(3, 7, month=2))])

        data = preview_to_dict(preview, event_to_dict)

        assert data["dry_run"] is True
        assert data["count"] == 1
        assert data["would_delete"][0]["title"] == "Gym"

    def test_duplicate_pair(self, at):
        first = EventSummary("a", "Standup", "Work", "iCloud", at(2, 9, month=2), at(2, 10, month=2))
        second = EventSummary("b", "Standup", "Work", "Google", at(2, 9, 4, month=2), at(2, 10, 4, month=2))

        data = duplicate_to_dict(DuplicatePair(first, second, 240), timezone.utc)

        assert data["time_difference_seconds"] == 240
        assert data["event1"]["calendar_source"] == "iCloud"
        assert data["event2"]["start_time"] == "2026-02-02T09:04:00+00:00"

"""
Bidirectional mapping between store records and engine entities.

Handles:
- Calendar kind strings ↔ EntityKind
- JSON payloads for alarms, structured locations and location triggers
- Excluded occurrence dates as ISO 8601 strings
"""

from datetime import datetime, tzinfo
from typing import Optional

from dateutil.parser import isoparse

from calendar_engine.integrations.base import (
    Alarm,
    Calendar,
    EntityKind,
    Event,
    LocationTrigger,
    Proximity,
    Reminder,
    StructuredLocation,
)
from calendar_engine.models import CalendarRecord, EventRecord, ReminderRecord


class LocalStoreAdapter:
    """
    Maps between SQLAlchemy records and engine dataclasses.

    Stored instants come back in UTC; when a timezone is given they are
    converted to it, so recurrence rules expand against local wall time.
    """

    def __init__(self, tz: Optional[tzinfo] = None):
        self._tz = tz

    def _localize(self, value: Optional[datetime]) -> Optional[datetime]:
        if value is None or self._tz is None:
            return value
        return value.astimezone(self._tz)

    # =========================================================================
    # Calendars
    # =========================================================================

    @staticmethod
    def to_calendar(record: CalendarRecord) -> Calendar:
        return Calendar(
            id=record.id,
            title=record.title,
            kind=EntityKind(record.kind),
            source=record.source,
            read_only=record.read_only,
            subscribed=record.subscribed,
            color=record.color,
        )

    @staticmethod
    def apply_calendar(record: CalendarRecord, calendar: Calendar) -> CalendarRecord:
        record.title = calendar.title
        record.kind = calendar.kind.value
        record.source = calendar.source
        record.color = calendar.color
        record.read_only = calendar.read_only
        record.subscribed = calendar.subscribed
        return record

    # =========================================================================
    # Nested JSON payloads
    # =========================================================================

    @staticmethod
    def location_to_json(location: Optional[StructuredLocation]) -> Optional[dict]:
        if location is None:
            return None
        return {
            "title": location.title,
            "latitude": location.latitude,
            "longitude": location.longitude,
            "radius": location.radius,
        }

    @staticmethod
    def location_from_json(data: Optional[dict]) -> Optional[StructuredLocation]:
        if not data:
            return None
        return StructuredLocation(
            title=data["title"],
            latitude=data["latitude"],
            longitude=data["longitude"],
            radius=data.get("radius"),
        )

    @classmethod
    def trigger_to_json(cls, trigger: Optional[LocationTrigger]) -> Optional[dict]:
        if trigger is None:
            return None
        return {
            "location": cls.location_to_json(trigger.location),
            "proximity": trigger.proximity.value,
        }

    @classmethod
    def trigger_from_json(cls, data: Optional[dict]) -> Optional[LocationTrigger]:
        if not data:
            return None
        return LocationTrigger(
            location=cls.location_from_json(data["location"]),
            proximity=Proximity(data.get("proximity", "enter")),
        )

    @classmethod
    def alarms_to_json(cls, alarms: list[Alarm]) -> list[dict]:
        return [
            {
                "relative_offset_minutes": alarm.relative_offset_minutes,
                "location_trigger": cls.trigger_to_json(alarm.location_trigger),
            }
            for alarm in alarms
        ]

    @classmethod
    def alarms_from_json(cls, data: Optional[list]) -> list[Alarm]:
        return [
            Alarm(
                relative_offset_minutes=item.get("relative_offset_minutes"),
                location_trigger=cls.trigger_from_json(item.get("location_trigger")),
            )
            for item in data or []
        ]

    @staticmethod
    def dates_to_json(dates: list[datetime]) -> list[str]:
        return [d.isoformat() for d in dates]

    @staticmethod
    def dates_from_json(data: Optional[list]) -> list[datetime]:
        return [isoparse(d) for d in data or []]

    # =========================================================================
    # Events
    # =========================================================================

    def to_event(self, record: EventRecord) -> Event:
        return Event(
            id=record.id,
            title=record.title,
            start_time=self._localize(record.start_time),
            end_time=self._localize(record.end_time),
            calendar=self.to_calendar(record.calendar),
            all_day=record.all_day,
            notes=record.notes,
            location=record.location,
            structured_location=self.location_from_json(record.structured_location),
            url=record.url,
            alarms=self.alarms_from_json(record.alarms),
            recurrence_rule=record.recurrence_rule,
            excluded_dates=[
                self._localize(d) for d in self.dates_from_json(record.excluded_dates)
            ],
        )

    @classmethod
    def apply_event(cls, record: EventRecord, event: Event) -> EventRecord:
        record.calendar_id = event.calendar.id
        record.title = event.title
        record.start_time = event.start_time
        record.end_time = event.end_time
        record.all_day = event.all_day
        record.notes = event.notes
        record.location = event.location
        record.structured_location = cls.location_to_json(event.structured_location)
        record.url = event.url
        record.alarms = cls.alarms_to_json(event.alarms)
        record.recurrence_rule = event.recurrence_rule
        record.excluded_dates = cls.dates_to_json(event.excluded_dates)
        return record

    # =========================================================================
    # Reminders
    # =========================================================================

    def to_reminder(self, record: ReminderRecord) -> Reminder:
        return Reminder(
            id=record.id,
            title=record.title,
            calendar=self.to_calendar(record.calendar),
            notes=record.notes,
            due_date=self._localize(record.due_date),
            priority=record.priority,
            completed=record.completed,
            completion_date=self._localize(record.completion_date),
            creation_date=self._localize(record.created_at),
            alarms=self.alarms_from_json(record.alarms),
            recurrence_rule=record.recurrence_rule,
            location_trigger=self.trigger_from_json(record.location_trigger),
        )

    @classmethod
    def apply_reminder(cls, record: ReminderRecord, reminder: Reminder) -> ReminderRecord:
        record.calendar_id = reminder.calendar.id
        record.title = reminder.title
        record.notes = reminder.notes
        record.due_date = reminder.due_date
        record.priority = reminder.priority
        record.completed = reminder.completed
        record.completion_date = reminder.completion_date
        record.alarms = cls.alarms_to_json(reminder.alarms)
        record.recurrence_rule = reminder.recurrence_rule
        record.location_trigger = cls.trigger_to_json(reminder.location_trigger)
        return record

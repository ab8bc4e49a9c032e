"""
Calendar store integrations for the calendar engine.

Provides the store protocol and the entity types every backend maps to.
"""

from calendar_engine.integrations.base import (
    Alarm,
    Calendar,
    CalendarStore,
    DeleteSpan,
    EntityKind,
    Event,
    LocationTrigger,
    Proximity,
    Reminder,
    StructuredLocation,
)

__all__ = [
    "Alarm",
    "Calendar",
    "CalendarStore",
    "DeleteSpan",
    "EntityKind",
    "Event",
    "LocationTrigger",
    "Proximity",
    "Reminder",
    "StructuredLocation",
]

"""
SQLAlchemy models for the local calendar store.
"""

from calendar_engine.models.base import Base, RecordModel, UTCDateTime, get_json_type
from calendar_engine.models.calendars import CalendarRecord
from calendar_engine.models.items import EventRecord, ReminderRecord

__all__ = [
    "Base",
    "RecordModel",
    "UTCDateTime",
    "get_json_type",
    "CalendarRecord",
    "EventRecord",
    "ReminderRecord",
]

"""
Event and reminder models.

Entities:
- EventRecord: a calendar event (recurring events store the master only)
- ReminderRecord: a reminder in a reminder list

Alarms, structured locations and location triggers are stored as JSON.
"""

from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from calendar_engine.models.base import RecordModel, UTCDateTime, get_json_type

if TYPE_CHECKING:
    from calendar_engine.models.calendars import CalendarRecord


class EventRecord(RecordModel):
    """
    A calendar event.

    Recurring events keep their RRULE and the list of excluded occurrence
    starts; occurrences are expanded at query time.
    """

    __tablename__ = "events"

    calendar_id: Mapped[str] = mapped_column(
        ForeignKey("calendars.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)

    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    end_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    all_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    location: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    structured_location: Mapped[Optional[dict]] = mapped_column(
        get_json_type(),
        nullable=True,
        doc="{title, latitude, longitude, radius}"
    )

    url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    alarms: Mapped[list] = mapped_column(
        get_json_type(),
        nullable=False,
        default=list,
        doc="List of {relative_offset_minutes} / {location_trigger} objects"
    )

    recurrence_rule: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        doc="iCalendar RRULE string"
    )

    excluded_dates: Mapped[list] = mapped_column(
        get_json_type(),
        nullable=False,
        default=list,
        doc="ISO 8601 occurrence starts removed from the series"
    )

    calendar: Mapped["CalendarRecord"] = relationship(
        "CalendarRecord",
        back_populates="events",
        lazy="joined",
    )

    __table_args__ = (
        Index("idx_events_calendar_time", "calendar_id", "start_time", "end_time"),
    )


class ReminderRecord(RecordModel):
    """
    A reminder.

    due_date is kept at minute granularity; completion_date is set iff
    completed.
    """

    __tablename__ = "reminders"

    calendar_id: Mapped[str] = mapped_column(
        ForeignKey("calendars.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    due_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    completion_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    alarms: Mapped[list] = mapped_column(get_json_type(), nullable=False, default=list)

    recurrence_rule: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    location_trigger: Mapped[Optional[dict]] = mapped_column(
        get_json_type(),
        nullable=True,
        doc="{location: {title, latitude, longitude, radius}, proximity}"
    )

    calendar: Mapped["CalendarRecord"] = relationship(
        "CalendarRecord",
        back_populates="reminders",
        lazy="joined",
    )

    __table_args__ = (
        Index("idx_reminders_calendar_completed", "calendar_id", "completed"),
    )

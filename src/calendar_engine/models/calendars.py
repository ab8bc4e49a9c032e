"""
Calendar model.

Entities:
- CalendarRecord: an event calendar or reminder list in the local store
"""

from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from calendar_engine.models.base import RecordModel

# Avoid circular imports for type hints
if TYPE_CHECKING:
    from calendar_engine.models.items import EventRecord, ReminderRecord


class CalendarRecord(RecordModel):
    """
    An event calendar or reminder list.

    Titles are not unique: the same title may exist once per source, and a
    caller disambiguates by source.
    """

    __tablename__ = "calendars"

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Display name"
    )

    kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Entity kind: 'event' or 'reminder'"
    )

    source: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Account/provider the calendar belongs to"
    )

    color: Mapped[Optional[str]] = mapped_column(
        String(7),
        nullable=True,
        doc="Hex color, '#RRGGBB'"
    )

    read_only: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Items cannot be added, changed or removed"
    )

    subscribed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Subscription calendar (implies read-only)"
    )

    is_default: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Receives new items when no calendar is specified"
    )

    events: Mapped[list["EventRecord"]] = relationship(
        "EventRecord",
        back_populates="calendar",
        cascade="all, delete-orphan",
    )

    reminders: Mapped[list["ReminderRecord"]] = relationship(
        "ReminderRecord",
        back_populates="calendar",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_calendars_kind_title", "kind", "title"),
    )

    def __repr__(self) -> str:
        return f"<CalendarRecord(id={self.id}, title='{self.title}', source='{self.source}')>"

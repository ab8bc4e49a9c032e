"""
Calendar store protocol and base types.

Defines the interface for calendar/reminder storage backends (in-memory,
local database, etc.) and the normalized entities the service layer works with.
"""

from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Protocol, Sequence


class EntityKind(str, Enum):
    """Classification of a calendar: event calendar or reminder list."""

    EVENT = "event"
    REMINDER = "reminder"


class Proximity(str, Enum):
    """Geofence trigger direction."""

    ENTER = "enter"
    LEAVE = "leave"


class DeleteSpan(str, Enum):
    """Which occurrences of a recurring event a delete affects."""

    THIS = "this"
    FUTURE = "future"


@dataclass
class Calendar:
    """
    A calendar or reminder list owned by the store.

    The engine never changes calendar identity, only title and color.
    """

    id: str
    title: str
    kind: EntityKind
    source: str
    read_only: bool = False
    subscribed: bool = False
    color: Optional[str] = None

    @property
    def allows_modifications(self) -> bool:
        return not (self.read_only or self.subscribed)


@dataclass
class StructuredLocation:
    """Named geographic location with an optional geofence radius in meters."""

    title: str
    latitude: float
    longitude: float
    radius: Optional[float] = None


@dataclass
class LocationTrigger:
    """Fires when entering or leaving a geofence."""

    location: StructuredLocation
    proximity: Proximity = Proximity.ENTER


@dataclass
class Alarm:
    """
    Alarm attached to an event or reminder.

    Either a signed offset in minutes relative to the start (negative is
    before) or a location-based trigger.
    """

    relative_offset_minutes: Optional[int] = None
    location_trigger: Optional[LocationTrigger] = None

    @classmethod
    def minutes_before(cls, minutes: int) -> "Alarm":
        return cls(relative_offset_minutes=-minutes)


@dataclass
class Event:
    """
    Normalized event representation across stores.

    `id` is None until the first commit. For recurring events the store
    returns one Event per occurrence in the queried range, sharing the
    master id and carrying `occurrence_date`.
    """

    id: Optional[str]
    title: str
    start_time: datetime
    end_time: datetime
    calendar: Calendar
    all_day: bool = False
    notes: Optional[str] = None
    location: Optional[str] = None
    structured_location: Optional[StructuredLocation] = None
    url: Optional[str] = None
    alarms: list[Alarm] = field(default_factory=list)
    recurrence_rule: Optional[str] = None
    excluded_dates: list[datetime] = field(default_factory=list)
    occurrence_date: Optional[datetime] = None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_rule is not None

    @property
    def duration(self):
        """Event duration as a timedelta."""
        return self.end_time - self.start_time


@dataclass
class Reminder:
    """
    Normalized reminder representation across stores.

    Invariant: completion_date is set iff completed is True.
    """

    id: Optional[str]
    title: str
    calendar: Calendar
    notes: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: int = 0
    completed: bool = False
    completion_date: Optional[datetime] = None
    creation_date: Optional[datetime] = None
    alarms: list[Alarm] = field(default_factory=list)
    recurrence_rule: Optional[str] = None
    location_trigger: Optional[LocationTrigger] = None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_rule is not None


class CalendarStore(Protocol):
    """
    Protocol for calendar/reminder storage backends.

    Implementations:
    - InMemoryCalendarStore: dict-backed, used for tests and ephemeral use
    - LocalCalendarRepository: SQLAlchemy-backed local database

    All methods are async; consent requests may suspend indefinitely.
    """

    @abstractmethod
    async def request_access(self, kind: EntityKind) -> bool:
        """
        Ask the user for access to an entity kind.

        Returns:
            True if access was granted
        """
        ...

    @abstractmethod
    async def refresh_sources(self) -> None:
        """Re-synchronize externally sourced calendars."""
        ...

    @abstractmethod
    async def sources(self) -> list[str]:
        """Names of the accounts/providers calendars can live in."""
        ...

    @abstractmethod
    async def calendars(self, kind: EntityKind) -> list[Calendar]:
        """All calendars of one entity kind."""
        ...

    @abstractmethod
    async def calendar_by_id(self, calendar_id: str) -> Optional[Calendar]:
        ...

    @abstractmethod
    async def default_calendar(self, kind: EntityKind) -> Optional[Calendar]:
        """Calendar new items land in when none is specified."""
        ...

    @abstractmethod
    async def save_calendar(self, calendar: Calendar) -> Calendar:
        """
        Create or update a calendar.

        Returns:
            Saved calendar with assigned ID
        """
        ...

    @abstractmethod
    async def remove_calendar(self, calendar_id: str) -> None:
        """Delete a calendar together with all of its items."""
        ...

    @abstractmethod
    async def events_in_range(
        self,
        start: datetime,
        end: datetime,
        calendar_ids: Optional[Sequence[str]] = None,
    ) -> list[Event]:
        """
        Get events overlapping [start, end).

        Recurring events are expanded into occurrences.

        Args:
            start: Range start (inclusive)
            end: Range end (exclusive)
            calendar_ids: Calendars to query (all event calendars if None)
        """
        ...

    @abstractmethod
    async def event_by_id(self, event_id: str) -> Optional[Event]:
        """Get the stored (master) event, or None if not found."""
        ...

    @abstractmethod
    async def save_event(self, event: Event) -> Event:
        """
        Create (id is None) or update an event.

        Returns:
            Saved event with assigned ID
        """
        ...

    @abstractmethod
    async def remove_event(
        self,
        event_id: str,
        span: DeleteSpan = DeleteSpan.THIS,
        occurrence_start: Optional[datetime] = None,
    ) -> None:
        """
        Delete an event, one occurrence, or an occurrence and all after it.

        Without occurrence_start the whole item is removed.
        """
        ...

    @abstractmethod
    async def reminders(
        self,
        calendar_ids: Optional[Sequence[str]] = None,
    ) -> list[Reminder]:
        """All reminders in the given lists (all lists if None)."""
        ...

    @abstractmethod
    async def reminder_by_id(self, reminder_id: str) -> Optional[Reminder]:
        ...

    @abstractmethod
    async def save_reminder(self, reminder: Reminder) -> Reminder:
        """Create (id is None) or update a reminder."""
        ...

    @abstractmethod
    async def remove_reminder(self, reminder_id: str) -> None:
        ...

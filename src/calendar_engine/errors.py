"""
Custom exceptions for calendar engine operations.

Every error carries a human-readable message sufficient for the caller to
self-correct. There are no structured error codes on the wire, only text.
"""

from typing import Iterable, Optional


class CalendarEngineError(Exception):
    """Base exception for calendar engine operations."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class AccessDeniedError(CalendarEngineError):
    """
    The store refused access for an entity kind.

    Causes:
    - User declined the consent prompt
    - Access was revoked in system settings before process start
    """

    def __init__(self, kind: str):
        label = "Calendar" if kind == "event" else "Reminders"
        super().__init__(
            f"{label} access denied. Please grant permission in "
            f"System Settings > Privacy & Security > {label}"
        )
        self.kind = kind


class CalendarNotFoundError(CalendarEngineError):
    """No calendar with the given name (or identifier) exists."""

    def __init__(self, name: str):
        super().__init__(f"Calendar not found: {name}")
        self.name = name


class CalendarNotFoundInSourceError(CalendarNotFoundError):
    """No calendar with the given name exists in the requested source."""

    def __init__(self, name: str, source: str):
        CalendarEngineError.__init__(
            self, f"Calendar '{name}' not found in source '{source}'"
        )
        self.name = name
        self.source = source


class AmbiguousCalendarError(CalendarEngineError):
    """
    More than one calendar matches a name and no source was given.

    The message lists the candidate sources so the caller can retry with
    calendar_source.
    """

    def __init__(self, name: str, sources: Iterable[str]):
        self.sources = sorted(sources)
        super().__init__(
            f"Multiple calendars named '{name}' found in sources: "
            f"{', '.join(self.sources)}. Specify calendar_source to choose one."
        )
        self.name = name


class EventNotFoundError(CalendarEngineError):
    """Event was deleted or the identifier is invalid."""

    def __init__(self, identifier: str):
        super().__init__(f"Event not found: {identifier}")
        self.identifier = identifier


class ReminderNotFoundError(CalendarEngineError):
    """Reminder was deleted or the identifier is invalid."""

    def __init__(self, identifier: str):
        super().__init__(f"Reminder not found: {identifier}")
        self.identifier = identifier


class CalendarNameRequiredError(CalendarEngineError):
    """Creation requires an explicit target calendar."""

    def __init__(self, kind: str = "event"):
        target = "calendar" if kind == "event" else "reminder list"
        super().__init__(
            f"calendar_name is required: specify which {target} to create the item in"
        )
        self.kind = kind


class InvalidTimeRangeError(CalendarEngineError):
    """Start is not before end on a timed event."""

    def __init__(self, start: str, end: str):
        super().__init__(
            f"Invalid time range: start ({start}) must be before end ({end})"
        )
        self.start = start
        self.end = end


class InvalidDateError(CalendarEngineError):
    """A date string matched none of the supported formats."""

    def __init__(self, value: str):
        super().__init__(
            f"Invalid date: '{value}'. Use ISO 8601 with timezone "
            "(2026-02-06T14:00:00+08:00), without timezone (2026-02-06T14:00:00), "
            "date only (2026-02-06) or time only (14:00)"
        )
        self.value = value


class InvalidParameterError(CalendarEngineError):
    """Missing or malformed argument."""

    def __init__(self, message: str):
        super().__init__(f"Invalid parameter: {message}")
        self.detail = message


class UnknownOperationError(CalendarEngineError):
    """No tool is registered under the requested name."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class StoreError(CalendarEngineError):
    """
    The store rejected an operation.

    Causes:
    - Write to a read-only or subscribed calendar
    - Backend failure while committing
    """

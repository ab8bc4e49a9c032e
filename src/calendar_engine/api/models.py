"""
Pydantic argument models for every tool.

Arguments arrive as JSON objects; each tool validates them against its model
before the service runs. Validation failures surface as InvalidParameterError
with a message naming the offending field.
"""

from typing import Any, Callable, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from calendar_engine.errors import InvalidParameterError
from calendar_engine.integrations.base import (
    EntityKind,
    LocationTrigger,
    Proximity,
    StructuredLocation,
)
from calendar_engine.services.recurrence import RecurrenceRuleInput

CalendarType = Literal["event", "reminder"]


class ToolArguments(BaseModel):
    """Base for tool argument models. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")


def validate_arguments(model_cls: type[ToolArguments], arguments: Optional[Mapping[str, Any]]):
    """
    Validate raw tool arguments against a model.

    Raises:
        InvalidParameterError: '<field> is required' or '<field>: <reason>'
    """
    try:
        return model_cls.model_validate(dict(arguments or {}))
    except ValidationError as e:
        raise InvalidParameterError(describe_validation_error(e)) from e


def describe_validation_error(error: ValidationError) -> str:
    """First validation problem as a short, field-qualified message."""
    first = error.errors()[0]
    field_name = ".".join(str(part) for part in first["loc"]) or "arguments"
    if first["type"] == "missing":
        return f"{field_name} is required"
    return f"{field_name}: {first['msg']}"


def to_kind(calendar_type: Optional[str]) -> Optional[EntityKind]:
    return EntityKind(calendar_type) if calendar_type else None


# =============================================================================
# Nested Models
# =============================================================================


class RecurrenceArgs(BaseModel):
    """Declarative recurrence; days_of_week uses 1=Sunday ... 7=Saturday."""

    frequency: Literal["daily", "weekly", "monthly", "yearly"]
    interval: int = Field(default=1, ge=1)
    days_of_week: Optional[list[int]] = None
    days_of_month: Optional[list[int]] = None
    end_date: Optional[str] = None
    occurrence_count: Optional[int] = Field(default=None, ge=1)

    def to_input(self, parse_date: Callable[[str], Any]) -> RecurrenceRuleInput:
        return RecurrenceRuleInput(
            frequency=self.frequency,
            interval=self.interval,
            days_of_week=list(self.days_of_week or []),
            days_of_month=list(self.days_of_month or []),
            end_date=parse_date(self.end_date) if self.end_date else None,
            occurrence_count=self.occurrence_count,
        )


class StructuredLocationArgs(BaseModel):
    """Named place with coordinates; radius in meters."""

    title: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius: Optional[float] = Field(default=None, ge=0)

    def to_location(self) -> StructuredLocation:
        return StructuredLocation(
            title=self.title,
            latitude=self.latitude,
            longitude=self.longitude,
            radius=self.radius,
        )


class LocationTriggerArgs(StructuredLocationArgs):
    """Geofence that fires on arrival (enter) or departure (leave)."""

    proximity: Literal["enter", "leave"] = "enter"

    def to_trigger(self) -> LocationTrigger:
        return LocationTrigger(location=self.to_location(), proximity=Proximity(self.proximity))


# =============================================================================
# Calendar Tools
# =============================================================================


class ListCalendarsArgs(ToolArguments):
    type: Optional[CalendarType] = None


class CreateCalendarArgs(ToolArguments):
    title: str
    type: CalendarType = "event"
    color: Optional[str] = None
    source: Optional[str] = None


class UpdateCalendarArgs(ToolArguments):
    calendar_name: str
    calendar_source: Optional[str] = None
    type: CalendarType = "event"
    new_name: Optional[str] = None
    color: Optional[str] = None


class DeleteCalendarArgs(ToolArguments):
    calendar_id: Optional[str] = None
    calendar_name: Optional[str] = None
    calendar_source: Optional[str] = None
    type: CalendarType = "event"


# =============================================================================
# Event Tools
# =============================================================================


class ListEventsArgs(ToolArguments):
    start_date: str
    end_date: str
    calendar_name: Optional[str] = None
    calendar_source: Optional[str] = None
    filter: str = "all"
    sort_order: str = "asc"
    limit: Optional[int] = None


class CreateEventArgs(ToolArguments):
    title: str
    start_time: str
    end_time: Optional[str] = None
    all_day: bool = False
    notes: Optional[str] = None
    location: Optional[str] = None
    structured_location: Optional[StructuredLocationArgs] = None
    url: Optional[str] = None
    calendar_name: Optional[str] = None
    calendar_source: Optional[str] = None
    alarms_minutes_offsets: Optional[list[int]] = None
    recurrence: Optional[RecurrenceArgs] = None

    @field_validator("title")
    @classmethod
    def validate_title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title cannot be empty")
        return v


class UpdateEventArgs(ToolArguments):
    event_id: str
    title: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    all_day: Optional[bool] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    structured_location: Optional[StructuredLocationArgs] = None
    url: Optional[str] = None
    calendar_name: Optional[str] = None
    calendar_source: Optional[str] = None
    alarms_minutes_offsets: Optional[list[int]] = None
    recurrence: Optional[RecurrenceArgs] = None
    clear_recurrence: bool = False
    clear_location: bool = False


class DeleteEventArgs(ToolArguments):
    event_id: str
    span: Literal["this", "future"] = "this"
    occurrence_date: Optional[str] = None


class SearchEventsArgs(ToolArguments):
    keyword: Optional[str] = None
    keywords: Optional[list[str]] = None
    match_mode: str = "any"
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    calendar_name: Optional[str] = None
    calendar_source: Optional[str] = None
    limit: Optional[int] = None


class ListEventsQuickArgs(ToolArguments):
    range: str
    week_starts_on: Optional[str] = None
    calendar_name: Optional[str] = None
    calendar_source: Optional[str] = None
    filter: str = "all"
    limit: Optional[int] = None


class CheckConflictsArgs(ToolArguments):
    start_time: str
    end_time: str
    calendar_name: Optional[str] = None
    calendar_source: Optional[str] = None
    exclude_event_id: Optional[str] = None


class CopyEventArgs(ToolArguments):
    event_id: str
    target_calendar_name: str
    target_calendar_source: Optional[str] = None
    delete_original: bool = False


class CreateEventsBatchArgs(ToolArguments):
    events: list[dict[str, Any]]


class MoveEventsBatchArgs(ToolArguments):
    event_ids: list[str]
    target_calendar_name: str
    target_calendar_source: Optional[str] = None


class DeleteEventsBatchArgs(ToolArguments):
    event_ids: Optional[list[str]] = None
    calendar_name: Optional[str] = None
    calendar_source: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    before_date: Optional[str] = None
    dry_run: Optional[bool] = None


class FindDuplicateEventsArgs(ToolArguments):
    start_date: str
    end_date: str
    calendar_names: Optional[list[str]] = None
    tolerance_minutes: Optional[int] = None


# =============================================================================
# Reminder Tools
# =============================================================================


class ListRemindersArgs(ToolArguments):
    filter: Optional[str] = None
    completed: Optional[bool] = None
    calendar_name: Optional[str] = None
    calendar_source: Optional[str] = None
    sort_by: Optional[str] = None
    limit: Optional[int] = None


class CreateReminderArgs(ToolArguments):
    title: str
    notes: Optional[str] = None
    due_date: Optional[str] = None
    priority: Optional[Union[int, str]] = None
    calendar_name: Optional[str] = None
    calendar_source: Optional[str] = None
    alarms_minutes_offsets: Optional[list[int]] = None
    recurrence: Optional[RecurrenceArgs] = None
    location_trigger: Optional[LocationTriggerArgs] = None

    @field_validator("title")
    @classmethod
    def validate_title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title cannot be empty")
        return v


class UpdateReminderArgs(ToolArguments):
    reminder_id: str
    title: Optional[str] = None
    notes: Optional[str] = None
    due_date: Optional[str] = None
    priority: Optional[Union[int, str]] = None
    calendar_name: Optional[str] = None
    calendar_source: Optional[str] = None
    alarms_minutes_offsets: Optional[list[int]] = None
    recurrence: Optional[RecurrenceArgs] = None
    location_trigger: Optional[LocationTriggerArgs] = None
    clear_due_date: bool = False
    clear_recurrence: bool = False
    clear_location_trigger: bool = False


class CompleteReminderArgs(ToolArguments):
    reminder_id: str
    completed: bool = True


class DeleteReminderArgs(ToolArguments):
    reminder_id: str


class SearchRemindersArgs(ToolArguments):
    keyword: Optional[str] = None
    keywords: Optional[list[str]] = None
    match_mode: str = "any"
    filter: Optional[str] = None
    calendar_name: Optional[str] = None
    calendar_source: Optional[str] = None
    limit: Optional[int] = None


class CreateRemindersBatchArgs(ToolArguments):
    reminders: list[dict[str, Any]]


class DeleteRemindersBatchArgs(ToolArguments):
    reminder_ids: Optional[list[str]] = None
    calendar_name: Optional[str] = None
    calendar_source: Optional[str] = None
    filter: Optional[str] = None
    before_date: Optional[str] = None
    dry_run: Optional[bool] = None


# =============================================================================
# HTTP Response Models
# =============================================================================


class ToolResponse(BaseModel):
    """Result of a tool invocation over HTTP."""

    content: str = Field(..., description="JSON text on success, 'Error: ...' on failure")
    is_error: bool = False


class ToolListResponse(BaseModel):
    tools: list[str]


class HealthResponse(BaseModel):
    status: str
    version: str
    store_provider: str
    service_ready: bool

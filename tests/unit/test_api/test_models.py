"""
Unit tests for API Pydantic models.

Tests tool argument validation and conversion to engine types.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from calendar_engine.api.models import (
    CreateEventArgs,
    CreateReminderArgs,
    DeleteEventsBatchArgs,
    HealthResponse,
    ListCalendarsArgs,
    LocationTriggerArgs,
    RecurrenceArgs,
    StructuredLocationArgs,
    ToolResponse,
    UpdateReminderArgs,
    to_kind,
    validate_arguments,
)
from calendar_engine.errors import InvalidParameterError
from calendar_engine.integrations.base import EntityKind, Proximity
from calendar_engine.services.recurrence import Frequency


class TestValidateArguments:
    """Test validate_arguments error messages."""

    def test_valid_arguments(self):
        args = validate_arguments(
            CreateEventArgs, {"title": "Dentist", "start_time": "2026-02-06T14:00"}
        )
        assert args.title == "Dentist"
        assert args.all_day is False
        assert args.end_time is None

    def test_missing_field(self):
        with pytest.raises(InvalidParameterError) as exc_info:
            validate_arguments(CreateEventArgs, {"title": "Dentist"})
        assert exc_info.value.message == "Invalid parameter: start_time is required"

    def test_none_arguments(self):
        args = validate_arguments(ListCalendarsArgs, None)
        assert args.type is None

    def test_wrong_type_names_field(self):
        with pytest.raises(InvalidParameterError) as exc_info:
            validate_arguments(
                CreateEventArgs,
                {"title": "Dentist", "start_time": "2026-02-06", "alarms_minutes_offsets": "soon"},
            )
        assert exc_info.value.message.startswith("Invalid parameter: alarms_minutes_offsets")

    def test_nested_field_path(self):
        with pytest.raises(InvalidParameterError) as exc_info:
            validate_arguments(
                CreateEventArgs,
                {
                    "title": "Dentist",
                    "start_time": "2026-02-06",
                    "recurrence": {"frequency": "weekly", "interval": 0},
                },
            )
        assert exc_info.value.message.startswith("Invalid parameter: recurrence.interval:")

    def test_unknown_keys_ignored(self):
        args = validate_arguments(ListCalendarsArgs, {"type": "event", "colour": "red"})
        assert args.type == "event"

    def test_invalid_calendar_type(self):
        with pytest.raises(InvalidParameterError) as exc_info:
            validate_arguments(ListCalendarsArgs, {"type": "task"})
        assert "type" in exc_info.value.message

    def test_original_error_kept(self):
        with pytest.raises(InvalidParameterError) as exc_info:
            validate_arguments(CreateEventArgs, {})
        assert isinstance(exc_info.value.__cause__, ValidationError)


class TestTitleValidation:
    """Test blank titles are rejected."""

    def test_blank_event_title(self):
        with pytest.raises(ValidationError):
            CreateEventArgs(title="   ", start_time="2026-02-06")

    def test_blank_reminder_title(self):
        with pytest.raises(ValidationError):
            CreateReminderArgs(title="")

    def test_title_kept_verbatim(self):
        args = CreateReminderArgs(title=" Buy milk ")
        assert args.title == " Buy milk "


class TestRecurrenceArgs:
    """Test RecurrenceArgs conversion."""

    def test_defaults(self):
        args = RecurrenceArgs(frequency="daily")
        assert args.interval == 1
        assert args.days_of_week is None

    def test_invalid_frequency(self):
        with pytest.raises(ValidationError):
            RecurrenceArgs(frequency="hourly")

    def test_invalid_count(self):
        with pytest.raises(ValidationError):
            RecurrenceArgs(frequency="daily", occurrence_count=0)

    def test_to_input(self):
        args = RecurrenceArgs(
            frequency="weekly", interval=2, days_of_week=[2, 4], end_date="2026-03-01"
        )
        until = datetime(2026, 3, 1, tzinfo=timezone.utc)

        rule_input = args.to_input(lambda value: until)

        assert rule_input.frequency == Frequency.WEEKLY
        assert rule_input.interval == 2
        assert rule_input.days_of_week == [2, 4]
        assert rule_input.days_of_month == []
        assert rule_input.end_date == until
        assert rule_input.occurrence_count is None

    def test_to_input_skips_date_parser_without_end(self):
        def parse(value):
            raise AssertionError("no end_date to parse")

        rule_input = RecurrenceArgs(frequency="monthly", days_of_month=[1, -1]).to_input(parse)

        assert rule_input.end_date is None
        assert rule_input.days_of_month == [1, -1]

    def test_conflicting_end_conditions(self):
        args = RecurrenceArgs(frequency="daily", end_date="2026-03-01", occurrence_count=3)
        with pytest.raises(InvalidParameterError):
            args.to_input(lambda value: datetime(2026, 3, 1, tzinfo=timezone.utc))


class TestLocationArgs:
    """Test location and geofence arguments."""

    def test_structured_location(self):
        location = StructuredLocationArgs(
            title="Office", latitude=52.52, longitude=13.40, radius=150
        ).to_location()

        assert location.title == "Office"
        assert location.radius == 150

    @pytest.mark.parametrize("latitude,longitude", [(91, 0), (-91, 0), (0, 181), (0, -181)])
    def test_coordinates_bounded(self, latitude, longitude):
        with pytest.raises(ValidationError):
            StructuredLocationArgs(title="Nowhere", latitude=latitude, longitude=longitude)

    def test_trigger_defaults_to_enter(self):
        trigger = LocationTriggerArgs(title="Home", latitude=1.0, longitude=2.0).to_trigger()

        assert trigger.proximity == Proximity.ENTER
        assert trigger.location.title == "Home"

    def test_trigger_leave(self):
        trigger = LocationTriggerArgs(
            title="Home", latitude=1.0, longitude=2.0, proximity="leave"
        ).to_trigger()
        assert trigger.proximity == Proximity.LEAVE


class TestToolArgumentDefaults:
    """Test defaults that change tool behavior."""

    def test_delete_batch_dry_run_unset(self):
        """Unset dry_run lets the service decide between preview and delete."""
        assert DeleteEventsBatchArgs(calendar_name="Work").dry_run is None

    def test_reminder_priority_accepts_names_and_numbers(self):
        assert CreateReminderArgs(title="A", priority="high").priority == "high"
        assert CreateReminderArgs(title="A", priority=5).priority == 5

    def test_update_reminder_clear_flags(self):
        args = UpdateReminderArgs(reminder_id="r1")
        assert (args.clear_due_date, args.clear_recurrence, args.clear_location_trigger) == (
            False,
            False,
            False,
        )

    def test_to_kind(self):
        assert to_kind("event") == EntityKind.EVENT
        assert to_kind("reminder") == EntityKind.REMINDER
        assert to_kind(None) is None


class TestResponseModels:
    """Test HTTP response models."""

    def test_tool_response_default(self):
        response = ToolResponse(content="{}")
        assert response.is_error is False

    def test_health_response(self):
        response = HealthResponse(
            status="healthy", version="0.3.0", store_provider="memory", service_ready=True
        )
        assert response.model_dump() == {
            "status": "healthy",
            "version": "0.3.0",
            "store_provider": "memory",
            "service_ready": True,
        }

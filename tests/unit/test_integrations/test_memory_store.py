"""Tests for the in-memory calendar store."""

from datetime import datetime, timedelta, timezone

import pytest

from calendar_engine.errors import (
    CalendarNotFoundError,
    EventNotFoundError,
    InvalidParameterError,
    ReminderNotFoundError,
    StoreError,
)
from calendar_engine.integrations.base import Calendar, DeleteSpan, EntityKind
from calendar_engine.integrations.memory import InMemoryCalendarStore

UTC = timezone.utc


class TestAccess:
    """Simulated consent."""

    @pytest.mark.asyncio
    async def test_grants_everything_by_default(self):
        store = InMemoryCalendarStore()
        assert await store.request_access(EntityKind.EVENT)
        assert await store.request_access(EntityKind.REMINDER)
        assert store.access_requests == [EntityKind.EVENT, EntityKind.REMINDER]

    @pytest.mark.asyncio
    async def test_configured_denial(self):
        store = InMemoryCalendarStore(grant={EntityKind.EVENT: True})
        assert not await store.request_access(EntityKind.REMINDER)

    @pytest.mark.asyncio
    async def test_refresh_is_counted(self):
        store = InMemoryCalendarStore()
        await store.refresh_sources()
        assert store.refresh_count == 1


class TestCalendars:
    """Calendar bookkeeping."""

    @pytest.mark.asyncio
    async def test_seeded_defaults(self, store):
        default = await store.default_calendar(EntityKind.EVENT)
        assert (default.title, default.source) == ("Work", "iCloud")
        assert (await store.default_calendar(EntityKind.REMINDER)).title == "Tasks"

    @pytest.mark.asyncio
    async def test_first_calendar_becomes_default(self):
        store = InMemoryCalendarStore()
        assert await store.default_calendar(EntityKind.EVENT) is None

        saved = await store.save_calendar(
            Calendar(id=None, title="Home", kind=EntityKind.EVENT, source="Local")
        )

        assert saved.id is not None
        assert (await store.default_calendar(EntityKind.EVENT)).id == saved.id

    @pytest.mark.asyncio
    async def test_unknown_source(self, store):
        with pytest.raises(StoreError) as exc_info:
            await store.save_calendar(
                Calendar(id=None, title="Home", kind=EntityKind.EVENT, source="Exchange")
            )
        assert "Unknown source: Exchange" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_returned_calendars_are_copies(self, store, personal):
        listed = await store.calendar_by_id(personal.id)
        listed.title = "Changed"
        assert (await store.calendar_by_id(personal.id)).title == "Personal"

    @pytest.mark.asyncio
    async def test_read_only_calendar_cannot_change(self, store, holidays):
        changed = Calendar(**{**holidays.__dict__, "title": "Days off"})
        with pytest.raises(StoreError):
            await store.save_calendar(changed)

    @pytest.mark.asyncio
    async def test_remove_reassigns_default(self, store, tasks, groceries):
        await store.remove_calendar(tasks.id)
        assert (await store.default_calendar(EntityKind.REMINDER)).id == groceries.id

    @pytest.mark.asyncio
    async def test_remove_subscribed(self, store, holidays):
        with pytest.raises(StoreError):
            await store.remove_calendar(holidays.id)

    @pytest.mark.asyncio
    async def test_remove_unknown(self, store):
        with pytest.raises(CalendarNotFoundError):
            await store.remove_calendar("missing")


class TestEvents:
    """Event storage and range queries."""

    @pytest.mark.asyncio
    async def test_save_assigns_id(self, store, personal, make_event, at):
        saved = await store.save_event(make_event(personal, "Gym", at(30, 7)))

        assert saved.id is not None
        assert (await store.event_by_id(saved.id)).title == "Gym"

    @pytest.mark.asyncio
    async def test_range_filters_by_calendar(self, store, work, personal, make_event, at):
        store.add_event(make_event(work, "Planning", at(30, 9)))
        store.add_event(make_event(personal, "Gym", at(30, 7)))

        events = await store.events_in_range(at(30, 0), at(31, 0), [work.id])

        assert [e.title for e in events] == ["Planning"]

    @pytest.mark.asyncio
    async def test_range_sorted_by_start(self, store, work, personal, make_event, at):
        store.add_event(make_event(work, "Planning", at(30, 9)))
        store.add_event(make_event(personal, "Gym", at(30, 7)))

        events = await store.events_in_range(at(30, 0), at(31, 0))

        assert [e.title for e in events] == ["Gym", "Planning"]

    @pytest.mark.asyncio
    async def test_mutating_result_does_not_touch_store(self, store, personal, make_event, at):
        saved = store.add_event(make_event(personal, "Gym", at(30, 7)))

        fetched = await store.event_by_id(saved.id)
        fetched.title = "Changed"

        assert (await store.event_by_id(saved.id)).title == "Gym"

    @pytest.mark.asyncio
    async def test_unknown_id_on_update(self, store, personal, make_event, at):
        event = make_event(personal, "Gym", at(30, 7))
        event.id = "missing"
        with pytest.raises(EventNotFoundError):
            await store.save_event(event)

    @pytest.mark.asyncio
    async def test_reminder_list_rejected(self, store, tasks, make_event, at):
        with pytest.raises(StoreError):
            await store.save_event(make_event(tasks, "Gym", at(30, 7)))

    @pytest.mark.asyncio
    async def test_read_only_rejected(self, store, holidays, make_event, at):
        with pytest.raises(StoreError) as exc_info:
            await store.save_event(make_event(holidays, "Party", at(30, 20)))
        assert "read-only" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_moving_out_of_read_only_rejected(self, store, holidays, personal, make_event, at):
        saved = store.add_event(make_event(holidays, "New Year", at(1, 0), at(2, 0)))
        saved.calendar = personal
        with pytest.raises(StoreError):
            await store.save_event(saved)


class TestRecurringEvents:
    """Occurrence expansion and partial deletes."""

    @pytest.fixture
    def series(self, store, personal, make_event, at):
        return store.add_event(
            make_event(
                personal, "Standup", at(2, 9, month=2), at(2, 9, 15, month=2),
                recurrence_rule="FREQ=DAILY;COUNT=5",
            )
        )

    async def days(self, store, at):
        events = await store.events_in_range(at(1, 0, month=2), at(10, 0, month=2))
        return [e.start_time.day for e in events]

    @pytest.mark.asyncio
    async def test_occurrences_share_master_id(self, store, series, at):
        events = await store.events_in_range(at(1, 0, month=2), at(10, 0, month=2))

        assert len(events) == 5
        assert {e.id for e in events} == {series.id}
        assert events[1].occurrence_date == at(3, 9, month=2)
        assert events[1].end_time - events[1].start_time == timedelta(minutes=15)

    @pytest.mark.asyncio
    async def test_remove_this(self, store, series, at):
        await store.remove_event(series.id, DeleteSpan.THIS, at(4, 9, month=2))
        assert await self.days(store, at) == [2, 3, 5, 6]

    @pytest.mark.asyncio
    async def test_remove_future(self, store, series, at):
        await store.remove_event(series.id, DeleteSpan.FUTURE, at(4, 9, month=2))
        assert await self.days(store, at) == [2, 3]

    @pytest.mark.asyncio
    async def test_remove_requires_an_occurrence_start(self, store, series, at):
        with pytest.raises(InvalidParameterError):
            await store.remove_event(series.id, DeleteSpan.THIS, at(4, 0, month=2))
        assert await self.days(store, at) == [2, 3, 4, 5, 6]

    @pytest.mark.asyncio
    async def test_remove_excluded_occurrence_again(self, store, series, at):
        await store.remove_event(series.id, DeleteSpan.THIS, at(4, 9, month=2))
        with pytest.raises(InvalidParameterError):
            await store.remove_event(series.id, DeleteSpan.FUTURE, at(4, 9, month=2))
        assert await self.days(store, at) == [2, 3, 5, 6]

    @pytest.mark.asyncio
    async def test_remove_future_from_first_removes_series(self, store, series, at):
        await store.remove_event(series.id, DeleteSpan.FUTURE, at(2, 9, month=2))
        assert await store.event_by_id(series.id) is None

    @pytest.mark.asyncio
    async def test_remove_without_occurrence(self, store, series, at):
        await store.remove_event(series.id)
        assert await self.days(store, at) == []


class TestReminders:
    """Reminder storage."""

    @pytest.mark.asyncio
    async def test_save_stamps_creation_date(self, store, tasks, make_reminder):
        saved = await store.save_reminder(make_reminder(tasks, "Taxes"))
        assert saved.creation_date is not None

    @pytest.mark.asyncio
    async def test_filter_by_list(self, store, tasks, groceries, make_reminder):
        store.add_reminder(make_reminder(tasks, "Taxes"))
        store.add_reminder(make_reminder(groceries, "Milk"))

        reminders = await store.reminders([groceries.id])

        assert [r.title for r in reminders] == ["Milk"]

    @pytest.mark.asyncio
    async def test_event_calendar_rejected(self, store, personal, make_reminder):
        with pytest.raises(StoreError):
            await store.save_reminder(make_reminder(personal, "Taxes"))

    @pytest.mark.asyncio
    async def test_remove(self, store, tasks, make_reminder):
        saved = store.add_reminder(make_reminder(tasks, "Taxes"))

        await store.remove_reminder(saved.id)

        assert await store.reminder_by_id(saved.id) is None
        with pytest.raises(ReminderNotFoundError):
            await store.remove_reminder(saved.id)

    @pytest.mark.asyncio
    async def test_removing_list_removes_reminders(self, store, groceries, make_reminder):
        store.add_reminder(make_reminder(groceries, "Milk"))
        await store.remove_calendar(groceries.id)
        assert await store.reminders() == []

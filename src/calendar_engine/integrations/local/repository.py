"""
SQL-backed calendar store.

Implements the CalendarStore protocol over SQLAlchemy. Sessions are
synchronous, so every call is dispatched to a single worker thread, which
also keeps SQLite connections on one thread.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, tzinfo
from functools import partial
from typing import Optional, Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, sessionmaker

from calendar_engine.database import session_scope
from calendar_engine.errors import (
    CalendarNotFoundError,
    EventNotFoundError,
    InvalidParameterError,
    ReminderNotFoundError,
    StoreError,
)
from calendar_engine.integrations.base import (
    Calendar,
    CalendarStore,
    DeleteSpan,
    EntityKind,
    Event,
    Reminder,
)
from calendar_engine.integrations.local.adapter import LocalStoreAdapter
from calendar_engine.models import CalendarRecord, EventRecord, ReminderRecord
from calendar_engine.models.base import new_record_id
from calendar_engine.services.recurrence import (
    expand_occurrences,
    intervals_overlap,
    is_occurrence,
    truncate_rule,
)

logger = logging.getLogger(__name__)


class LocalCalendarRepository(CalendarStore):
    """
    CalendarStore persisted in a relational database.

    The local store owns its data, so access is always granted and there
    are no external sources to refresh.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        default_source: str = "Local",
        max_recurrence_instances: int = 500,
        tz: Optional[tzinfo] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """
        Initialize the repository.

        Args:
            session_factory: Factory producing sessions bound to the store
            default_source: Source name used when no calendar exists yet
            max_recurrence_instances: Expansion cap per recurring event
            tz: Timezone returned instants are converted to
            executor: Thread pool for running sync sessions (creates default if None)
        """
        self._session_factory = session_factory
        self._default_source = default_source
        self._max_instances = max_recurrence_instances
        self._executor = executor or ThreadPoolExecutor(max_workers=1)
        self._adapter = LocalStoreAdapter(tz)

    async def _run_in_executor(self, func, *args, **kwargs):
        """Run a synchronous function in the thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            partial(func, *args, **kwargs),
        )

    def _transaction(self, func, *args):
        with session_scope(self._session_factory) as db:
            return func(db, *args)

    async def _call(self, func, *args):
        return await self._run_in_executor(self._transaction, func, *args)

    # =========================================================================
    # Access
    # =========================================================================

    async def request_access(self, kind: EntityKind) -> bool:
        return True

    async def refresh_sources(self) -> None:
        return None

    async def sources(self) -> list[str]:
        return await self._call(self._sources)

    def _sources(self, db: Session) -> list[str]:
        found = db.scalars(select(CalendarRecord.source).distinct()).all()
        names = sorted(set(found) | {self._default_source})
        return names

    # =========================================================================
    # Calendars
    # =========================================================================

    async def calendars(self, kind: EntityKind) -> list[Calendar]:
        return await self._call(self._calendars, kind)

    def _calendars(self, db: Session, kind: EntityKind) -> list[Calendar]:
        records = db.scalars(
            select(CalendarRecord)
            .where(CalendarRecord.kind == kind.value)
            .order_by(CalendarRecord.created_at)
        ).all()
        return [self._adapter.to_calendar(r) for r in records]

    async def calendar_by_id(self, calendar_id: str) -> Optional[Calendar]:
        return await self._call(self._calendar_by_id, calendar_id)

    def _calendar_by_id(self, db: Session, calendar_id: str) -> Optional[Calendar]:
        record = db.get(CalendarRecord, calendar_id)
        return self._adapter.to_calendar(record) if record else None

    async def default_calendar(self, kind: EntityKind) -> Optional[Calendar]:
        return await self._call(self._default_calendar, kind)

    def _default_calendar(self, db: Session, kind: EntityKind) -> Optional[Calendar]:
        record = db.scalars(
            select(CalendarRecord)
            .where(CalendarRecord.kind == kind.value)
            .order_by(CalendarRecord.is_default.desc(), CalendarRecord.created_at)
            .limit(1)
        ).first()
        return self._adapter.to_calendar(record) if record else None

    async def save_calendar(self, calendar: Calendar) -> Calendar:
        return await self._call(self._save_calendar, calendar)

    def _save_calendar(self, db: Session, calendar: Calendar) -> Calendar:
        if calendar.source not in self._sources(db):
            raise StoreError(f"Unknown source: {calendar.source}")

        if calendar.id:
            record = db.get(CalendarRecord, calendar.id)
            if record is None:
                raise CalendarNotFoundError(calendar.id)
            if record.read_only or record.subscribed:
                raise StoreError(f"Calendar '{record.title}' is read-only")
        else:
            has_default = db.scalars(
                select(CalendarRecord.id).where(CalendarRecord.kind == calendar.kind.value)
            ).first()
            record = CalendarRecord(id=new_record_id(), is_default=has_default is None)
            db.add(record)

        self._adapter.apply_calendar(record, calendar)
        db.flush()
        logger.debug(f"Saved calendar {record.id} ('{record.title}')")
        return self._adapter.to_calendar(record)

    async def remove_calendar(self, calendar_id: str) -> None:
        await self._call(self._remove_calendar, calendar_id)

    def _remove_calendar(self, db: Session, calendar_id: str) -> None:
        record = db.get(CalendarRecord, calendar_id)
        if record is None:
            raise CalendarNotFoundError(calendar_id)
        if record.subscribed:
            raise StoreError(
                f"Calendar '{record.title}' is a subscription and cannot be deleted"
            )

        was_default = record.is_default
        kind = record.kind
        db.delete(record)
        db.flush()

        if was_default:
            successor = db.scalars(
                select(CalendarRecord)
                .where(CalendarRecord.kind == kind)
                .order_by(CalendarRecord.created_at)
                .limit(1)
            ).first()
            if successor is not None:
                successor.is_default = True

    def _writable_calendar(self, db: Session, calendar_id: str) -> CalendarRecord:
        record = db.get(CalendarRecord, calendar_id)
        if record is None:
            raise CalendarNotFoundError(calendar_id)
        if record.read_only or record.subscribed:
            raise StoreError(f"Calendar '{record.title}' is read-only")
        return record

    # =========================================================================
    # Events
    # =========================================================================

    async def events_in_range(
        self,
        start: datetime,
        end: datetime,
        calendar_ids: Optional[Sequence[str]] = None,
    ) -> list[Event]:
        return await self._call(self._events_in_range, start, end, calendar_ids)

    def _events_in_range(
        self,
        db: Session,
        start: datetime,
        end: datetime,
        calendar_ids: Optional[Sequence[str]],
    ) -> list[Event]:
        # Single events are narrowed in SQL; recurring ones need expansion
        query = select(EventRecord).where(
            or_(
                EventRecord.recurrence_rule.is_not(None),
                and_(EventRecord.start_time <= end, EventRecord.end_time >= start),
            )
        )
        if calendar_ids is not None:
            query = query.where(EventRecord.calendar_id.in_(list(calendar_ids)))

        results = []
        for record in db.scalars(query).unique().all():
            event = self._adapter.to_event(record)

            if not event.is_recurring:
                if intervals_overlap(event.start_time, event.end_time, start, end):
                    results.append(event)
                continue

            for occurrence in expand_occurrences(
                event.recurrence_rule,
                event.start_time,
                event.duration,
                start,
                end,
                excluded=event.excluded_dates,
                max_instances=self._max_instances,
            ):
                item = self._adapter.to_event(record)
                item.start_time = occurrence
                item.end_time = occurrence + event.duration
                item.occurrence_date = occurrence
                results.append(item)

        results.sort(key=lambda e: e.start_time)
        return results

    async def event_by_id(self, event_id: str) -> Optional[Event]:
        return await self._call(self._event_by_id, event_id)

    def _event_by_id(self, db: Session, event_id: str) -> Optional[Event]:
        record = db.get(EventRecord, event_id)
        return self._adapter.to_event(record) if record else None

    async def save_event(self, event: Event) -> Event:
        return await self._call(self._save_event, event)

    def _save_event(self, db: Session, event: Event) -> Event:
        calendar = self._writable_calendar(db, event.calendar.id)
        if calendar.kind != EntityKind.EVENT.value:
            raise StoreError(f"'{calendar.title}' is not an event calendar")

        if event.id is not None:
            record = db.get(EventRecord, event.id)
            if record is None:
                raise EventNotFoundError(event.id)
            if record.calendar_id != calendar.id:
                self._writable_calendar(db, record.calendar_id)
        else:
            record = EventRecord(id=new_record_id())
            db.add(record)

        self._adapter.apply_event(record, event)
        record.calendar = calendar
        db.flush()
        return self._adapter.to_event(record)

    async def remove_event(
        self,
        event_id: str,
        span: DeleteSpan = DeleteSpan.THIS,
        occurrence_start: Optional[datetime] = None,
    ) -> None:
        await self._call(self._remove_event, event_id, span, occurrence_start)

    def _remove_event(
        self,
        db: Session,
        event_id: str,
        span: DeleteSpan,
        occurrence_start: Optional[datetime],
    ) -> None:
        record = db.get(EventRecord, event_id)
        if record is None:
            raise EventNotFoundError(event_id)
        self._writable_calendar(db, record.calendar_id)

        if record.recurrence_rule and occurrence_start is not None:
            series = self._adapter.to_event(record)
            if not is_occurrence(
                series.recurrence_rule, series.start_time, occurrence_start, series.excluded_dates
            ):
                raise InvalidParameterError(
                    f"{occurrence_start.isoformat()} is not an occurrence of event {event_id}"
                )
            if span == DeleteSpan.THIS:
                # Reassign so the JSON column is flagged dirty
                record.excluded_dates = list(record.excluded_dates or []) + [
                    occurrence_start.isoformat()
                ]
                return
            if occurrence_start > record.start_time:
                record.recurrence_rule = truncate_rule(record.recurrence_rule, occurrence_start)
                return

        db.delete(record)

    # =========================================================================
    # Reminders
    # =========================================================================

    async def reminders(self, calendar_ids: Optional[Sequence[str]] = None) -> list[Reminder]:
        return await self._call(self._reminders, calendar_ids)

    def _reminders(self, db: Session, calendar_ids: Optional[Sequence[str]]) -> list[Reminder]:
        query = select(ReminderRecord).order_by(ReminderRecord.created_at)
        if calendar_ids is not None:
            query = query.where(ReminderRecord.calendar_id.in_(list(calendar_ids)))
        return [self._adapter.to_reminder(r) for r in db.scalars(query).unique().all()]

    async def reminder_by_id(self, reminder_id: str) -> Optional[Reminder]:
        return await self._call(self._reminder_by_id, reminder_id)

    def _reminder_by_id(self, db: Session, reminder_id: str) -> Optional[Reminder]:
        record = db.get(ReminderRecord, reminder_id)
        return self._adapter.to_reminder(record) if record else None

    async def save_reminder(self, reminder: Reminder) -> Reminder:
        return await self._call(self._save_reminder, reminder)

    def _save_reminder(self, db: Session, reminder: Reminder) -> Reminder:
        calendar = self._writable_calendar(db, reminder.calendar.id)
        if calendar.kind != EntityKind.REMINDER.value:
            raise StoreError(f"'{calendar.title}' is not a reminder list")

        if reminder.id is not None:
            record = db.get(ReminderRecord, reminder.id)
            if record is None:
                raise ReminderNotFoundError(reminder.id)
        else:
            record = ReminderRecord(id=new_record_id())
            db.add(record)

        self._adapter.apply_reminder(record, reminder)
        record.calendar = calendar
        db.flush()
        return self._adapter.to_reminder(record)

    async def remove_reminder(self, reminder_id: str) -> None:
        await self._call(self._remove_reminder, reminder_id)

    def _remove_reminder(self, db: Session, reminder_id: str) -> None:
        record = db.get(ReminderRecord, reminder_id)
        if record is None:
            raise ReminderNotFoundError(reminder_id)
        self._writable_calendar(db, record.calendar_id)
        db.delete(record)

"""
Tests for the Alembic migrations.

Upgrading an empty database must produce the schema the models declare, and
the local store must work on top of it.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from calendar_engine.config import get_settings
from calendar_engine.database import create_db_engine, create_session_factory
from calendar_engine.integrations.base import Calendar, EntityKind, Event
from calendar_engine.integrations.local import LocalCalendarRepository
from calendar_engine.models import Base

MIGRATIONS = Path(__file__).resolve().parents[3] / "alembic"


@pytest.fixture
def database_url(tmp_path, monkeypatch) -> str:
    """File-backed SQLite database picked up by the migration environment."""
    url = f"sqlite:///{tmp_path / 'calendar_engine.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    get_settings.cache_clear()
    yield url
    get_settings.cache_clear()


@pytest.fixture
def alembic_config(database_url) -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS))
    return config


def table_columns(url: str) -> dict[str, set[str]]:
    engine = create_db_engine(url)
    try:
        inspector = inspect(engine)
        return {
            table: {column["name"] for column in inspector.get_columns(table)}
            for table in inspector.get_table_names()
        }
    finally:
        engine.dispose()


class TestMigrations:

    def test_upgrade_matches_models(self, alembic_config, database_url):
        command.upgrade(alembic_config, "head")

        columns = table_columns(database_url)

        assert "alembic_version" in columns
        for name, table in Base.metadata.tables.items():
            assert columns[name] == {column.name for column in table.columns}

    def test_downgrade_removes_tables(self, alembic_config, database_url):
        command.upgrade(alembic_config, "head")
        command.downgrade(alembic_config, "base")

        assert set(table_columns(database_url)) == {"alembic_version"}

    @pytest.mark.asyncio
    async def test_store_on_migrated_schema(self, alembic_config, database_url):
        command.upgrade(alembic_config, "head")
        engine = create_db_engine(database_url)
        repository = LocalCalendarRepository(create_session_factory(engine))

        try:
            calendar = await repository.save_calendar(
                Calendar(id=None, title="Home", kind=EntityKind.EVENT, source="Local")
            )
            start = datetime(2026, 2, 6, 14, 0, tzinfo=timezone.utc)
            saved = await repository.save_event(
                Event(
                    id=None,
                    title="Dentist",
                    start_time=start,
                    end_time=start.replace(hour=15),
                    calendar=calendar,
                )
            )
            fetched = await repository.event_by_id(saved.id)
        finally:
            repository._executor.shutdown(wait=True)
            engine.dispose()

        assert fetched.title == "Dentist"
        assert fetched.start_time == start
        assert fetched.calendar.title == "Home"

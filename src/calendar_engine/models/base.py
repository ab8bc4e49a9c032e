"""
Base model definitions for SQLAlchemy.

Provides:
- UTCDateTime TypeDecorator storing aware datetimes as naive UTC
- Base declarative base and RecordModel with common fields
- JSON/JSONB column factory function
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, JSON, String, TypeDecorator
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from calendar_engine.config import get_settings


class UTCDateTime(TypeDecorator):
    """
    Timezone-preserving datetime type.

    SQLite drops tzinfo, so values are normalized to naive UTC on the way in
    and marked UTC again on the way out. Naive inputs are rejected.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime cannot be stored: {value!r}")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def get_json_type():
    """
    Get database-appropriate JSON column type.

    Returns:
        JSONB for PostgreSQL (with indexing support)
        JSON for SQLite (basic JSON support)
    """
    settings = get_settings()
    if "postgres" in settings.database_url.lower():
        return JSONB
    return JSON


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    return uuid.uuid4().hex.upper()


class Base(DeclarativeBase):
    """Declarative base for all models."""


class RecordModel(Base):
    """
    Base model with common fields for all stored records.

    Provides:
    - id: opaque string identifier
    - created_at: Timestamp of record creation (UTC)
    - updated_at: Timestamp of last update (UTC, auto-updates)
    """

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(32),
        primary_key=True,
        default=new_record_id,
        doc="Opaque identifier handed out to callers"
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=_utcnow,
        doc="Timestamp when record was created (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        doc="Timestamp when record was last updated (UTC)"
    )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"

"""Create local calendar store tables

Revision ID: 3f1a7c2e9b04
Revises:
Create Date: 2026-02-01

Tables:
- calendars: event calendars and reminder lists, titled per source
- events: events; recurring events store the master with its RRULE and
  excluded occurrence starts
- reminders: reminders with due dates, priority and completion state

Alarms, structured locations and location triggers are JSON columns
(JSONB on PostgreSQL).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1a7c2e9b04'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def json_type():
    return sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def record_columns():
    return [
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table('calendars',
        *record_columns(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('source', sa.String(length=255), nullable=False),
        sa.Column('color', sa.String(length=7), nullable=True),
        sa.Column('read_only', sa.Boolean(), nullable=False),
        sa.Column('subscribed', sa.Boolean(), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('calendars', schema=None) as batch_op:
        batch_op.create_index('idx_calendars_kind_title', ['kind', 'title'], unique=False)

    op.create_table('events',
        *record_columns(),
        sa.Column('calendar_id', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('all_day', sa.Boolean(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('location', sa.String(length=500), nullable=True),
        sa.Column('structured_location', json_type(), nullable=True),
        sa.Column('url', sa.String(length=2048), nullable=True),
        sa.Column('alarms', json_type(), nullable=False),
        sa.Column('recurrence_rule', sa.String(length=500), nullable=True),
        sa.Column('excluded_dates', json_type(), nullable=False),
        sa.ForeignKeyConstraint(['calendar_id'], ['calendars.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('events', schema=None) as batch_op:
        batch_op.create_index(
            'idx_events_calendar_time', ['calendar_id', 'start_time', 'end_time'], unique=False
        )

    op.create_table('reminders',
        *record_columns(),
        sa.Column('calendar_id', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False),
        sa.Column('completion_date', sa.DateTime(), nullable=True),
        sa.Column('alarms', json_type(), nullable=False),
        sa.Column('recurrence_rule', sa.String(length=500), nullable=True),
        sa.Column('location_trigger', json_type(), nullable=True),
        sa.ForeignKeyConstraint(['calendar_id'], ['calendars.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('reminders', schema=None) as batch_op:
        batch_op.create_index(
            'idx_reminders_calendar_completed', ['calendar_id', 'completed'], unique=False
        )


def downgrade() -> None:
    with op.batch_alter_table('reminders', schema=None) as batch_op:
        batch_op.drop_index('idx_reminders_calendar_completed')
    op.drop_table('reminders')

    with op.batch_alter_table('events', schema=None) as batch_op:
        batch_op.drop_index('idx_events_calendar_time')
    op.drop_table('events')

    with op.batch_alter_table('calendars', schema=None) as batch_op:
        batch_op.drop_index('idx_calendars_kind_title')
    op.drop_table('calendars')

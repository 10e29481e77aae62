"""create_scheduling_tables

Revision ID: a0c1e2f3b4d5
Revises:
Create Date: 2026-10-19

Creates provider_policies, bookings, exchanges and reminders together with
the partial unique index that allows one pending exchange per requester
and booking.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'a0c1e2f3b4d5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


booking_status = postgresql.ENUM(
    'scheduled', 'cancel_pending', 'cancelled', 'exchanged',
    name='booking_status', create_type=False,
)
cancelled_by = postgresql.ENUM('PROVIDER', 'CONSUMER', name='cancelled_by', create_type=False)
exchange_status = postgresql.ENUM(
    'pending', 'confirmed', 'declined', 'cancelled',
    name='exchange_status', create_type=False,
)
reminder_type = postgresql.ENUM('day_before', 'hours_before', name='reminder_type', create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in (booking_status, cancelled_by, exchange_status, reminder_type):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'provider_policies',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('provider_id', sa.String(64), nullable=False),
        sa.Column('min_advance_hours', sa.Integer(), nullable=False, server_default='24'),
        sa.Column('max_advance_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('allow_cross_day_exchanges', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('require_provider_approval', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reminder_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('reminder_day_before', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('reminder_hours_before', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('min_advance_hours >= 0', name='check_policy_min_advance_non_negative'),
        sa.CheckConstraint('max_advance_days >= 0', name='check_policy_max_advance_non_negative'),
        sa.CheckConstraint('reminder_hours_before > 0', name='check_policy_reminder_hours_positive'),
    )
    op.create_index('ix_provider_policies_provider_id', 'provider_policies', ['provider_id'], unique=True)

    op.create_table(
        'bookings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('consumer_id', sa.String(64), nullable=False),
        sa.Column('provider_id', sa.String(64), nullable=False),
        sa.Column('start_time', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('end_time', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('status', booking_status, nullable=False, server_default='scheduled'),
        sa.Column('cancelled_by', cancelled_by, nullable=True),
        sa.Column('cancellation_reason', sa.String(500), nullable=True),
        sa.Column('provider_notes', sa.Text(), nullable=True),
        sa.Column('consumer_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('end_time > start_time', name='check_booking_end_after_start'),
    )
    op.create_index('ix_bookings_consumer_id', 'bookings', ['consumer_id'])
    op.create_index('ix_bookings_provider_id', 'bookings', ['provider_id'])
    op.create_index('ix_bookings_start_time', 'bookings', ['start_time'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])
    op.create_index('idx_bookings_provider_start', 'bookings', ['provider_id', 'start_time'])

    op.create_table(
        'exchanges',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('requester_id', sa.String(64), nullable=False),
        sa.Column('target_consumer_id', sa.String(64), nullable=False),
        sa.Column(
            'original_booking_id', sa.String(36),
            sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column(
            'target_booking_id', sa.String(36),
            sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('requester_confirmed', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('target_confirmed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('provider_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', exchange_status, nullable=False, server_default='pending'),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('original_booking_id <> target_booking_id', name='check_exchange_distinct_bookings'),
    )
    op.create_index('ix_exchanges_requester_id', 'exchanges', ['requester_id'])
    op.create_index('ix_exchanges_target_consumer_id', 'exchanges', ['target_consumer_id'])
    op.create_index('ix_exchanges_original_booking_id', 'exchanges', ['original_booking_id'])
    op.create_index('ix_exchanges_target_booking_id', 'exchanges', ['target_booking_id'])
    op.create_index('ix_exchanges_status', 'exchanges', ['status'])
    op.create_index(
        'uq_exchanges_pending_per_requester_booking',
        'exchanges',
        ['requester_id', 'original_booking_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        'reminders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column(
            'booking_id', sa.String(36),
            sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('consumer_id', sa.String(64), nullable=False),
        sa.Column('type', reminder_type, nullable=False),
        sa.Column('scheduled_for', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('sent_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_reminders_booking_id', 'reminders', ['booking_id'])
    op.create_index('ix_reminders_consumer_id', 'reminders', ['consumer_id'])
    op.create_index('idx_reminders_due', 'reminders', ['sent_at', 'scheduled_for'])


def downgrade() -> None:
    op.drop_table('reminders')
    op.drop_table('exchanges')
    op.drop_table('bookings')
    op.drop_table('provider_policies')

    bind = op.get_bind()
    for enum_type in (reminder_type, exchange_status, cancelled_by, booking_status):
        enum_type.drop(bind, checkfirst=True)

"""
SQLAlchemy ORM models for core database tables.

This module defines the core tables:
- provider_policies: Per-provider exchange/reminder configuration (read-only for workflows)
- bookings: Scheduled time slots tied to one provider and one consumer
- exchanges: Proposals (and their approval record) to swap two bookings' consumers
- reminders: Scheduled notification triggers for a booking and consumer

Providers and consumers live in the identity service; here they are plain
string ids and carry no foreign keys.

All models use:
- String UUID primary keys (auto-generated)
- TIMESTAMP WITH TIME ZONE for datetime fields, always returned timezone-aware (UTC)
- Proper indexes and constraints
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from uuid import uuid4

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy import (
    Enum as SQLEnum,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from shared.clock import ensure_aware

# Maximum stored length of a cancellation reason
CANCELLATION_REASON_MAX_LENGTH = 500
NOTES_MAX_LENGTH = 500

# ============================================================================
# Base Class
# ============================================================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator):
    """TIMESTAMP WITH TIME ZONE that always binds and returns UTC-aware values."""

    impl = TIMESTAMP(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return ensure_aware(value).astimezone(UTC)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return ensure_aware(value).astimezone(UTC)


def _enum_column(enum_cls: type[PyEnum], name: str) -> SQLEnum:
    # values_callable stores .value ("scheduled") instead of .name ("SCHEDULED")
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda x: [e.value for e in x],
    )


# ============================================================================
# Enums
# ============================================================================


class BookingStatus(str, PyEnum):
    """Booking lifecycle status."""

    SCHEDULED = "scheduled"
    CANCEL_PENDING = "cancel_pending"  # Consumer asked to cancel, awaiting provider decision
    CANCELLED = "cancelled"
    EXCHANGED = "exchanged"  # Consumer swapped through an exchange

    def __str__(self):
        return self.value


class CancelledBy(str, PyEnum):
    PROVIDER = "PROVIDER"
    CONSUMER = "CONSUMER"


class ExchangeStatus(str, PyEnum):
    """Exchange status. Everything except PENDING is terminal."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    CANCELLED = "cancelled"

    def __str__(self):
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self is not ExchangeStatus.PENDING


class ReminderType(str, PyEnum):
    DAY_BEFORE = "day_before"
    HOURS_BEFORE = "hours_before"

    def __str__(self):
        return self.value


# ============================================================================
# Core Models
# ============================================================================


class ProviderPolicy(Base):
    """
    ProviderPolicy model - Per-provider exchange and reminder configuration.

    Consumed by the exchange and reminder workflows, never mutated by them.
    A provider without a row gets the defaults from ProviderPolicy.defaults_for().
    """

    __tablename__ = "provider_policies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    provider_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

    # Exchange rules
    min_advance_hours: Mapped[int] = mapped_column(Integer, default=24, nullable=False)
    max_advance_days: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    allow_cross_day_exchanges: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    require_provider_approval: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Reminders
    reminder_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    reminder_day_before: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    reminder_hours_before: Mapped[int] = mapped_column(Integer, default=2, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("min_advance_hours >= 0", name="check_policy_min_advance_non_negative"),
        CheckConstraint("max_advance_days >= 0", name="check_policy_max_advance_non_negative"),
        CheckConstraint("reminder_hours_before > 0", name="check_policy_reminder_hours_positive"),
    )

    @classmethod
    def defaults_for(cls, provider_id: str) -> "ProviderPolicy":
        """Unsaved policy carrying the platform defaults."""
        return cls(
            provider_id=provider_id,
            min_advance_hours=24,
            max_advance_days=30,
            allow_cross_day_exchanges=True,
            require_provider_approval=False,
            reminder_enabled=True,
            reminder_day_before=True,
            reminder_hours_before=2,
        )

    def __repr__(self) -> str:
        return f"<ProviderPolicy(provider_id={self.provider_id}, min_advance_hours={self.min_advance_hours})>"


class Booking(Base):
    """
    Booking model - A scheduled time slot.

    provider_id never changes after creation. consumer_id changes only through
    an executed exchange. Status only moves forward, except the
    cancel_pending -> scheduled revert when a provider declines a cancellation.
    """

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    consumer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    provider_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Scheduling
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # Status tracking
    status: Mapped[BookingStatus] = mapped_column(
        _enum_column(BookingStatus, "booking_status"),
        default=BookingStatus.SCHEDULED,
        nullable=False,
        index=True,
    )
    cancelled_by: Mapped[CancelledBy | None] = mapped_column(
        _enum_column(CancelledBy, "cancelled_by"), nullable=True
    )
    cancellation_reason: Mapped[str | None] = mapped_column(
        String(CANCELLATION_REASON_MAX_LENGTH), nullable=True
    )

    # Post-booking notes
    provider_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    consumer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )

    # Relationships
    reminders: Mapped[list["Reminder"]] = relationship(
        "Reminder", back_populates="booking", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_booking_end_after_start"),
        # Duplicate cleanup looks up bookings by provider and exact start time
        Index("idx_bookings_provider_start", "provider_id", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, consumer_id={self.consumer_id}, status='{self.status.value}')>"


class Exchange(Base):
    """
    Exchange model - Proposal to swap the consumers of two bookings.

    Both bookings belong to the same provider. The requester confirms
    implicitly by proposing. PENDING is the only non-terminal status.
    """

    __tablename__ = "exchanges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    requester_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    target_consumer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    original_booking_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_booking_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Approval record
    requester_confirmed: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    target_confirmed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    provider_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[ExchangeStatus] = mapped_column(
        _enum_column(ExchangeStatus, "exchange_status"),
        default=ExchangeStatus.PENDING,
        nullable=False,
        index=True,
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )

    # Relationships
    original_booking: Mapped["Booking"] = relationship(
        "Booking", foreign_keys=[original_booking_id]
    )
    target_booking: Mapped["Booking"] = relationship(
        "Booking", foreign_keys=[target_booking_id]
    )

    __table_args__ = (
        CheckConstraint(
            "original_booking_id <> target_booking_id",
            name="check_exchange_distinct_bookings",
        ),
        # At most one outstanding proposal per booking per requester
        Index(
            "uq_exchanges_pending_per_requester_booking",
            "requester_id",
            "original_booking_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Exchange(id={self.id}, requester_id={self.requester_id}, status='{self.status.value}')>"


class Reminder(Base):
    """
    Reminder model - Scheduled notification trigger for a booking and consumer.

    sent_at is set by the delivery job once the reminder has been handled.
    """

    __tablename__ = "reminders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    booking_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    consumer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    type: Mapped[ReminderType] = mapped_column(
        _enum_column(ReminderType, "reminder_type"), nullable=False
    )
    scheduled_for: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="reminders")

    __table_args__ = (
        # Delivery job scans unsent reminders that are due
        Index("idx_reminders_due", "sent_at", "scheduled_for"),
    )

    def __repr__(self) -> str:
        return f"<Reminder(id={self.id}, booking_id={self.booking_id}, type='{self.type.value}')>"

"""
Booking cancellation service - Provider and consumer cancellations.

States: scheduled -> {cancel_pending, cancelled}; cancel_pending -> {cancelled, scheduled}

- request_cancellation: the owning provider cancels immediately; the booking's
  consumer (or a parent acting for them) only requests it, leaving the
  booking cancel_pending until the provider decides
- resolve_cancellation: the owning provider approves (cancelled, terminal) or
  declines (back to scheduled with cancelled_by and reason cleared)

Every status write is conditional on the status the check saw; if another
request changed the booking in between, ConflictError is raised.
"""

import logging
from enum import Enum
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import (
    CANCELLATION_REASON_MAX_LENGTH,
    Booking,
    BookingStatus,
    CancelledBy,
)
from scheduling.validators import check_cancellation_request, check_cancellation_resolution
from shared.auth_context import AuthContext
from shared.clock import Clock
from shared.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class CancellationDecision(str, Enum):
    APPROVE = "approve"
    DECLINE = "decline"


def normalize_reason(reason: Any) -> str | None:
    """Keep string reasons, truncated to the stored maximum; anything else is dropped."""
    if not isinstance(reason, str) or not reason.strip():
        return None
    return reason[:CANCELLATION_REASON_MAX_LENGTH]


async def get_booking(session: AsyncSession, booking_id: str) -> Booking:
    booking = await session.get(Booking, booking_id, populate_existing=True)
    if booking is None:
        raise NotFoundError("Booking not found", details={"booking_id": booking_id})
    return booking


async def _conditional_update(
    session: AsyncSession,
    booking_id: str,
    expected_status: BookingStatus,
    changes: dict[str, Any],
) -> Booking:
    outcome = await session.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == expected_status)
        .values(**changes)
        .execution_options(synchronize_session=False)
    )
    if outcome.rowcount == 0:
        await session.rollback()
        raise ConflictError(
            "Booking state changed; re-fetch and retry",
            details={"booking_id": booking_id},
        )
    await session.commit()
    return await get_booking(session, booking_id)


async def request_cancellation(
    session: AsyncSession,
    actor: AuthContext,
    booking_id: str,
    clock: Clock,
    reason: str | None = None,
) -> Booking:
    """
    Cancel (provider) or request cancellation of (consumer) a booking.

    Args:
        session: Database session
        actor: Acting user
        booking_id: Booking to cancel
        clock: Time source for the past-booking rule
        reason: Optional reason, truncated to 500 characters

    Returns:
        Updated booking (cancelled or cancel_pending)

    Raises:
        NotFoundError: Booking does not exist
        AuthorizationError: Actor neither owns the booking's provider nor acts for its consumer
        PolicyViolation: Booking is not scheduled, or has already started
        ConflictError: Booking changed concurrently
    """
    booking = await get_booking(session, booking_id)
    trace_id = f"cancel_{booking_id}"

    if actor.owns_provider(booking.provider_id):
        cancelled_by = CancelledBy.PROVIDER
        new_status = BookingStatus.CANCELLED
    elif actor.is_consumer and actor.acts_for(booking.consumer_id):
        cancelled_by = CancelledBy.CONSUMER
        new_status = BookingStatus.CANCEL_PENDING
    else:
        raise AuthorizationError("Forbidden", details={"booking_id": booking_id})

    decision = check_cancellation_request(booking, clock.now())
    if not decision.valid:
        logger.warning(
            f"[{trace_id}] Cancellation rejected: {decision.error_code.value}",
            extra={"booking_id": booking_id, "actor_id": actor.user_id},
        )
        decision.raise_for_violation()

    updated = await _conditional_update(
        session,
        booking_id,
        BookingStatus.SCHEDULED,
        {
            "status": new_status,
            "cancelled_by": cancelled_by,
            "cancellation_reason": normalize_reason(reason),
        },
    )

    logger.info(
        f"[{trace_id}] Booking {new_status.value} by {cancelled_by.value}",
        extra={
            "booking_id": booking_id,
            "provider_id": booking.provider_id,
            "actor_id": actor.user_id,
        },
    )
    return updated


async def resolve_cancellation(
    session: AsyncSession,
    actor: AuthContext,
    booking_id: str,
    action: str | CancellationDecision,
) -> Booking:
    """
    Approve or decline a consumer's pending cancellation.

    Raises:
        AuthorizationError: Actor is not a provider, or not the booking's provider
        ValidationError: action is neither approve nor decline
        NotFoundError: Booking does not exist
        PolicyViolation: Booking is not cancel_pending
        ConflictError: Booking changed concurrently
    """
    if not actor.is_provider:
        raise AuthorizationError("Only providers can approve/decline")

    try:
        action = CancellationDecision(action)
    except ValueError:
        raise ValidationError("Invalid action", details={"allowed": ["approve", "decline"]}) from None

    booking = await get_booking(session, booking_id)
    if not actor.owns_provider(booking.provider_id):
        raise AuthorizationError("Forbidden", details={"booking_id": booking_id})

    check_cancellation_resolution(booking).raise_for_violation()

    if action == CancellationDecision.APPROVE:
        changes = {"status": BookingStatus.CANCELLED}
    else:
        changes = {
            "status": BookingStatus.SCHEDULED,
            "cancelled_by": None,
            "cancellation_reason": None,
        }

    updated = await _conditional_update(session, booking_id, BookingStatus.CANCEL_PENDING, changes)

    logger.info(
        f"[resolve_cancel_{booking_id}] Cancellation {action.value}d",
        extra={"booking_id": booking_id, "actor_id": actor.user_id},
    )
    return updated

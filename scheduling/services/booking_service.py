"""
Booking queries and post-booking notes.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import NOTES_MAX_LENGTH, Booking
from scheduling.services.cancellation_service import get_booking
from scheduling.validators import check_notes_allowed
from shared.auth_context import AuthContext
from shared.clock import Clock
from shared.errors import AuthorizationError

logger = logging.getLogger(__name__)


async def list_bookings(
    session: AsyncSession,
    actor: AuthContext,
    clock: Clock,
    start_from: datetime | None = None,
    start_to: datetime | None = None,
    past: bool = False,
) -> list[Booking]:
    """
    Bookings visible to the actor.

    Providers get their own bookings, consumers the bookings they hold.
    past=True returns bookings that already started, newest first, and
    ignores the from/to range.
    """
    stmt = select(Booking)

    if actor.is_provider:
        stmt = stmt.where(Booking.provider_id == actor.provider_id)
    elif actor.is_consumer:
        stmt = stmt.where(Booking.consumer_id.in_(actor.consumer_ids))
    else:
        raise AuthorizationError("Forbidden")

    if past:
        stmt = stmt.where(Booking.start_time < clock.now()).order_by(Booking.start_time.desc())
    else:
        if start_from is not None:
            stmt = stmt.where(Booking.start_time >= start_from)
        if start_to is not None:
            stmt = stmt.where(Booking.start_time <= start_to)
        stmt = stmt.order_by(Booking.start_time.asc())

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_booking_notes(
    session: AsyncSession,
    actor: AuthContext,
    booking_id: str,
    notes: str | None,
    clock: Clock,
) -> Booking:
    """
    Write provider or consumer notes on a booking that already started.

    The owning provider writes provider_notes; the booking's consumer writes
    consumer_notes. Notes are truncated to 500 characters.
    """
    booking = await get_booking(session, booking_id)
    text = (notes if isinstance(notes, str) else "")[:NOTES_MAX_LENGTH]

    if actor.owns_provider(booking.provider_id):
        field = "provider_notes"
    elif actor.acts_for(booking.consumer_id):
        field = "consumer_notes"
    else:
        raise AuthorizationError("Forbidden", details={"booking_id": booking_id})

    check_notes_allowed(booking, clock.now()).raise_for_violation()

    setattr(booking, field, text)
    await session.commit()
    await session.refresh(booking)

    logger.info(
        f"Booking {field} updated",
        extra={"booking_id": booking_id, "actor_id": actor.user_id},
    )
    return booking

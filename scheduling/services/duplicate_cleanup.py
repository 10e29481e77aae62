"""
Duplicate Cleanup - Best-effort removal of stray bookings after a swap.

After a swap, any other booking of the same provider that starts at exactly
the same time as one of the swapped bookings is a stray duplicate. Its
reminders are deleted, then the booking itself.

Failures here never reach the caller: the swap has already been committed and
is not rolled back for a cleanup problem. They are logged at WARNING under
"duplicate cleanup failed" so they can be told apart from real failures.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Booking, Reminder
from scheduling.transactions.swap_transaction import SwapResult

logger = logging.getLogger(__name__)


async def find_duplicate_bookings(session: AsyncSession, swap: SwapResult) -> list[str]:
    """Ids of same-provider bookings sharing a start time with either swapped booking."""
    duplicate_ids: list[str] = []
    for start_time in (swap.original_start_time, swap.target_start_time):
        result = await session.execute(
            select(Booking.id).where(
                Booking.provider_id == swap.provider_id,
                Booking.start_time == start_time,
                Booking.id.not_in(swap.booking_ids),
            )
        )
        for booking_id in result.scalars().all():
            if booking_id not in duplicate_ids:
                duplicate_ids.append(booking_id)
    return duplicate_ids


async def remove_duplicate_bookings(session: AsyncSession, swap: SwapResult) -> int:
    """
    Delete stray duplicates left at the swapped time slots.

    Returns:
        Number of bookings removed (0 when cleanup failed)
    """
    trace_id = f"swap_{swap.exchange_id}"
    try:
        duplicate_ids = await find_duplicate_bookings(session, swap)
        for booking_id in duplicate_ids:
            await session.execute(delete(Reminder).where(Reminder.booking_id == booking_id))
            await session.execute(delete(Booking).where(Booking.id == booking_id))
            logger.info(
                f"[{trace_id}] Removed duplicate booking",
                extra={"booking_id": booking_id, "exchange_id": swap.exchange_id},
            )
        await session.commit()
        return len(duplicate_ids)
    except Exception as e:
        await session.rollback()
        logger.warning(
            f"[{trace_id}] duplicate cleanup failed (swap kept): {e}",
            extra={"exchange_id": swap.exchange_id, "provider_id": swap.provider_id},
            exc_info=True,
        )
        return 0

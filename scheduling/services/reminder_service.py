"""
Reminder service - Post-swap reminder scheduling and due-reminder delivery.

Two jobs:
1. schedule_swap_reminders: after a committed swap, create a day_before and an
   hours_before reminder for each booking, addressed to its NEW consumer
2. dispatch_due_reminders: periodic delivery of unsent reminders whose
   scheduled time has passed (called by the worker and the cron endpoint)

reminder_enabled is honoured at delivery time, not at scheduling time: a
provider with reminders disabled still gets reminder rows, which the delivery
job marks handled without sending.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database.models import ProviderPolicy, Reminder, ReminderType
from scheduling.services.notification_sender import NotificationSender
from scheduling.transactions.swap_transaction import SwapResult
from shared.clock import Clock

logger = logging.getLogger(__name__)

DAY_BEFORE_OFFSET = timedelta(hours=24)


def build_booking_reminders(
    booking_id: str,
    consumer_id: str,
    start_time: datetime,
    reminder_hours_before: int,
) -> list[Reminder]:
    """Reminder rows for one booking: 24h before and reminder_hours_before before."""
    return [
        Reminder(
            booking_id=booking_id,
            consumer_id=consumer_id,
            type=ReminderType.DAY_BEFORE,
            scheduled_for=start_time - DAY_BEFORE_OFFSET,
        ),
        Reminder(
            booking_id=booking_id,
            consumer_id=consumer_id,
            type=ReminderType.HOURS_BEFORE,
            scheduled_for=start_time - timedelta(hours=reminder_hours_before),
        ),
    ]


async def schedule_swap_reminders(
    session: AsyncSession,
    swap: SwapResult,
    policy: ProviderPolicy,
) -> list[Reminder]:
    """
    Persist reminders for both swapped bookings.

    The original booking now belongs to the target consumer and the target
    booking to the requester. Existing reminders are left untouched.

    Returns:
        The four created Reminder rows
    """
    reminders = build_booking_reminders(
        swap.target_booking_id,
        swap.requester_id,
        swap.target_start_time,
        policy.reminder_hours_before,
    ) + build_booking_reminders(
        swap.original_booking_id,
        swap.target_consumer_id,
        swap.original_start_time,
        policy.reminder_hours_before,
    )

    session.add_all(reminders)
    try:
        await session.commit()
    except Exception:
        await session.rollback()
        logger.error(
            f"[swap_{swap.exchange_id}] Failed to schedule post-swap reminders",
            extra={"exchange_id": swap.exchange_id},
            exc_info=True,
        )
        raise

    logger.info(
        f"[swap_{swap.exchange_id}] Scheduled {len(reminders)} reminders",
        extra={"exchange_id": swap.exchange_id, "provider_id": swap.provider_id},
    )
    return reminders


async def _load_policies(session: AsyncSession, provider_ids: set[str]) -> dict[str, ProviderPolicy]:
    if not provider_ids:
        return {}
    result = await session.execute(
        select(ProviderPolicy).where(ProviderPolicy.provider_id.in_(provider_ids))
    )
    return {policy.provider_id: policy for policy in result.scalars().all()}


async def dispatch_due_reminders(
    session: AsyncSession,
    sender: NotificationSender,
    clock: Clock,
    batch_size: int = 50,
) -> dict[str, int]:
    """
    Deliver unsent reminders that are due.

    - Reminders of providers with reminder_enabled=False are marked sent without delivery
    - A reminder is marked sent only when the sender reports success
    - Sender exceptions count as failures and leave the reminder for the next run

    Returns:
        {"processed": n, "sent": n, "skipped": n, "failed": n}
    """
    now = clock.now()
    result = await session.execute(
        select(Reminder)
        .options(selectinload(Reminder.booking))
        .where(Reminder.sent_at.is_(None), Reminder.scheduled_for <= now)
        .order_by(Reminder.scheduled_for.asc())
        .limit(batch_size)
    )
    due = list(result.scalars().all())

    policies = await _load_policies(session, {r.booking.provider_id for r in due})

    stats = {"processed": len(due), "sent": 0, "skipped": 0, "failed": 0}

    for reminder in due:
        booking = reminder.booking
        policy = policies.get(booking.provider_id) or ProviderPolicy.defaults_for(booking.provider_id)

        if not policy.reminder_enabled:
            reminder.sent_at = now
            await session.commit()
            stats["skipped"] += 1
            continue

        try:
            delivered = await sender.send_reminder(reminder, booking)
        except Exception as e:
            logger.warning(
                f"Reminder {reminder.id} delivery raised: {e}",
                extra={"booking_id": booking.id},
                exc_info=True,
            )
            delivered = False

        if delivered:
            reminder.sent_at = now
            await session.commit()
            stats["sent"] += 1
        else:
            stats["failed"] += 1

    logger.info(
        f"Reminder dispatch finished: processed={stats['processed']}, sent={stats['sent']}, "
        f"skipped={stats['skipped']}, failed={stats['failed']}"
    )
    return stats

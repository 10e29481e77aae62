"""
Reminder dispatch endpoint for external schedulers (cron).

Authenticated with the shared CRON_SECRET bearer token, not a user JWT.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_clock, get_notification_sender, verify_cron_secret
from api.models.scheduling import ReminderDispatchResponse
from database.connection import get_db
from scheduling.services import dispatch_due_reminders
from scheduling.services.notification_sender import NotificationSender
from shared.clock import Clock
from shared.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.post(
    "/dispatch",
    response_model=ReminderDispatchResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def dispatch_reminders(
    session: Annotated[AsyncSession, Depends(get_db)],
    sender: Annotated[NotificationSender, Depends(get_notification_sender)],
    clock: Annotated[Clock, Depends(get_clock)],
):
    settings = get_settings()
    counts = await dispatch_due_reminders(
        session, sender, clock, batch_size=settings.REMINDER_BATCH_SIZE
    )
    logger.info(f"Reminder dispatch via API: {counts}")
    return counts

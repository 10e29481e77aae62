"""
Notification delivery interface.

The reminder delivery job hands each due reminder to a NotificationSender.
Email/push delivery lives outside this service; deployments plug in their
own sender. LoggingNotificationSender is the default and only records the
delivery in the logs.
"""

import logging
from typing import Protocol

from database.models import Booking, Reminder

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    async def send_reminder(self, reminder: Reminder, booking: Booking) -> bool:
        """Deliver a reminder. Returns True when the reminder can be marked sent."""
        ...


class LoggingNotificationSender:
    async def send_reminder(self, reminder: Reminder, booking: Booking) -> bool:
        logger.info(
            f"Reminder {reminder.type.value} for consumer {reminder.consumer_id} "
            f"(booking at {booking.start_time.isoformat()}, status {booking.status.value})",
            extra={"booking_id": booking.id, "provider_id": booking.provider_id},
        )
        return True

"""
Reminder delivery worker - Periodically delivers due reminders.

Runs dispatch_due_reminders every REMINDER_POLL_INTERVAL_SECONDS until
SIGTERM/SIGINT. Deployments that prefer an external scheduler can call
POST /reminders/dispatch instead.

Usage:
    python -m scheduling.workers.reminder_worker
"""

import asyncio
import logging
import signal
from typing import Any

from database.connection import engine, get_async_session
from scheduling.services.notification_sender import LoggingNotificationSender, NotificationSender
from scheduling.services.reminder_service import dispatch_due_reminders
from shared.clock import Clock, SystemClock
from shared.config import get_settings
from shared.logging_config import configure_logging

logger = logging.getLogger(__name__)

# Global flag for graceful shutdown
shutdown_requested = False


def signal_handler(signum: int, frame: Any) -> None:
    """
    Handle SIGTERM/SIGINT for graceful shutdown.
    """
    global shutdown_requested
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    shutdown_requested = True


async def run_dispatch_once(sender: NotificationSender, clock: Clock) -> dict[str, int]:
    settings = get_settings()
    async with get_async_session() as session:
        return await dispatch_due_reminders(
            session, sender, clock, batch_size=settings.REMINDER_BATCH_SIZE
        )


async def async_main(
    sender: NotificationSender | None = None,
    clock: Clock | None = None,
) -> None:
    """
    Main worker loop.

    Sleeps in one-second steps so a shutdown request is honoured promptly.
    Errors in one run are logged and the next run proceeds.
    """
    settings = get_settings()
    sender = sender or LoggingNotificationSender()
    clock = clock or SystemClock()
    interval = settings.REMINDER_POLL_INTERVAL_SECONDS

    logger.info(
        f"Reminder worker starting: interval={interval}s, batch_size={settings.REMINDER_BATCH_SIZE}"
    )

    while not shutdown_requested:
        try:
            await run_dispatch_once(sender, clock)
        except Exception as e:
            logger.error(f"Error in reminder dispatch: {e}", exc_info=True)

        waited = 0
        while waited < interval and not shutdown_requested:
            await asyncio.sleep(1)
            waited += 1

    await engine.dispose()
    logger.info("Reminder worker shutting down gracefully...")


def run_reminder_worker() -> None:
    """
    Synchronous entry point that sets up logging and signal handlers,
    then runs the async main function.
    """
    configure_logging()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    asyncio.run(async_main())


if __name__ == "__main__":
    run_reminder_worker()

"""
Atomic Swap Transaction for exchange execution.

Swaps the consumers of an exchange's two bookings:
- original booking -> target consumer, status exchanged
- target booking   -> requester,       status exchanged

The exchange status write ("mark confirmed") and both booking writes commit
in ONE transaction, so an exchange is never left confirmed while its bookings
are unswapped. Every write is conditional on the row still holding the
expected pre-state; a write that matches zero rows rolls the whole
transaction back and raises ConflictError.

Isolation:
- PostgreSQL: SERIALIZABLE, plus SELECT ... FOR UPDATE on both bookings
- Serialization failures (SQLSTATE 40001/40P01) are retried with exponential
  backoff; any other database failure raises SwapExecutionError

Reminder scheduling and duplicate cleanup run AFTER commit, outside this
transaction (see scheduling.services.reminder_service and
scheduling.services.duplicate_cleanup).
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select, text, update
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from database.models import Booking, BookingStatus, Exchange, ExchangeStatus
from shared.config import get_settings
from shared.errors import ConflictError, NotFoundError, SwapExecutionError

logger = logging.getLogger(__name__)

# PostgreSQL serialization_failure / deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}


@dataclass(frozen=True)
class SwapResult:
    """Post-swap snapshot handed to reminder scheduling and duplicate cleanup."""

    exchange_id: str
    provider_id: str
    requester_id: str
    target_consumer_id: str
    original_booking_id: str
    original_start_time: datetime
    target_booking_id: str
    target_start_time: datetime

    @property
    def booking_ids(self) -> tuple[str, str]:
        return (self.original_booking_id, self.target_booking_id)


def is_serialization_failure(error: BaseException) -> bool:
    """True for database errors that are safe to retry as a whole transaction."""
    if not isinstance(error, DBAPIError):
        return False
    orig = getattr(error, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate in RETRYABLE_SQLSTATES


class SwapTransaction:
    """
    Atomic transaction handler for executing an exchange.

    Usage:
        result = await SwapTransaction.execute(
            session,
            exchange_id,
            expected={"status": ExchangeStatus.PENDING, "target_confirmed": True},
            changes={"status": ExchangeStatus.CONFIRMED, "provider_approved": True},
        )
    """

    @staticmethod
    async def execute(
        session: AsyncSession,
        exchange_id: str,
        expected: dict[str, Any],
        changes: dict[str, Any] | None = None,
    ) -> SwapResult:
        """
        Run the swap transaction, retrying on serialization failures.

        Args:
            session: Database session (any open read transaction is committed first)
            exchange_id: Exchange to execute
            expected: Column values the exchange row must still hold
            changes: Column values written to the exchange in the same transaction
                (empty when re-executing an already confirmed exchange)

        Returns:
            SwapResult describing the committed swap

        Raises:
            NotFoundError: Exchange or one of its bookings no longer exists
            ConflictError: Exchange or a booking no longer matches the expected state
            SwapExecutionError: The transaction could not be committed
        """
        settings = get_settings()
        trace_id = f"swap_{exchange_id}"

        retrying = AsyncRetrying(
            retry=retry_if_exception(is_serialization_failure),
            stop=stop_after_attempt(settings.SWAP_MAX_ATTEMPTS),
            wait=wait_exponential(multiplier=0.1, max=settings.SWAP_RETRY_MAX_WAIT_SECONDS),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    if attempt_number > 1:
                        logger.warning(
                            f"[{trace_id}] Retrying swap after serialization failure "
                            f"(attempt {attempt_number}/{settings.SWAP_MAX_ATTEMPTS})",
                            extra={"exchange_id": exchange_id},
                        )
                    result = await SwapTransaction._run_once(
                        session, exchange_id, expected, changes or {}, trace_id
                    )
        except (ConflictError, NotFoundError):
            raise
        except SQLAlchemyError as e:
            logger.error(
                f"[{trace_id}] Swap transaction failed, nothing committed",
                extra={"exchange_id": exchange_id},
                exc_info=True,
            )
            raise SwapExecutionError(
                "The exchange could not be executed; no booking was changed",
                details={"exchange_id": exchange_id},
            ) from e

        logger.info(
            f"[{trace_id}] Swap committed",
            extra={
                "exchange_id": exchange_id,
                "provider_id": result.provider_id,
            },
        )
        return result

    @staticmethod
    async def _run_once(
        session: AsyncSession,
        exchange_id: str,
        expected: dict[str, Any],
        changes: dict[str, Any],
        trace_id: str,
    ) -> SwapResult:
        # Close any read transaction so isolation applies from the first statement
        if session.in_transaction():
            await session.commit()

        try:
            if session.bind.dialect.name == "postgresql":
                await session.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))

            exchange = (
                await session.execute(
                    select(Exchange)
                    .where(Exchange.id == exchange_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            ).scalar_one_or_none()
            if exchange is None:
                raise NotFoundError("Exchange not found", details={"exchange_id": exchange_id})

            # Step 1: conditional exchange status write
            guard = [getattr(Exchange, column) == value for column, value in expected.items()]
            if changes:
                outcome = await session.execute(
                    update(Exchange)
                    .where(Exchange.id == exchange_id, *guard)
                    .values(**changes)
                    .execution_options(synchronize_session=False)
                )
                if outcome.rowcount == 0:
                    raise ConflictError(
                        "Exchange state changed; re-fetch and retry",
                        details={"exchange_id": exchange_id},
                    )
            elif not all(getattr(exchange, column) == value for column, value in expected.items()):
                raise ConflictError(
                    "Exchange is not in a state that can be executed",
                    details={"exchange_id": exchange_id, "status": ExchangeStatus(exchange.status).value},
                )

            # Step 2: lock both bookings
            bookings = (
                await session.execute(
                    select(Booking)
                    .where(Booking.id.in_([exchange.original_booking_id, exchange.target_booking_id]))
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            ).scalars().all()
            by_id = {booking.id: booking for booking in bookings}
            original = by_id.get(exchange.original_booking_id)
            target = by_id.get(exchange.target_booking_id)
            if original is None or target is None:
                raise NotFoundError(
                    "Exchange booking no longer exists",
                    details={"exchange_id": exchange_id},
                )

            # Step 3: conditional swap of both bookings
            swaps = (
                (original.id, exchange.requester_id, exchange.target_consumer_id),
                (target.id, exchange.target_consumer_id, exchange.requester_id),
            )
            for booking_id, current_consumer, new_consumer in swaps:
                outcome = await session.execute(
                    update(Booking)
                    .where(
                        Booking.id == booking_id,
                        Booking.consumer_id == current_consumer,
                        Booking.status == BookingStatus.SCHEDULED,
                    )
                    .values(consumer_id=new_consumer, status=BookingStatus.EXCHANGED)
                    .execution_options(synchronize_session=False)
                )
                if outcome.rowcount == 0:
                    raise ConflictError(
                        "Booking is no longer available for exchange",
                        details={"exchange_id": exchange_id, "booking_id": booking_id},
                    )

            await session.commit()

        except BaseException:
            await session.rollback()
            raise

        return SwapResult(
            exchange_id=exchange.id,
            provider_id=original.provider_id,
            requester_id=exchange.requester_id,
            target_consumer_id=exchange.target_consumer_id,
            original_booking_id=original.id,
            original_start_time=original.start_time,
            target_booking_id=target.id,
            target_start_time=target.start_time,
        )

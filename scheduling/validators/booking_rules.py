"""
Booking lifecycle rules for cancellation and notes.

Same contract as the exchange policy validator: pure functions returning a
PolicyCheckResult, the caller decides when to raise.
"""

from datetime import datetime

from database.models import Booking, BookingStatus
from scheduling.validators.exchange_policy import PolicyCheckResult
from shared.errors import PolicyViolationCode


def check_cancellation_request(booking: Booking, now: datetime) -> PolicyCheckResult:
    """A booking can be cancelled only while scheduled and before it starts."""
    if booking.status != BookingStatus.SCHEDULED:
        return PolicyCheckResult(
            valid=False,
            error_code=PolicyViolationCode.BOOKING_NOT_SCHEDULED,
            error_message="Only scheduled bookings can be cancelled",
            details={"status": BookingStatus(booking.status).value},
        )

    if booking.start_time <= now:
        return PolicyCheckResult(
            valid=False,
            error_code=PolicyViolationCode.PAST_BOOKING,
            error_message="Cannot cancel a past booking",
            details={"start_time": booking.start_time.isoformat()},
        )

    return PolicyCheckResult(valid=True)


def check_cancellation_resolution(booking: Booking) -> PolicyCheckResult:
    if booking.status != BookingStatus.CANCEL_PENDING:
        return PolicyCheckResult(
            valid=False,
            error_code=PolicyViolationCode.BOOKING_NOT_CANCEL_PENDING,
            error_message="Booking is not pending cancellation",
            details={"status": BookingStatus(booking.status).value},
        )
    return PolicyCheckResult(valid=True)


def check_notes_allowed(booking: Booking, now: datetime) -> PolicyCheckResult:
    """Notes can only be added once the booking has started."""
    if booking.start_time > now:
        return PolicyCheckResult(
            valid=False,
            error_code=PolicyViolationCode.NOTES_ON_FUTURE_BOOKING,
            error_message="Notes can only be added to past bookings",
        )
    return PolicyCheckResult(valid=True)

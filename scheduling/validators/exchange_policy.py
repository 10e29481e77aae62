"""
Exchange Policy Validator.

Pure checks of a proposed exchange against the provider's policy and the
current state of both bookings. No database access and no wall-clock reads:
the caller passes the bookings, the policy and the current time.

Rules are evaluated in order and the first failure is returned:
1. Both bookings are scheduled
2. Both bookings belong to the same provider
3. The requester's booking starts at least min_advance_hours from now
4. Unless cross-day exchanges are allowed, both bookings fall on the same weekday
"""

import logging
from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from database.models import Booking, BookingStatus, ProviderPolicy
from shared.config import get_settings
from shared.errors import PolicyViolation, PolicyViolationCode

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class PolicyCheckResult(BaseModel):
    """Result of an exchange policy check."""

    valid: bool
    error_code: Optional[PolicyViolationCode] = None
    error_message: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)

    def raise_for_violation(self) -> None:
        if not self.valid:
            raise PolicyViolation(self.error_code, self.error_message, details=self.details)


def hours_until(start_time: datetime, now: datetime) -> float:
    """Hours from now until start_time (negative when start_time is in the past)."""
    return (start_time - now).total_seconds() / 3600


def local_weekday(dt: datetime, tz: ZoneInfo) -> int:
    """Weekday (Monday=0) of dt in the given timezone."""
    return dt.astimezone(tz).weekday()


def _violation(code: PolicyViolationCode, message: str, **details: Any) -> PolicyCheckResult:
    return PolicyCheckResult(valid=False, error_code=code, error_message=message, details=details)


def check_exchange_policy(
    my_booking: Booking,
    target_booking: Booking,
    policy: ProviderPolicy,
    now: datetime,
    tz: ZoneInfo | None = None,
) -> PolicyCheckResult:
    """
    Check a proposed exchange of my_booking for target_booking.

    Args:
        my_booking: The requester's booking
        target_booking: The booking the requester wants
        policy: Policy of the provider owning my_booking
        now: Current time (timezone-aware)
        tz: Timezone for weekday comparison (defaults to settings.TIMEZONE)

    Returns:
        PolicyCheckResult, valid or carrying the first violated rule

    Example:
        >>> result = check_exchange_policy(mine, theirs, policy, clock.now())
        >>> result.raise_for_violation()
    """
    if tz is None:
        tz = ZoneInfo(get_settings().TIMEZONE)

    # Rule 1: both bookings still scheduled
    for booking in (my_booking, target_booking):
        if booking.status != BookingStatus.SCHEDULED:
            return _violation(
                PolicyViolationCode.BOOKING_NOT_SCHEDULED,
                "Only scheduled bookings can be exchanged",
                booking_id=booking.id,
                status=BookingStatus(booking.status).value,
            )

    # Rule 2: same provider
    if my_booking.provider_id != target_booking.provider_id:
        return _violation(
            PolicyViolationCode.PROVIDER_MISMATCH,
            "Exchanges can only be made within the same provider",
        )

    # Rule 3: advance notice on the requester's booking
    remaining = hours_until(my_booking.start_time, now)
    if remaining < policy.min_advance_hours:
        return _violation(
            PolicyViolationCode.INSUFFICIENT_ADVANCE_NOTICE,
            f"Exchanges must be requested at least {policy.min_advance_hours} hours in advance",
            hours_until_booking=round(remaining, 2),
            min_advance_hours=policy.min_advance_hours,
        )

    # Rule 4: same weekday unless cross-day exchanges are allowed
    if not policy.allow_cross_day_exchanges:
        my_day = local_weekday(my_booking.start_time, tz)
        target_day = local_weekday(target_booking.start_time, tz)
        if my_day != target_day:
            return _violation(
                PolicyViolationCode.CROSS_DAY_NOT_ALLOWED,
                "Cross-day exchanges are not allowed",
                my_weekday=WEEKDAY_NAMES[my_day],
                target_weekday=WEEKDAY_NAMES[target_day],
            )

    return PolicyCheckResult(valid=True)

"""
Business-rule validators.

Pure functions; callers pass the current time explicitly.

Validators:
- check_exchange_policy: Provider policy for a proposed exchange (fail-fast, ordered)
- check_cancellation_request: Booking is scheduled and in the future
- check_cancellation_resolution: Booking is awaiting a provider decision
- check_notes_allowed: Notes only on bookings that already started
"""

from scheduling.validators.booking_rules import (
    check_cancellation_request,
    check_cancellation_resolution,
    check_notes_allowed,
)
from scheduling.validators.exchange_policy import (
    PolicyCheckResult,
    check_exchange_policy,
    hours_until,
)

__all__ = [
    "PolicyCheckResult",
    "check_exchange_policy",
    "check_cancellation_request",
    "check_cancellation_resolution",
    "check_notes_allowed",
    "hours_until",
]

"""
Unit tests for scheduling/validators/booking_rules.py.
"""

from datetime import UTC, datetime, timedelta

import pytest

from database.models import Booking, BookingStatus
from scheduling.validators import (
    check_cancellation_request,
    check_cancellation_resolution,
    check_notes_allowed,
)
from shared.errors import PolicyViolationCode

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


def booking(start_time: datetime, status: BookingStatus = BookingStatus.SCHEDULED) -> Booking:
    return Booking(
        id="b1",
        consumer_id="consumer-x",
        provider_id="provider-1",
        start_time=start_time,
        end_time=start_time + timedelta(hours=1),
        status=status,
    )


class TestCancellationRequest:
    def test_future_scheduled_booking(self):
        assert check_cancellation_request(booking(NOW + timedelta(hours=1)), NOW).valid

    @pytest.mark.parametrize(
        "status",
        [BookingStatus.CANCEL_PENDING, BookingStatus.CANCELLED, BookingStatus.EXCHANGED],
    )
    def test_not_scheduled(self, status):
        result = check_cancellation_request(booking(NOW + timedelta(hours=1), status), NOW)

        assert result.error_code == PolicyViolationCode.BOOKING_NOT_SCHEDULED
        assert result.details == {"status": status.value}

    def test_booking_starting_now_counts_as_past(self):
        result = check_cancellation_request(booking(NOW), NOW)

        assert result.error_code == PolicyViolationCode.PAST_BOOKING
        assert result.error_message == "Cannot cancel a past booking"


class TestCancellationResolution:
    def test_cancel_pending(self):
        assert check_cancellation_resolution(booking(NOW, BookingStatus.CANCEL_PENDING)).valid

    def test_scheduled_is_rejected(self):
        result = check_cancellation_resolution(booking(NOW))

        assert result.error_code == PolicyViolationCode.BOOKING_NOT_CANCEL_PENDING


class TestNotesAllowed:
    def test_past_booking(self):
        assert check_notes_allowed(booking(NOW - timedelta(days=1)), NOW).valid

    def test_booking_that_just_started(self):
        assert check_notes_allowed(booking(NOW), NOW).valid

    def test_future_booking(self):
        result = check_notes_allowed(booking(NOW + timedelta(minutes=1)), NOW)

        assert result.error_code == PolicyViolationCode.NOTES_ON_FUTURE_BOOKING

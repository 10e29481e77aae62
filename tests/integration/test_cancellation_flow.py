"""
Integration tests for the booking cancellation workflow.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import update

from conftest import CONSUMER_X, CONSUMER_Y, NOW, reload
from database.models import Booking, BookingStatus, CancelledBy
from scheduling.services import cancellation_service, request_cancellation, resolve_cancellation
from shared.auth_context import ActorRole, AuthContext
from shared.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PolicyViolation,
    PolicyViolationCode,
    ValidationError,
)


class TestRequestCancellation:
    @pytest.mark.asyncio
    async def test_provider_cancels_immediately(self, session, clock, make_booking, provider_actor):
        booking = await make_booking(CONSUMER_X)

        cancelled = await request_cancellation(
            session, provider_actor, booking.id, clock, reason="Provider sick"
        )

        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancelled_by == CancelledBy.PROVIDER
        assert cancelled.cancellation_reason == "Provider sick"

    @pytest.mark.asyncio
    async def test_consumer_requests_cancellation(self, session, clock, make_booking, actor_x):
        booking = await make_booking(CONSUMER_X)

        pending = await request_cancellation(session, actor_x, booking.id, clock)

        assert pending.status == BookingStatus.CANCEL_PENDING
        assert pending.cancelled_by == CancelledBy.CONSUMER
        assert pending.cancellation_reason is None

    @pytest.mark.asyncio
    async def test_long_reason_is_truncated(self, session, clock, make_booking, actor_x):
        booking = await make_booking(CONSUMER_X)

        pending = await request_cancellation(session, actor_x, booking.id, clock, reason="r" * 900)

        assert len(pending.cancellation_reason) == 500

    @pytest.mark.asyncio
    async def test_other_consumer_forbidden(self, session, clock, make_booking, actor_y):
        booking = await make_booking(CONSUMER_X)

        with pytest.raises(AuthorizationError):
            await request_cancellation(session, actor_y, booking.id, clock)

    @pytest.mark.asyncio
    async def test_other_provider_forbidden(self, session, clock, make_booking, other_provider_actor):
        booking = await make_booking(CONSUMER_X)

        with pytest.raises(AuthorizationError):
            await request_cancellation(session, other_provider_actor, booking.id, clock)

    @pytest.mark.asyncio
    async def test_past_booking(self, session, clock, make_booking, actor_x):
        booking = await make_booking(CONSUMER_X, NOW - timedelta(hours=1))

        with pytest.raises(PolicyViolation) as exc_info:
            await request_cancellation(session, actor_x, booking.id, clock)

        assert exc_info.value.code == PolicyViolationCode.PAST_BOOKING
        assert (await reload(session, Booking, booking.id)).status == BookingStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_already_pending(self, session, clock, make_booking, actor_x):
        booking = await make_booking(CONSUMER_X)
        await request_cancellation(session, actor_x, booking.id, clock)

        with pytest.raises(PolicyViolation) as exc_info:
            await request_cancellation(session, actor_x, booking.id, clock)

        assert exc_info.value.code == PolicyViolationCode.BOOKING_NOT_SCHEDULED

    @pytest.mark.asyncio
    async def test_exchanged_booking_cannot_be_cancelled(
        self, session, clock, make_booking, provider_actor
    ):
        booking = await make_booking(CONSUMER_X, status=BookingStatus.EXCHANGED)

        with pytest.raises(PolicyViolation):
            await request_cancellation(session, provider_actor, booking.id, clock)

    @pytest.mark.asyncio
    async def test_unknown_booking(self, session, clock, actor_x):
        with pytest.raises(NotFoundError):
            await request_cancellation(session, actor_x, "missing", clock)

    @pytest.mark.asyncio
    async def test_provider_cancelled_after_check(self, session, clock, make_booking, actor_x):
        """A provider cancellation commits between the consumer's check and write."""
        booking_id = (await make_booking(CONSUMER_X)).id
        real_get_booking = cancellation_service.get_booking

        async def get_then_cancel(*args, **kwargs):
            booking = await real_get_booking(*args, **kwargs)
            await session.execute(
                update(Booking)
                .where(Booking.id == booking_id)
                .values(status=BookingStatus.CANCELLED, cancelled_by=CancelledBy.PROVIDER)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return booking

        with patch.object(cancellation_service, "get_booking", side_effect=get_then_cancel):
            with pytest.raises(ConflictError):
                await request_cancellation(session, actor_x, booking_id, clock, reason="Late")

        stored = await reload(session, Booking, booking_id)
        assert stored.status == BookingStatus.CANCELLED
        assert stored.cancelled_by == CancelledBy.PROVIDER
        assert stored.cancellation_reason is None


class TestResolveCancellation:
    @pytest.fixture
    async def pending_booking(self, session, clock, make_booking, actor_x):
        booking = await make_booking(CONSUMER_X)
        await request_cancellation(session, actor_x, booking.id, clock, reason="Travelling")
        return booking

    @pytest.mark.asyncio
    async def test_approve(self, session, pending_booking, provider_actor):
        cancelled = await resolve_cancellation(session, provider_actor, pending_booking.id, "approve")

        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancelled_by == CancelledBy.CONSUMER
        assert cancelled.cancellation_reason == "Travelling"

    @pytest.mark.asyncio
    async def test_decline_restores_booking(self, session, pending_booking, provider_actor):
        restored = await resolve_cancellation(session, provider_actor, pending_booking.id, "decline")

        assert restored.status == BookingStatus.SCHEDULED
        assert restored.cancelled_by is None
        assert restored.cancellation_reason is None

    @pytest.mark.asyncio
    async def test_cancelled_booking_is_terminal(self, session, pending_booking, provider_actor):
        await resolve_cancellation(session, provider_actor, pending_booking.id, "approve")

        with pytest.raises(PolicyViolation) as exc_info:
            await resolve_cancellation(session, provider_actor, pending_booking.id, "decline")

        assert exc_info.value.code == PolicyViolationCode.BOOKING_NOT_CANCEL_PENDING

    @pytest.mark.asyncio
    async def test_consumer_cannot_resolve(self, session, pending_booking, actor_x):
        with pytest.raises(AuthorizationError):
            await resolve_cancellation(session, actor_x, pending_booking.id, "approve")

    @pytest.mark.asyncio
    async def test_other_provider_cannot_resolve(self, session, pending_booking, other_provider_actor):
        with pytest.raises(AuthorizationError):
            await resolve_cancellation(session, other_provider_actor, pending_booking.id, "approve")

    @pytest.mark.asyncio
    async def test_invalid_action(self, session, pending_booking, provider_actor):
        with pytest.raises(ValidationError):
            await resolve_cancellation(session, provider_actor, pending_booking.id, "maybe")

    @pytest.mark.asyncio
    async def test_scheduled_booking(self, session, make_booking, provider_actor):
        booking = await make_booking(CONSUMER_Y)

        with pytest.raises(PolicyViolation):
            await resolve_cancellation(session, provider_actor, booking.id, "approve")

    @pytest.mark.asyncio
    async def test_lost_race_is_conflict(self, session, pending_booking, provider_actor):
        """The row changed after the check: the conditional write matches nothing."""
        booking_id = pending_booking.id
        real_get_booking = cancellation_service.get_booking

        async def stale_get_booking(*args, **kwargs):
            booking = await real_get_booking(*args, **kwargs)
            await session.execute(
                update(Booking)
                .where(Booking.id == booking_id)
                .values(status=BookingStatus.SCHEDULED)
                .execution_options(synchronize_session=False)
            )
            return booking

        with patch.object(cancellation_service, "get_booking", side_effect=stale_get_booking):
            with pytest.raises(ConflictError):
                await resolve_cancellation(session, provider_actor, booking_id, "approve")

        # The rollback also discards the competing uncommitted write
        assert (await reload(session, Booking, booking_id)).status == BookingStatus.CANCEL_PENDING


class TestParentActor:
    @pytest.mark.asyncio
    async def test_parent_requests_for_child(self, session, clock, make_booking):
        booking = await make_booking(CONSUMER_X)
        parent = AuthContext("user-parent", ActorRole.PARENT, consumer_ids=(CONSUMER_X,))

        pending = await request_cancellation(session, parent, booking.id, clock)

        assert pending.status == BookingStatus.CANCEL_PENDING

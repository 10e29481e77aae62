"""
Integration tests for booking listing, post-booking notes and provider settings.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import CONSUMER_X, CONSUMER_Y, NOW, OTHER_PROVIDER_ID, PROVIDER_ID
from database.models import ProviderPolicy
from scheduling.services import (
    get_provider_policy,
    get_settings_for_provider,
    list_bookings,
    update_booking_notes,
    update_provider_policy,
)
from shared.errors import AuthorizationError, PolicyViolation, PolicyViolationCode, ValidationError


class TestListBookings:
    @pytest.fixture
    async def bookings(self, make_booking):
        return {
            "past_x": await make_booking(CONSUMER_X, NOW - timedelta(days=2)),
            "soon_x": await make_booking(CONSUMER_X, NOW + timedelta(days=1)),
            "later_y": await make_booking(CONSUMER_Y, NOW + timedelta(days=10)),
            "elsewhere_x": await make_booking(
                CONSUMER_X, NOW + timedelta(days=3), provider_id=OTHER_PROVIDER_ID
            ),
        }

    @pytest.mark.asyncio
    async def test_provider_sees_own_bookings(self, session, clock, bookings, provider_actor):
        result = await list_bookings(session, provider_actor, clock)

        assert [b.id for b in result] == [
            bookings["past_x"].id,
            bookings["soon_x"].id,
            bookings["later_y"].id,
        ]

    @pytest.mark.asyncio
    async def test_consumer_sees_held_bookings(self, session, clock, bookings, actor_x):
        result = await list_bookings(session, actor_x, clock)

        assert {b.id for b in result} == {
            bookings["past_x"].id,
            bookings["soon_x"].id,
            bookings["elsewhere_x"].id,
        }

    @pytest.mark.asyncio
    async def test_range_filter(self, session, clock, bookings, provider_actor):
        result = await list_bookings(
            session,
            provider_actor,
            clock,
            start_from=NOW,
            start_to=NOW + timedelta(days=5),
        )

        assert [b.id for b in result] == [bookings["soon_x"].id]

    @pytest.mark.asyncio
    async def test_past_only(self, session, clock, bookings, actor_x):
        result = await list_bookings(session, actor_x, clock, past=True)

        assert [b.id for b in result] == [bookings["past_x"].id]


class TestBookingNotes:
    @pytest.mark.asyncio
    async def test_provider_writes_provider_notes(self, session, clock, make_booking, provider_actor):
        booking = await make_booking(CONSUMER_X, NOW - timedelta(hours=3))

        updated = await update_booking_notes(session, provider_actor, booking.id, "Went well", clock)

        assert updated.provider_notes == "Went well"
        assert updated.consumer_notes is None

    @pytest.mark.asyncio
    async def test_consumer_writes_consumer_notes(self, session, clock, make_booking, actor_x):
        booking = await make_booking(CONSUMER_X, NOW - timedelta(hours=3))

        updated = await update_booking_notes(session, actor_x, booking.id, "n" * 800, clock)

        assert len(updated.consumer_notes) == 500
        assert updated.provider_notes is None

    @pytest.mark.asyncio
    async def test_future_booking_rejected(self, session, clock, make_booking, actor_x):
        booking = await make_booking(CONSUMER_X)

        with pytest.raises(PolicyViolation) as exc_info:
            await update_booking_notes(session, actor_x, booking.id, "Too early", clock)

        assert exc_info.value.code == PolicyViolationCode.NOTES_ON_FUTURE_BOOKING

    @pytest.mark.asyncio
    async def test_stranger_forbidden(self, session, clock, make_booking, actor_y):
        booking = await make_booking(CONSUMER_X, NOW - timedelta(hours=3))

        with pytest.raises(AuthorizationError):
            await update_booking_notes(session, actor_y, booking.id, "Hi", clock)


class TestProviderSettings:
    @pytest.mark.asyncio
    async def test_defaults_without_stored_policy(self, session, provider_actor):
        policy = await get_settings_for_provider(session, provider_actor)

        assert policy.provider_id == PROVIDER_ID
        assert policy.min_advance_hours == 24
        assert policy.max_advance_days == 30
        assert policy.allow_cross_day_exchanges is True
        assert policy.require_provider_approval is False
        assert policy.reminder_enabled is True
        assert policy.reminder_day_before is True
        assert policy.reminder_hours_before == 2

    @pytest.mark.asyncio
    async def test_first_update_creates_policy(self, session, provider_actor):
        policy = await update_provider_policy(
            session,
            provider_actor,
            {"require_provider_approval": True, "min_advance_hours": 48, "unknown": "ignored"},
        )

        assert policy.require_provider_approval is True
        assert policy.min_advance_hours == 48
        assert policy.reminder_hours_before == 2
        stored = await get_provider_policy(session, PROVIDER_ID)
        assert stored.id == policy.id

    @pytest.mark.asyncio
    async def test_update_existing_policy(self, session, make_policy, provider_actor):
        await make_policy(min_advance_hours=12)

        policy = await update_provider_policy(session, provider_actor, {"reminder_enabled": False})

        assert policy.min_advance_hours == 12
        assert policy.reminder_enabled is False

    @pytest.mark.asyncio
    async def test_invalid_values_rejected_without_changes(self, session, make_policy, provider_actor):
        await make_policy(min_advance_hours=12)

        with pytest.raises(ValidationError):
            await update_provider_policy(
                session, provider_actor, {"min_advance_hours": 6, "reminder_hours_before": 0}
            )

        session.expire_all()
        assert (await get_provider_policy(session, PROVIDER_ID)).min_advance_hours == 12

    @pytest.mark.asyncio
    async def test_consumer_forbidden(self, session, actor_x):
        with pytest.raises(AuthorizationError):
            await get_settings_for_provider(session, actor_x)
        with pytest.raises(AuthorizationError):
            await update_provider_policy(session, actor_x, {"reminder_enabled": False})

    @pytest.mark.asyncio
    async def test_defaults_are_not_persisted_on_read(self, session, provider_actor):
        await get_settings_for_provider(session, provider_actor)

        stored = await session.execute(select(ProviderPolicy))
        assert stored.scalars().all() == []

"""
Unit tests for the small pure helpers used by the workflows:
- build_booking_reminders (reminder offsets)
- normalize_reason (cancellation reason truncation)
- parse_action / authorize_action (exchange action dispatch)
- is_serialization_failure (swap retry predicate)
"""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from database.models import ReminderType
from scheduling.services.cancellation_service import normalize_reason
from scheduling.services.exchange_transitions import (
    ExchangeAction,
    authorize_action,
    parse_action,
)
from scheduling.services.reminder_service import build_booking_reminders
from scheduling.transactions.swap_transaction import is_serialization_failure
from shared.auth_context import ActorRole, AuthContext
from shared.errors import AuthorizationError, ValidationError

START = datetime(2026, 3, 9, 15, 0, tzinfo=UTC)


class TestBuildBookingReminders:
    def test_day_before_and_hours_before(self):
        day_before, hours_before = build_booking_reminders("b1", "consumer-y", START, 2)

        assert day_before.type == ReminderType.DAY_BEFORE
        assert day_before.scheduled_for == START - timedelta(hours=24)
        assert hours_before.type == ReminderType.HOURS_BEFORE
        assert hours_before.scheduled_for == START - timedelta(hours=2)
        assert {r.consumer_id for r in (day_before, hours_before)} == {"consumer-y"}
        assert all(r.sent_at is None for r in (day_before, hours_before))

    def test_hours_before_follows_policy(self):
        _, hours_before = build_booking_reminders("b1", "consumer-y", START, 6)

        assert hours_before.scheduled_for == START - timedelta(hours=6)


class TestNormalizeReason:
    def test_truncates_to_500_characters(self):
        assert len(normalize_reason("x" * 750)) == 500

    @pytest.mark.parametrize("reason", [None, "", "   ", 42])
    def test_non_text_reason_is_dropped(self, reason):
        assert normalize_reason(reason) is None

    def test_keeps_short_reason(self):
        assert normalize_reason("Feeling unwell") == "Feeling unwell"


class TestExchangeActions:
    def test_parse_action(self):
        assert parse_action("approve") is ExchangeAction.APPROVE

    def test_parse_unknown_action(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_action("accept")

        assert exc_info.value.details["allowed"] == ["confirm", "decline", "cancel", "approve"]

    @pytest.fixture
    def exchange(self):
        return SimpleNamespace(
            id="e1",
            requester_id="consumer-x",
            target_consumer_id="consumer-y",
            original_booking=SimpleNamespace(provider_id="provider-1"),
        )

    @pytest.mark.parametrize(
        "actor, action",
        [
            (AuthContext("u-y", ActorRole.CONSUMER, consumer_ids=("consumer-y",)), ExchangeAction.CONFIRM),
            (AuthContext("u-y", ActorRole.CONSUMER, consumer_ids=("consumer-y",)), ExchangeAction.DECLINE),
            (AuthContext("u-x", ActorRole.CONSUMER, consumer_ids=("consumer-x",)), ExchangeAction.CANCEL),
            (AuthContext("u-p", ActorRole.PROVIDER, provider_id="provider-1"), ExchangeAction.APPROVE),
        ],
    )
    def test_authorized(self, exchange, actor, action):
        authorize_action(actor, exchange, action)

    @pytest.mark.parametrize(
        "actor, action",
        [
            (AuthContext("u-x", ActorRole.CONSUMER, consumer_ids=("consumer-x",)), ExchangeAction.CONFIRM),
            (AuthContext("u-y", ActorRole.CONSUMER, consumer_ids=("consumer-y",)), ExchangeAction.CANCEL),
            (AuthContext("u-y", ActorRole.CONSUMER, consumer_ids=("consumer-y",)), ExchangeAction.APPROVE),
            (AuthContext("u-p", ActorRole.PROVIDER, provider_id="provider-2"), ExchangeAction.APPROVE),
            (AuthContext("u-p", ActorRole.PROVIDER, provider_id="provider-1"), ExchangeAction.CONFIRM),
        ],
    )
    def test_forbidden(self, exchange, actor, action):
        with pytest.raises(AuthorizationError):
            authorize_action(actor, exchange, action)


class TestSerializationFailure:
    @pytest.mark.parametrize("sqlstate", ["40001", "40P01"])
    def test_retryable_sqlstates(self, sqlstate):
        error = OperationalError("UPDATE bookings", {}, SimpleNamespace(sqlstate=sqlstate))

        assert is_serialization_failure(error)

    def test_other_database_errors(self):
        assert not is_serialization_failure(
            IntegrityError("INSERT", {}, SimpleNamespace(sqlstate="23505"))
        )
        assert not is_serialization_failure(RuntimeError("boom"))

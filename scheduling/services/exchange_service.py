"""
Exchange Request Manager - Creates exchange proposals and lists them.

A consumer proposes to swap one of their scheduled bookings for another
consumer's scheduled booking with the same provider. Creating the proposal
has no side effect beyond the insert: nothing is swapped until the target
consumer (and, when the provider requires it, the provider) agrees.

Architecture:
- Called from api/routes/exchanges.py with an explicit AuthContext and Clock
- Policy checks delegated to scheduling.validators.check_exchange_policy
- At most one pending proposal per (requester, original booking); enforced by a
  lookup here and by a partial unique index for concurrent inserts
"""

import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database.models import Booking, Exchange, ExchangeStatus
from scheduling.services.policy_service import get_provider_policy
from scheduling.validators import check_exchange_policy
from shared.auth_context import AuthContext
from shared.clock import Clock
from shared.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _exchange_query():
    return select(Exchange).options(
        selectinload(Exchange.original_booking),
        selectinload(Exchange.target_booking),
    )


async def load_exchange(
    session: AsyncSession,
    exchange_id: str,
    refresh: bool = False,
) -> Exchange:
    """
    Load an exchange with both bookings.

    Args:
        refresh: Overwrite the exchange and its bookings in the identity map
            with the stored rows (after conditional updates that bypassed the ORM)

    Raises:
        NotFoundError: Exchange does not exist
    """
    stmt = _exchange_query().where(Exchange.id == exchange_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await session.execute(stmt)
    exchange = result.scalar_one_or_none()
    if exchange is None:
        raise NotFoundError("Exchange not found", details={"exchange_id": exchange_id})
    return exchange


async def _get_booking(session: AsyncSession, booking_id: str, label: str) -> Booking:
    booking = await session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(f"{label} not found", details={"booking_id": booking_id})
    return booking


async def find_pending_exchange_id(
    session: AsyncSession, requester_id: str, original_booking_id: str
) -> str | None:
    result = await session.execute(
        select(Exchange.id).where(
            Exchange.requester_id == requester_id,
            Exchange.original_booking_id == original_booking_id,
            Exchange.status == ExchangeStatus.PENDING,
        )
    )
    return result.scalars().first()


async def create_exchange(
    session: AsyncSession,
    actor: AuthContext,
    my_booking_id: str,
    target_booking_id: str,
    clock: Clock,
    message: str | None = None,
) -> Exchange:
    """
    Create a pending exchange proposal.

    Args:
        session: Database session
        actor: Requesting consumer (or parent acting for one)
        my_booking_id: Booking the requester gives up
        target_booking_id: Booking the requester wants
        clock: Time source for the advance-notice rule
        message: Optional note for the target consumer

    Returns:
        The new Exchange (status pending, requester_confirmed True)

    Raises:
        AuthorizationError: Actor is not a consumer or does not hold my_booking
        ValidationError: Missing ids or both ids are the same booking
        NotFoundError: Either booking does not exist
        PolicyViolation: First violated provider policy rule
        ConflictError: A pending proposal already exists for this booking
    """
    if not actor.is_consumer:
        raise AuthorizationError("Not a consumer")

    if not my_booking_id or not target_booking_id:
        raise ValidationError("Both booking IDs are required")
    if my_booking_id == target_booking_id:
        raise ValidationError("A booking cannot be exchanged with itself")

    trace_id = f"exchange_create_{my_booking_id}"

    my_booking = await _get_booking(session, my_booking_id, "Your booking")
    if not actor.acts_for(my_booking.consumer_id):
        logger.warning(
            f"[{trace_id}] Actor does not hold the offered booking",
            extra={"actor_id": actor.user_id, "booking_id": my_booking_id},
        )
        raise AuthorizationError("You can only offer your own bookings")

    target_booking = await _get_booking(session, target_booking_id, "Target booking")

    policy = await get_provider_policy(session, my_booking.provider_id)
    decision = check_exchange_policy(my_booking, target_booking, policy, clock.now())
    if not decision.valid:
        logger.warning(
            f"[{trace_id}] Exchange rejected by policy: {decision.error_code.value}",
            extra={"booking_id": my_booking_id, "provider_id": my_booking.provider_id},
        )
        decision.raise_for_violation()

    if await find_pending_exchange_id(session, my_booking.consumer_id, my_booking_id):
        raise ConflictError("You already have a pending exchange for this booking")

    exchange = Exchange(
        requester_id=my_booking.consumer_id,
        target_consumer_id=target_booking.consumer_id,
        original_booking_id=my_booking_id,
        target_booking_id=target_booking_id,
        requester_confirmed=True,
        target_confirmed=False,
        provider_approved=False,
        status=ExchangeStatus.PENDING,
        message=message or None,
    )
    session.add(exchange)

    try:
        await session.commit()
    except IntegrityError as e:
        # Concurrent request won the partial unique index
        await session.rollback()
        logger.warning(f"[{trace_id}] Duplicate pending exchange on insert: {e.orig}")
        raise ConflictError("You already have a pending exchange for this booking") from e

    logger.info(
        f"[{trace_id}] Exchange proposed",
        extra={
            "exchange_id": exchange.id,
            "booking_id": my_booking_id,
            "provider_id": my_booking.provider_id,
            "actor_id": actor.user_id,
        },
    )
    return await load_exchange(session, exchange.id, refresh=True)


async def list_exchanges(session: AsyncSession, actor: AuthContext) -> list[Exchange]:
    """
    Exchanges visible to the actor, newest first.

    Providers see every exchange on their bookings; consumers see exchanges
    where they are requester or target.
    """
    stmt = _exchange_query().order_by(Exchange.created_at.desc())

    if actor.is_provider:
        stmt = stmt.join(Exchange.original_booking).where(
            Booking.provider_id == actor.provider_id
        )
    elif actor.is_consumer:
        stmt = stmt.where(
            or_(
                Exchange.requester_id.in_(actor.consumer_ids),
                Exchange.target_consumer_id.in_(actor.consumer_ids),
            )
        )
    else:
        raise AuthorizationError("Forbidden")

    result = await session.execute(stmt)
    return list(result.scalars().all())


def can_view_exchange(actor: AuthContext, exchange: Exchange) -> bool:
    return (
        actor.acts_for(exchange.requester_id)
        or actor.acts_for(exchange.target_consumer_id)
        or actor.owns_provider(exchange.original_booking.provider_id)
    )


async def get_exchange(session: AsyncSession, actor: AuthContext, exchange_id: str) -> Exchange:
    exchange = await load_exchange(session, exchange_id)
    if not can_view_exchange(actor, exchange):
        raise AuthorizationError("Forbidden")
    return exchange

"""
Exchange State Transition Engine.

States: pending -> {confirmed, declined, cancelled}; all three are terminal.

| action  | actor             | precondition                      | effect                                        |
|---------|-------------------|-----------------------------------|-----------------------------------------------|
| confirm | target consumer   | pending                           | no approval gate: confirmed + swap            |
|         |                   |                                   | approval gate: target_confirmed, stays pending |
| decline | target consumer   | pending                           | declined                                      |
| cancel  | requester         | pending                           | cancelled                                     |
| approve | owning provider   | pending and target_confirmed      | provider_approved, confirmed + swap           |

Every write is conditional on the pre-state, so two actors racing on the same
exchange cannot both win: the loser gets ConflictError and must re-fetch.
On a swap-triggering transition the status write and the swap share one
transaction (SwapTransaction); reminders and duplicate cleanup follow.
"""

import logging
from enum import Enum
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Exchange, ExchangeStatus
from scheduling.services.duplicate_cleanup import remove_duplicate_bookings
from scheduling.services.exchange_service import load_exchange
from scheduling.services.policy_service import get_provider_policy
from scheduling.services.reminder_service import schedule_swap_reminders
from scheduling.transactions.swap_transaction import SwapResult, SwapTransaction
from shared.auth_context import AuthContext
from shared.errors import AuthorizationError, ConflictError, ValidationError

logger = logging.getLogger(__name__)


class ExchangeAction(str, Enum):
    CONFIRM = "confirm"
    DECLINE = "decline"
    CANCEL = "cancel"
    APPROVE = "approve"


def parse_action(action: str | ExchangeAction) -> ExchangeAction:
    try:
        return ExchangeAction(action)
    except ValueError:
        raise ValidationError(
            "Invalid action",
            details={"allowed": [a.value for a in ExchangeAction]},
        ) from None


def authorize_action(actor: AuthContext, exchange: Exchange, action: ExchangeAction) -> None:
    """Raise AuthorizationError unless the actor plays the role the action needs."""
    if action in (ExchangeAction.CONFIRM, ExchangeAction.DECLINE):
        allowed = actor.acts_for(exchange.target_consumer_id)
    elif action == ExchangeAction.CANCEL:
        allowed = actor.acts_for(exchange.requester_id)
    else:
        allowed = actor.owns_provider(exchange.original_booking.provider_id)

    if not allowed:
        raise AuthorizationError(
            f"Not allowed to {action.value} this exchange",
            details={"exchange_id": exchange.id},
        )


async def _conditional_update(
    session: AsyncSession,
    exchange_id: str,
    expected: dict[str, Any],
    changes: dict[str, Any],
) -> None:
    guard = [getattr(Exchange, column) == value for column, value in expected.items()]
    outcome = await session.execute(
        update(Exchange)
        .where(Exchange.id == exchange_id, *guard)
        .values(**changes)
        .execution_options(synchronize_session=False)
    )
    if outcome.rowcount == 0:
        await session.rollback()
        raise ConflictError(
            "Exchange state changed; re-fetch and retry",
            details={"exchange_id": exchange_id},
        )
    await session.commit()


async def apply_post_swap_effects(session: AsyncSession, swap: SwapResult) -> None:
    """Reminders (errors propagate) then duplicate cleanup (errors swallowed)."""
    policy = await get_provider_policy(session, swap.provider_id)
    await schedule_swap_reminders(session, swap, policy)
    await remove_duplicate_bookings(session, swap)


async def apply_exchange_action(
    session: AsyncSession,
    actor: AuthContext,
    exchange_id: str,
    action: str | ExchangeAction,
) -> Exchange:
    """
    Apply an actor's action to an exchange.

    Args:
        session: Database session
        actor: Acting user
        exchange_id: Exchange to transition
        action: confirm, decline, cancel or approve

    Returns:
        The exchange as persisted after the transition

    Raises:
        ValidationError: Unknown action
        NotFoundError: Exchange does not exist
        AuthorizationError: Actor is not the participant the action requires
        ConflictError: Exchange is not pending (or not target-confirmed for approve),
            or another request changed it first
        SwapExecutionError: The swap transaction failed; nothing was committed
    """
    action = parse_action(action)
    trace_id = f"exchange_{exchange_id}_{action.value}"

    exchange = await load_exchange(session, exchange_id, refresh=True)
    authorize_action(actor, exchange, action)

    if exchange.status != ExchangeStatus.PENDING:
        logger.warning(
            f"[{trace_id}] Rejected: exchange is {exchange.status.value}",
            extra={"exchange_id": exchange_id, "actor_id": actor.user_id},
        )
        raise ConflictError(
            f"Exchange is already {exchange.status.value}",
            details={"exchange_id": exchange_id, "status": exchange.status.value},
        )

    pending = {"status": ExchangeStatus.PENDING}
    swap: SwapResult | None = None

    if action == ExchangeAction.CONFIRM:
        policy = await get_provider_policy(session, exchange.original_booking.provider_id)
        if policy.require_provider_approval:
            await _conditional_update(session, exchange_id, pending, {"target_confirmed": True})
            logger.info(
                f"[{trace_id}] Target confirmed, awaiting provider approval",
                extra={"exchange_id": exchange_id, "actor_id": actor.user_id},
            )
        else:
            swap = await SwapTransaction.execute(
                session,
                exchange_id,
                expected=pending,
                changes={
                    "status": ExchangeStatus.CONFIRMED,
                    "target_confirmed": True,
                    "provider_approved": True,
                },
            )

    elif action == ExchangeAction.DECLINE:
        await _conditional_update(session, exchange_id, pending, {"status": ExchangeStatus.DECLINED})

    elif action == ExchangeAction.CANCEL:
        await _conditional_update(session, exchange_id, pending, {"status": ExchangeStatus.CANCELLED})

    elif action == ExchangeAction.APPROVE:
        if not exchange.target_confirmed:
            raise ConflictError(
                "The target consumer has not confirmed this exchange yet",
                details={"exchange_id": exchange_id},
            )
        swap = await SwapTransaction.execute(
            session,
            exchange_id,
            expected={"status": ExchangeStatus.PENDING, "target_confirmed": True},
            changes={"status": ExchangeStatus.CONFIRMED, "provider_approved": True},
        )

    logger.info(
        f"[{trace_id}] Exchange transition applied",
        extra={"exchange_id": exchange_id, "actor_id": actor.user_id},
    )

    if swap is not None:
        await apply_post_swap_effects(session, swap)

    return await load_exchange(session, exchange_id, refresh=True)


async def execute_exchange(session: AsyncSession, exchange_id: str) -> SwapResult:
    """
    Execute the swap of an exchange that is already confirmed.

    Recovery entry point: re-loads the exchange and both bookings and swaps
    them if they are still unswapped. A second execution finds the bookings
    already exchanged and raises ConflictError, so the swap happens at most once.
    """
    swap = await SwapTransaction.execute(
        session,
        exchange_id,
        expected={"status": ExchangeStatus.CONFIRMED},
    )
    await apply_post_swap_effects(session, swap)
    return swap

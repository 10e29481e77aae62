"""
Exchange API Endpoints

- POST /exchanges - Propose a slot exchange
- GET /exchanges - Exchanges visible to the caller
- GET /exchanges/{exchange_id} - Single exchange
- PATCH /exchanges/{exchange_id} - confirm / decline / cancel / approve
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_auth_context, get_clock
from api.models.scheduling import (
    CreateExchangeRequest,
    ExchangeActionRequest,
    ExchangeResponse,
)
from database.connection import get_db
from scheduling.services import (
    apply_exchange_action,
    create_exchange,
    get_exchange,
    list_exchanges,
)
from shared.auth_context import AuthContext
from shared.clock import Clock

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exchanges", tags=["exchanges"])

Actor = Annotated[AuthContext, Depends(get_auth_context)]
Session = Annotated[AsyncSession, Depends(get_db)]


@router.post("", response_model=ExchangeResponse)
async def post_exchange(
    body: CreateExchangeRequest,
    actor: Actor,
    session: Session,
    clock: Annotated[Clock, Depends(get_clock)],
):
    exchange = await create_exchange(
        session,
        actor,
        my_booking_id=body.my_booking_id,
        target_booking_id=body.target_booking_id,
        clock=clock,
        message=body.message,
    )
    return exchange


@router.get("", response_model=list[ExchangeResponse])
async def get_exchanges(actor: Actor, session: Session):
    return await list_exchanges(session, actor)


@router.get("/{exchange_id}", response_model=ExchangeResponse)
async def get_exchange_detail(exchange_id: str, actor: Actor, session: Session):
    return await get_exchange(session, actor, exchange_id)


@router.patch("/{exchange_id}", response_model=ExchangeResponse)
async def patch_exchange(
    exchange_id: str,
    body: ExchangeActionRequest,
    actor: Actor,
    session: Session,
):
    """
    Apply an action to a pending exchange.

    Confirming (or approving, when provider approval is required) executes
    the swap atomically; the response carries the swapped bookings.
    """
    return await apply_exchange_action(session, actor, exchange_id, body.action)

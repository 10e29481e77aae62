"""
Booking API Endpoints

- GET /bookings - Caller's bookings (optionally a time range, or past bookings)
- POST /bookings/{booking_id}/cancel - Cancel (provider) or request cancellation (consumer)
- PATCH /bookings/{booking_id}/cancel - Provider approves/declines a pending cancellation
- PATCH /bookings/{booking_id}/notes - Post-booking notes
"""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_auth_context, get_clock
from api.models.scheduling import (
    BookingNotesRequest,
    BookingResponse,
    CancelBookingRequest,
    ResolveCancellationRequest,
)
from database.connection import get_db
from scheduling.services import (
    list_bookings,
    request_cancellation,
    resolve_cancellation,
    update_booking_notes,
)
from shared.auth_context import AuthContext
from shared.clock import Clock, ensure_aware

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])

Actor = Annotated[AuthContext, Depends(get_auth_context)]
Session = Annotated[AsyncSession, Depends(get_db)]
ClockDep = Annotated[Clock, Depends(get_clock)]


@router.get("", response_model=list[BookingResponse])
async def get_bookings(
    actor: Actor,
    session: Session,
    clock: ClockDep,
    start_from: Annotated[datetime | None, Query(alias="from")] = None,
    start_to: Annotated[datetime | None, Query(alias="to")] = None,
    past: bool = False,
):
    return await list_bookings(
        session,
        actor,
        clock,
        start_from=ensure_aware(start_from) if start_from else None,
        start_to=ensure_aware(start_to) if start_to else None,
        past=past,
    )


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def post_cancel_booking(
    booking_id: str,
    actor: Actor,
    session: Session,
    clock: ClockDep,
    body: CancelBookingRequest | None = None,
):
    reason = body.reason if body else None
    return await request_cancellation(session, actor, booking_id, clock, reason=reason)


@router.patch("/{booking_id}/cancel", response_model=BookingResponse)
async def patch_cancel_booking(
    booking_id: str,
    body: ResolveCancellationRequest,
    actor: Actor,
    session: Session,
):
    return await resolve_cancellation(session, actor, booking_id, body.action)


@router.patch("/{booking_id}/notes", response_model=BookingResponse)
async def patch_booking_notes(
    booking_id: str,
    body: BookingNotesRequest,
    actor: Actor,
    session: Session,
    clock: ClockDep,
):
    return await update_booking_notes(session, actor, booking_id, body.notes, clock)

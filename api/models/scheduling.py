"""
Pydantic models for the scheduling API.

Field names are snake_case in Python and camelCase on the wire; requests
accept either form.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from database.models import BookingStatus, CancelledBy, ExchangeStatus


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================================================
# Requests
# ============================================================================


class CreateExchangeRequest(ApiModel):
    """Body of POST /exchanges."""

    my_booking_id: str = Field(..., min_length=1)
    target_booking_id: str = Field(..., min_length=1)
    message: str | None = Field(None, max_length=1000)

    @field_validator("my_booking_id", "target_booking_id")
    @classmethod
    def strip_ids(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Booking id cannot be blank")
        return v


class ExchangeActionRequest(ApiModel):
    action: Literal["confirm", "decline", "cancel", "approve"]


class CancelBookingRequest(ApiModel):
    # Longer reasons are truncated, not rejected
    reason: str | None = None


class ResolveCancellationRequest(ApiModel):
    action: Literal["approve", "decline"]


class BookingNotesRequest(ApiModel):
    notes: str | None = None


class ProviderSettingsUpdate(ApiModel):
    """Body of PUT /provider/settings. Omitted fields keep their current value."""

    min_advance_hours: int | None = Field(None, ge=0)
    max_advance_days: int | None = Field(None, ge=1)
    allow_cross_day_exchanges: bool | None = None
    require_provider_approval: bool | None = None
    reminder_enabled: bool | None = None
    reminder_day_before: bool | None = None
    reminder_hours_before: int | None = Field(None, gt=0)


# ============================================================================
# Responses
# ============================================================================


class BookingResponse(ApiModel):
    id: str
    consumer_id: str
    provider_id: str
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    cancelled_by: CancelledBy | None = None
    cancellation_reason: str | None = None
    provider_notes: str | None = None
    consumer_notes: str | None = None
    created_at: datetime
    updated_at: datetime


class ExchangeResponse(ApiModel):
    id: str
    requester_id: str
    target_consumer_id: str
    original_booking_id: str
    target_booking_id: str
    requester_confirmed: bool
    target_confirmed: bool
    provider_approved: bool
    status: ExchangeStatus
    message: str | None = None
    created_at: datetime
    updated_at: datetime
    original_booking: BookingResponse | None = None
    target_booking: BookingResponse | None = None


class ProviderSettingsResponse(ApiModel):
    provider_id: str
    min_advance_hours: int
    max_advance_days: int
    allow_cross_day_exchanges: bool
    require_provider_approval: bool
    reminder_enabled: bool
    reminder_day_before: bool
    reminder_hours_before: int


class ReminderDispatchResponse(ApiModel):
    processed: int
    sent: int
    skipped: int
    failed: int

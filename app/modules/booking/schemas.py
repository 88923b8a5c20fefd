"""Booking schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import (
    ActorTypeEnum,
    BookingStatusEnum,
    CompletionStatusEnum,
    DepositStatusEnum,
)


class BookingCreate(BaseModel):
    """Create booking request."""

    provider_id: UUID | None = None
    client_name: str = Field(min_length=1, max_length=255)
    client_phone: str | None = Field(default=None, max_length=32)
    client_email: str | None = Field(default=None, max_length=255)
    service_type: str = Field(min_length=1, max_length=128)
    description: str | None = None
    location: str | None = Field(default=None, max_length=512)
    scheduled_at: datetime
    deposit_amount_cents: int | None = Field(default=None, gt=0)
    total_amount_cents: int | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class BookingCancelRequest(BaseModel):
    """Cancel booking request."""

    reason: str | None = Field(default=None, max_length=512)
    requested_by_client: bool = False


class BookingRescheduleRequest(BaseModel):
    """Reschedule booking request."""

    new_scheduled_at: datetime


class BookingRead(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    provider_id: UUID
    client_name: str
    client_phone: str | None
    client_email: str | None
    service_type: str
    description: str | None
    location: str | None
    scheduled_at: datetime
    status: BookingStatusEnum
    confirmation_token: str
    accepted_at: datetime | None
    last_rescheduled_at: datetime | None
    cancelled_at: datetime | None
    cancelled_by: ActorTypeEnum | None
    cancellation_reason: str | None
    created_at: datetime
    updated_at: datetime


class RescheduleRead(BaseModel):
    """Rescheduled booking together with the fee decision."""

    booking: BookingRead
    is_late: bool
    hours_until_appointment: float
    late_reschedule_count: int
    fee_cents: int


class PublicBookingRead(BaseModel):
    """What the client sees through the confirmation link."""

    id: UUID
    service_type: str
    scheduled_at: datetime
    status: BookingStatusEnum
    deposit_status: DepositStatusEnum
    deposit_amount_cents: int | None
    currency: str | None
    completion_status: CompletionStatusEnum | None

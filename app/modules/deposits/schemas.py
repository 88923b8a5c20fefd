"""Deposit schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import DepositStatusEnum, PaymentMethodEnum


class DepositRequestCreate(BaseModel):
    """Request a deposit from the client."""

    amount_cents: int = Field(gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class DepositCaptureRequest(BaseModel):
    """Payment evidence for a deposit."""

    method: PaymentMethodEnum
    proof_reference: str | None = Field(default=None, max_length=255)


class DepositRefundRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=512)


class DepositRead(BaseModel):
    """Deposit hold projection."""

    model_config = ConfigDict(from_attributes=True)

    booking_id: UUID
    status: DepositStatusEnum
    amount_cents: int = 0
    currency: str | None = None
    retained_amount_cents: int = 0
    rolled_amount_cents: int = 0
    late_reschedule_count: int = 0
    waive_reschedule_fee: bool = False
    auto_release_at: datetime | None = None
    payment_method: PaymentMethodEnum | None = None
    proof_reference: str | None = None
    captured_at: datetime | None = None
    released_at: datetime | None = None
    released_amount_cents: int | None = None
    refunded_at: datetime | None = None
    refunded_amount_cents: int | None = None
    disputed_at: datetime | None = None
    version: int = 0

    @classmethod
    def from_hold(cls, booking_id: UUID, hold) -> DepositRead:
        """Project a hold, or the `none` state when no deposit was requested."""
        if hold is None:
            return cls(booking_id=booking_id, status=DepositStatusEnum.NONE)
        return cls.model_validate(hold)

"""Card-processor webhook schemas."""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import DepositStatusEnum, PaymentMethodEnum


class PaymentWebhookEvent(BaseModel):
    """Payment confirmation pushed by the card processor."""

    event_type: Literal["deposit.captured", "deposit.refunded"]
    booking_id: UUID
    method: PaymentMethodEnum = PaymentMethodEnum.STRIPE
    reference: str | None = Field(default=None, max_length=255)
    reason: str | None = Field(default=None, max_length=512)


class PaymentWebhookAck(BaseModel):
    booking_id: UUID
    deposit_status: DepositStatusEnum

"""Remainder schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import PaymentMethodEnum, RemainderPaymentStatusEnum


class RemainderCreate(BaseModel):
    total_amount_cents: int = Field(ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class RemainderSettle(BaseModel):
    """How the client paid the remainder."""

    method: PaymentMethodEnum
    notes: str | None = Field(default=None, max_length=1024)


class RemainderRead(BaseModel):
    """Remainder balance response schema."""

    booking_id: UUID
    total_amount_cents: int
    currency: str
    remainder_due_cents: int
    payment_status: RemainderPaymentStatusEnum
    payment_method: PaymentMethodEnum | None
    paid_at: datetime | None
    notes: str | None

    @classmethod
    def from_view(cls, view) -> RemainderRead:
        balance = view.balance
        return cls(
            booking_id=balance.booking_id,
            total_amount_cents=balance.total_amount_cents,
            currency=balance.currency,
            remainder_due_cents=view.remainder_due.amount_cents,
            payment_status=balance.payment_status,
            payment_method=balance.payment_method,
            paid_at=balance.paid_at,
            notes=balance.notes,
        )

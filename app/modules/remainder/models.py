"""Remainder balance ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, Enum as SAEnum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin, VersionMixin
from app.core.enums import PaymentMethodEnum, RemainderPaymentStatusEnum
from app.shared.money import Money


class RemainderBalance(BaseModelMixin, VersionMixin, Base):
    """Job price owed after the deposit, settled outside the deposit flow."""

    __tablename__ = "remainder_balances"
    __table_args__ = (CheckConstraint("total_amount_cents >= 0", name="total_non_negative"),)

    booking_id: Mapped[UUID] = mapped_column(
        ForeignKey("booking_requests.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    total_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    payment_status: Mapped[RemainderPaymentStatusEnum] = mapped_column(
        SAEnum(RemainderPaymentStatusEnum, name="remainder_payment_status_enum", native_enum=False),
        default=RemainderPaymentStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    payment_method: Mapped[PaymentMethodEnum | None] = mapped_column(
        SAEnum(PaymentMethodEnum, name="payment_method_enum", native_enum=False),
        nullable=True,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    @property
    def total(self) -> Money:
        return Money(self.total_amount_cents, self.currency)

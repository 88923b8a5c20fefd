"""Deposit hold ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum as SAEnum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin, VersionMixin
from app.core.enums import DepositStatusEnum, PaymentMethodEnum
from app.shared.money import Money


class DepositHold(BaseModelMixin, VersionMixin, Base):
    """Monetary hold taken against one booking request."""

    __tablename__ = "deposit_holds"
    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="amount_positive"),
        CheckConstraint("retained_amount_cents >= 0", name="retained_non_negative"),
        CheckConstraint("rolled_amount_cents >= 0", name="rolled_non_negative"),
        CheckConstraint(
            "retained_amount_cents + rolled_amount_cents = amount_cents",
            name="ledger_balanced",
        ),
    )

    booking_id: Mapped[UUID] = mapped_column(
        ForeignKey("booking_requests.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    status: Mapped[DepositStatusEnum] = mapped_column(
        SAEnum(DepositStatusEnum, name="deposit_status_enum", native_enum=False),
        default=DepositStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    retained_amount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rolled_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    late_reschedule_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    waive_reschedule_fee: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_release_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    payment_method: Mapped[PaymentMethodEnum | None] = mapped_column(
        SAEnum(PaymentMethodEnum, name="payment_method_enum", native_enum=False),
        nullable=True,
    )
    proof_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    captured_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    released_amount_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_amount_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    disputed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def amount(self) -> Money:
        return Money(self.amount_cents, self.currency)

    @property
    def retained(self) -> Money:
        return Money(self.retained_amount_cents, self.currency)

    @property
    def rolled(self) -> Money:
        return Money(self.rolled_amount_cents, self.currency)

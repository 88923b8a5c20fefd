"""Completion record ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin, VersionMixin
from app.core.enums import ActorTypeEnum, CompletionStatusEnum


class CompletionRecord(BaseModelMixin, VersionMixin, Base):
    """Tracks whether the booked job was actually done."""

    __tablename__ = "completion_records"

    booking_id: Mapped[UUID] = mapped_column(
        ForeignKey("booking_requests.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    completion_status: Mapped[CompletionStatusEnum] = mapped_column(
        SAEnum(CompletionStatusEnum, name="completion_status_enum", native_enum=False),
        default=CompletionStatusEnum.SCHEDULED,
        nullable=False,
        index=True,
    )
    work_done_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_by: Mapped[ActorTypeEnum | None] = mapped_column(
        SAEnum(ActorTypeEnum, name="actor_type_enum", native_enum=False),
        nullable=True,
    )
    disputed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    dispute_reason: Mapped[str | None] = mapped_column(String(1024), nullable=True)

"""Durable timer ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin, VersionMixin
from app.core.enums import ScheduledJobKindEnum, ScheduledJobStatusEnum


class ScheduledJob(BaseModelMixin, VersionMixin, Base):
    """Persisted deadline that survives process restarts."""

    __tablename__ = "scheduled_jobs"
    __table_args__ = (
        Index(
            "uq_scheduled_jobs_armed_booking_kind",
            "booking_id",
            "kind",
            unique=True,
            postgresql_where=text("status = 'armed'"),
        ),
    )

    booking_id: Mapped[UUID] = mapped_column(
        ForeignKey("booking_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind: Mapped[ScheduledJobKindEnum] = mapped_column(
        SAEnum(ScheduledJobKindEnum, name="scheduled_job_kind_enum", native_enum=False),
        nullable=False,
    )
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[ScheduledJobStatusEnum] = mapped_column(
        SAEnum(ScheduledJobStatusEnum, name="scheduled_job_status_enum", native_enum=False),
        default=ScheduledJobStatusEnum.ARMED,
        nullable=False,
        index=True,
    )
    fired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

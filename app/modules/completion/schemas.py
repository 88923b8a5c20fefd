"""Completion schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import ActorTypeEnum, CompletionStatusEnum


class DisputeCreate(BaseModel):
    """Client dispute about the job outcome."""

    reason: str | None = Field(default=None, max_length=1024)


class CompletionRead(BaseModel):
    """Completion record response schema."""

    model_config = ConfigDict(from_attributes=True)

    booking_id: UUID
    completion_status: CompletionStatusEnum
    work_done_at: datetime | None
    completed_at: datetime | None
    completed_by: ActorTypeEnum | None
    disputed_at: datetime | None
    dispute_reason: str | None
    version: int

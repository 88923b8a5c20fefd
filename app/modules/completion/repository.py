"""Completion record repository layer."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import compare_and_set
from app.core.enums import CompletionStatusEnum
from app.modules.completion.models import CompletionRecord


class CompletionRepository:
    """DB operations for completion confirmation."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_record(self, booking_id: UUID) -> CompletionRecord:
        record = CompletionRecord(
            booking_id=booking_id,
            completion_status=CompletionStatusEnum.SCHEDULED,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def get_by_booking_id(self, booking_id: UUID) -> CompletionRecord | None:
        stmt = select(CompletionRecord).where(CompletionRecord.booking_id == booking_id)
        return await self.session.scalar(stmt)

    async def compare_and_set(
        self,
        record: CompletionRecord,
        expected_status: CompletionStatusEnum,
        **values: Any,
    ) -> bool:
        return await compare_and_set(
            self.session,
            record,
            CompletionRecord.completion_status,
            expected_status,
            values,
        )

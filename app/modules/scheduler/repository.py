"""Durable timer repository layer."""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import compare_and_set
from app.core.enums import (
    CompletionStatusEnum,
    DepositStatusEnum,
    ScheduledJobKindEnum,
    ScheduledJobStatusEnum,
)
from app.modules.completion.models import CompletionRecord
from app.modules.deposits.models import DepositHold
from app.modules.scheduler.models import ScheduledJob
from app.shared.utils import utc_now


class SchedulerRepository:
    """DB operations for durable timers."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def savepoint(self) -> AbstractAsyncContextManager:
        """Nested transaction isolating one timer firing."""
        return self.session.begin_nested()

    async def commit(self) -> None:
        await self.session.commit()

    async def get_armed_job(self, booking_id: UUID, kind: ScheduledJobKindEnum) -> ScheduledJob | None:
        stmt = select(ScheduledJob).where(
            ScheduledJob.booking_id == booking_id,
            ScheduledJob.kind == kind,
            ScheduledJob.status == ScheduledJobStatusEnum.ARMED,
        )
        return await self.session.scalar(stmt)

    async def arm(self, booking_id: UUID, kind: ScheduledJobKindEnum, due_at: datetime) -> ScheduledJob:
        existing = await self.get_armed_job(booking_id, kind)
        if existing is not None:
            return existing
        job = ScheduledJob(
            booking_id=booking_id,
            kind=kind,
            due_at=due_at,
            status=ScheduledJobStatusEnum.ARMED,
        )
        self.session.add(job)
        await self.session.flush()
        return job

    async def disarm(
        self,
        booking_id: UUID,
        kinds: Iterable[ScheduledJobKindEnum] | None = None,
    ) -> int:
        now = utc_now()
        conditions = [
            ScheduledJob.booking_id == booking_id,
            ScheduledJob.status == ScheduledJobStatusEnum.ARMED,
        ]
        if kinds is not None:
            conditions.append(ScheduledJob.kind.in_(list(kinds)))
        stmt = (
            update(ScheduledJob)
            .where(*conditions)
            .values(
                status=ScheduledJobStatusEnum.CANCELLED,
                cancelled_at=now,
                version=ScheduledJob.version + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)

    async def list_due_jobs(self, now: datetime, limit: int) -> list[ScheduledJob]:
        stmt = (
            select(ScheduledJob)
            .where(
                ScheduledJob.status == ScheduledJobStatusEnum.ARMED,
                ScheduledJob.due_at <= now,
            )
            .order_by(ScheduledJob.due_at.asc())
            .limit(limit)
        )
        return (await self.session.scalars(stmt)).all()

    async def claim(self, job: ScheduledJob, fired_at: datetime) -> bool:
        return await compare_and_set(
            self.session,
            job,
            ScheduledJob.status,
            ScheduledJobStatusEnum.ARMED,
            {"status": ScheduledJobStatusEnum.FIRED, "fired_at": fired_at},
        )

    async def find_unarmed_release_candidates(self) -> list[tuple[UUID, datetime]]:
        """Captured holds on completed jobs that have no armed release timer."""
        armed = (
            select(ScheduledJob.id)
            .where(
                ScheduledJob.booking_id == DepositHold.booking_id,
                ScheduledJob.kind == ScheduledJobKindEnum.DEPOSIT_AUTO_RELEASE,
                ScheduledJob.status == ScheduledJobStatusEnum.ARMED,
            )
            .exists()
        )
        stmt = (
            select(DepositHold.booking_id, CompletionRecord.completed_at)
            .join(CompletionRecord, CompletionRecord.booking_id == DepositHold.booking_id)
            .where(
                DepositHold.status == DepositStatusEnum.CAPTURED,
                CompletionRecord.completion_status == CompletionStatusEnum.COMPLETED,
                CompletionRecord.completed_at.is_not(None),
                ~armed,
            )
        )
        rows = (await self.session.execute(stmt)).all()
        return [(booking_id, completed_at) for booking_id, completed_at in rows]

    async def find_unarmed_confirmation_candidates(self) -> list[tuple[UUID, datetime]]:
        """Records awaiting client confirmation without an armed timeout."""
        armed = (
            select(ScheduledJob.id)
            .where(
                ScheduledJob.booking_id == CompletionRecord.booking_id,
                ScheduledJob.kind == ScheduledJobKindEnum.COMPLETION_TIMEOUT,
                ScheduledJob.status == ScheduledJobStatusEnum.ARMED,
            )
            .exists()
        )
        stmt = select(CompletionRecord.booking_id, CompletionRecord.work_done_at).where(
            CompletionRecord.completion_status == CompletionStatusEnum.AWAITING_CONFIRMATION,
            CompletionRecord.work_done_at.is_not(None),
            ~armed,
        )
        rows = (await self.session.execute(stmt)).all()
        return [(booking_id, work_done_at) for booking_id, work_done_at in rows]

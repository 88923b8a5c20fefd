"""Durable timer dispatcher for deposit auto-release and completion timeouts."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import ScheduledJobKindEnum
from app.core.metrics import SCHEDULER_FIRINGS_TOTAL
from app.modules.completion.service import CompletionService, build_completion_service
from app.modules.deposits.policy import LifecyclePolicy, get_lifecycle_policy
from app.modules.scheduler.models import ScheduledJob
from app.modules.scheduler.repository import SchedulerRepository
from app.shared.utils import utc_now

logger = logging.getLogger(__name__)


class TimerScheduler:
    """Fire due timers, each in its own transaction.

    A job is claimed (armed -> fired) before its handler runs. Handlers
    re-check the entity status with a compare-and-set and return False when the
    entity moved on, which counts as a drop rather than a failure. A handler
    error rolls back the claim so the job fires again on the next cycle.
    """

    def __init__(
        self,
        scheduler_repository: SchedulerRepository,
        completion_service: CompletionService,
        *,
        batch_size: int = 100,
        now_provider=utc_now,
    ) -> None:
        self.scheduler_repository = scheduler_repository
        self.completion_service = completion_service
        self.deposit_service = completion_service.deposit_service
        self.batch_size = batch_size
        self.now_provider = now_provider
        self._handlers: dict[ScheduledJobKindEnum, Callable[[UUID], Awaitable[bool]]] = {
            ScheduledJobKindEnum.DEPOSIT_AUTO_RELEASE: self.deposit_service.release_by_timer,
            ScheduledJobKindEnum.COMPLETION_TIMEOUT: self.completion_service.complete_by_timeout,
        }

    async def run_once(self) -> dict[str, int]:
        """Run one dispatch cycle over overdue armed jobs."""
        stats = {"due": 0, "fired": 0, "dropped": 0, "failed": 0}
        now = self.now_provider()
        jobs = await self.scheduler_repository.list_due_jobs(now, self.batch_size)
        stats["due"] = len(jobs)

        for job in jobs:
            kind = job.kind
            booking_id = job.booking_id
            try:
                async with self.scheduler_repository.savepoint():
                    outcome = await self._fire(job, now)
                await self.scheduler_repository.commit()
            except Exception:
                logger.exception("Timer %s for booking %s failed", kind, booking_id)
                outcome = "failed"

            stats[outcome] += 1
            SCHEDULER_FIRINGS_TOTAL.labels(kind=str(kind), outcome=outcome).inc()
        return stats

    async def _fire(self, job: ScheduledJob, now: datetime) -> str:
        if not await self.scheduler_repository.claim(job, now):
            logger.info("Timer %s for booking %s already claimed or disarmed", job.kind, job.booking_id)
            return "dropped"
        fired = await self._handlers[job.kind](job.booking_id)
        return "fired" if fired else "dropped"

    async def reconcile(self) -> dict[str, int]:
        """Re-arm timers that should exist but are missing, e.g. after a crash."""
        stats = {"release_armed": 0, "confirmation_armed": 0}

        for booking_id, completed_at in await self.scheduler_repository.find_unarmed_release_candidates():
            await self.deposit_service.arm_auto_release(booking_id, completed_at)
            stats["release_armed"] += 1

        candidates = await self.scheduler_repository.find_unarmed_confirmation_candidates()
        for booking_id, work_done_at in candidates:
            await self.completion_service.arm_confirmation_timeout(booking_id, work_done_at)
            stats["confirmation_armed"] += 1

        await self.scheduler_repository.commit()
        return stats


def build_timer_scheduler(
    session: AsyncSession,
    *,
    batch_size: int,
    policy: LifecyclePolicy | None = None,
) -> TimerScheduler:
    """Wire scheduler and lifecycle services over one DB session."""
    policy = policy or get_lifecycle_policy()
    return TimerScheduler(
        scheduler_repository=SchedulerRepository(session),
        completion_service=build_completion_service(session, policy),
        batch_size=batch_size,
    )

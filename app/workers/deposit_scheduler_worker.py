"""Executable worker for deposit auto-release and completion timeouts."""

from __future__ import annotations

import asyncio
import logging
import os

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.modules.scheduler.service import build_timer_scheduler

logger = logging.getLogger(__name__)


async def reconcile() -> dict[str, int]:
    """Re-arm missing timers before the first dispatch cycle."""
    settings = get_settings()
    async with SessionLocal() as session:
        scheduler = build_timer_scheduler(session, batch_size=settings.scheduler_batch_size)
        return await scheduler.reconcile()


async def run_cycle() -> dict[str, int]:
    """Fire every overdue timer; each firing commits separately."""
    settings = get_settings()
    async with SessionLocal() as session:
        scheduler = build_timer_scheduler(session, batch_size=settings.scheduler_batch_size)
        return await scheduler.run_once()


async def main() -> None:
    """Reconcile, then run once or keep polling according to worker mode."""
    settings = get_settings()
    logging.basicConfig(level=os.getenv("SCHEDULER_WORKER_LOG_LEVEL", settings.log_level))
    mode = os.getenv("SCHEDULER_WORKER_MODE", "once").strip().lower()

    stats = await reconcile()
    logger.info("Deposit scheduler reconcile stats: %s", stats)

    if mode == "once":
        stats = await run_cycle()
        logger.info("Deposit scheduler worker stats: %s", stats)
        return

    while True:
        try:
            stats = await run_cycle()
            logger.info("Deposit scheduler worker stats: %s", stats)
        except Exception:
            logger.exception("Deposit scheduler worker cycle failed")
        await asyncio.sleep(settings.scheduler_poll_seconds)


if __name__ == "__main__":
    asyncio.run(main())

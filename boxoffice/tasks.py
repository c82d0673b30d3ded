"""
Background tasks: the hold expiry sweeper.

Every SWEEP_INTERVAL_SECONDS the sweeper reclaims seats whose hold deadline
has passed. Since the interval never exceeds the hold duration, a seat is
stuck in BOOKING_IN_PROGRESS for at most one hold window plus one interval
after its buyer disappears.
"""

import asyncio
import time
from datetime import datetime
from typing import Optional

from boxoffice.core.config import get_settings
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import sweep_latency, sweep_runs
from boxoffice.db.session import session_scope
from boxoffice.services.hold_service import release_expired_holds

logger = get_logger(__name__)
settings = get_settings()


async def sweep_expired_holds(now: Optional[datetime] = None) -> int:
    """One sweep in its own transaction. Returns the number of seats reclaimed."""
    started = time.perf_counter()
    async with session_scope() as db:
        reclaimed = await release_expired_holds(db, now)
    sweep_latency.observe(time.perf_counter() - started)
    sweep_runs.labels(result="ok").inc()

    if reclaimed:
        logger.info("hold_sweep_completed", reclaimed=reclaimed)
    return reclaimed


async def run_hold_sweeper(interval_seconds: int) -> None:
    logger.info("hold_sweeper_started", interval_seconds=interval_seconds)

    while True:
        try:
            await sweep_expired_holds()
        except Exception as e:
            # The loop must survive a bad iteration; the next tick retries
            sweep_runs.labels(result="error").inc()
            logger.error("hold_sweep_failed", error=str(e), exc_info=True)

        await asyncio.sleep(interval_seconds)


class BackgroundTaskManager:
    """Manager for background tasks."""

    def __init__(self):
        self.tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self.tasks)

    async def start(self) -> None:
        self.tasks.append(asyncio.create_task(run_hold_sweeper(settings.SWEEP_INTERVAL_SECONDS)))
        logger.info("background_tasks_started", count=len(self.tasks))

    async def stop(self) -> None:
        for task in self.tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.tasks.clear()
        logger.info("background_tasks_stopped")


# Global instance
background_tasks = BackgroundTaskManager()

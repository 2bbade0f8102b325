"""Periodic browser-data sync on top of APScheduler.

The scheduler must be started from inside the running event loop; the MCP
server does this in its lifespan hook.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from browsermate.engine import RetrievalEngine

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "sync-browser-data"


class SyncScheduler:
    """Runs `engine.sync()` on a fixed interval, one run at a time."""

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None) -> None:
        self._scheduler = scheduler or AsyncIOScheduler()
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        if self._started:
            return
        self._scheduler.start()
        self._started = True

    def shutdown(self, *, wait: bool = True) -> None:
        if not self._started:
            return
        self._scheduler.shutdown(wait=wait)
        self._started = False

    def schedule_sync(
        self,
        engine: RetrievalEngine,
        *,
        interval: timedelta = timedelta(minutes=30),
        job_id: str = SYNC_JOB_ID,
        replace_existing: bool = True,
    ) -> None:
        """Sync `engine` every `interval`.

        Parameters
        ----------
        engine: RetrievalEngine
            The engine whose sources are synced.
        interval: timedelta
            Time between runs (default 30 minutes).
        job_id: str
            Scheduling again under the same id replaces the earlier job.
        replace_existing: bool
            Whether a job with the same id may be replaced.
        """

        async def run_sync() -> None:
            try:
                result = await engine.sync()
            except Exception:
                logger.exception("Scheduled sync failed")
                return
            logger.info(
                "Scheduled sync finished: success=%s items=%d", result.success, result.items_count
            )

        self._scheduler.add_job(
            run_sync,
            trigger=IntervalTrigger(seconds=int(interval.total_seconds())),
            id=job_id,
            replace_existing=replace_existing,
            max_instances=1,
            coalesce=True,
        )

    def next_run_time(self, job_id: str = SYNC_JOB_ID) -> Optional[datetime]:
        job = self._scheduler.get_job(job_id)
        return getattr(job, "next_run_time", None) if job is not None else None

    def cancel(self, job_id: str = SYNC_JOB_ID) -> None:
        """Drop the job; no-op if it is not scheduled."""
        if self._scheduler.get_job(job_id) is not None:
            self._scheduler.remove_job(job_id)

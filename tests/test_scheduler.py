from datetime import timedelta

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from browsermate.engine import SyncResult
from browsermate.sources.scheduler import SYNC_JOB_ID, SyncScheduler


class FakeEngine:
    def __init__(self) -> None:
        self.calls = 0

    async def sync(self) -> SyncResult:
        self.calls += 1
        return SyncResult(success=True, items_count=3, last_sync_time=1)


def test_schedule_and_cancel_sync_job() -> None:
    aps = AsyncIOScheduler()
    scheduler = SyncScheduler(aps)
    scheduler.schedule_sync(FakeEngine(), interval=timedelta(minutes=5))

    job = aps.get_job(SYNC_JOB_ID)
    assert job is not None
    assert job.trigger.interval == timedelta(minutes=5)
    assert job.max_instances == 1

    scheduler.cancel()
    assert aps.get_job(SYNC_JOB_ID) is None
    # cancelling a missing job is a no-op
    scheduler.cancel()


@pytest.mark.asyncio
async def test_scheduled_job_runs_engine_sync() -> None:
    aps = AsyncIOScheduler()
    scheduler = SyncScheduler(aps)
    engine = FakeEngine()
    scheduler.schedule_sync(engine)

    await aps.get_job(SYNC_JOB_ID).func()
    assert engine.calls == 1


@pytest.mark.asyncio
async def test_running_scheduler_replaces_existing_job() -> None:
    aps = AsyncIOScheduler()
    scheduler = SyncScheduler(aps)
    assert scheduler.started is False
    scheduler.start()
    scheduler.start()
    assert scheduler.started is True
    try:
        scheduler.schedule_sync(FakeEngine(), interval=timedelta(minutes=5))
        scheduler.schedule_sync(FakeEngine(), interval=timedelta(minutes=10))
        jobs = aps.get_jobs()
        assert len(jobs) == 1
        assert jobs[0].trigger.interval == timedelta(minutes=10)
        assert scheduler.next_run_time() is not None
    finally:
        scheduler.shutdown(wait=False)
    assert scheduler.started is False

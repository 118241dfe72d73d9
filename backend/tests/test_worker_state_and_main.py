from __future__ import annotations

from datetime import timedelta

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from footy.main import register_jobs
from footy.store import keys
from footy.utils import utcnow
from footy.workers._report import JobReport
from footy.workers._state import get_synced_at, recently_synced, set_synced


@pytest.mark.asyncio
async def test_register_jobs_adds_both_workers_once(provider):
    scheduler = AsyncIOScheduler()

    assert register_jobs(scheduler, provider) == 2
    assert register_jobs(scheduler, provider) == 0

    jobs = {job.id: job for job in scheduler.get_jobs()}
    assert set(jobs) == {"live_sync", "settlement"}
    assert jobs["live_sync"].trigger.interval == timedelta(minutes=1)
    assert jobs["settlement"].trigger.interval == timedelta(minutes=5)
    assert jobs["settlement"].max_instances == 1
    # One provider, and so one circuit breaker, for every tick of both jobs.
    assert jobs["live_sync"].kwargs == {"provider": provider}
    assert jobs["settlement"].kwargs["provider"] is provider


@pytest.mark.asyncio
async def test_set_synced_records_last_report(store):
    report = JobReport(job="settlement", entries_settled=4)

    await set_synced(store, report)

    doc = store.doc(keys.WORKER_STATE, "settlement")
    assert doc["ok"] is True
    assert doc["last_report"]["entries_settled"] == 4
    assert await get_synced_at(store, "settlement") is not None
    assert await recently_synced(store, "settlement", timedelta(minutes=5))
    assert not await recently_synced(store, "live_sync", timedelta(minutes=5))


@pytest.mark.asyncio
async def test_stale_state_is_not_recent(store):
    store.put(keys.WORKER_STATE, "settlement", {"synced_at": utcnow() - timedelta(minutes=10)})

    assert not await recently_synced(store, "settlement", timedelta(minutes=5))


@pytest.mark.asyncio
async def test_set_synced_never_raises():
    class _ReadOnlyStore:
        async def set(self, *args, **kwargs):
            raise RuntimeError("not primary")

    await set_synced(_ReadOnlyStore(), JobReport(job="live_sync"))

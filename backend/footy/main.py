"""
backend/footy/main.py

Purpose:
    Worker process bootstrap: logging, database connection and the scheduler
    that triggers live sync (every minute) and settlement (every 5 minutes).

Dependencies:
    - apscheduler
    - footy.database
    - footy.workers
"""

import asyncio
import logging
import signal
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler

import footy.database as _db
from footy.config import settings
from footy.log_setup import setup_logging
from footy.providers.api_football import ApiFootballProvider
from footy.providers.base import ResultProvider
from footy.workers import live_sync, settlement
from footy.workers._state import recently_synced

logger = logging.getLogger("footy")


def build_job_specs(provider: ResultProvider | None = None) -> list[dict]:
    """Scheduled jobs. A shared provider keeps its circuit breaker across ticks."""
    kwargs = {"provider": provider} if provider is not None else {}
    return [
        {
            "id": live_sync.JOB_ID,
            "func": live_sync.sync_live_fixtures,
            "trigger": "interval",
            "trigger_kwargs": {"minutes": settings.LIVE_SYNC_INTERVAL_MINUTES},
            "kwargs": kwargs,
        },
        {
            "id": settlement.JOB_ID,
            "func": settlement.settle_finished_fixtures,
            "trigger": "interval",
            "trigger_kwargs": {"minutes": settings.SETTLEMENT_INTERVAL_MINUTES},
            "kwargs": kwargs,
        },
    ]


def register_jobs(scheduler: AsyncIOScheduler, provider: ResultProvider | None = None) -> int:
    added = 0
    for spec in build_job_specs(provider):
        if scheduler.get_job(spec["id"]):
            continue
        scheduler.add_job(
            spec["func"],
            spec["trigger"],
            id=spec["id"],
            kwargs=spec["kwargs"],
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=30,
            **spec["trigger_kwargs"],
        )
        added += 1
    return added


async def _initial_settlement(provider: ResultProvider) -> None:
    """Catch up after a restart unless settlement ran within its interval."""
    interval = timedelta(minutes=settings.SETTLEMENT_INTERVAL_MINUTES)
    if await recently_synced(_db.get_store(), settlement.JOB_ID, interval):
        logger.info("Settlement ran recently, waiting for the next scheduled tick")
        return
    await settlement.settle_finished_fixtures(provider=provider)


async def run() -> None:
    setup_logging()
    await _db.connect_db()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass  # Windows event loops

    scheduler = AsyncIOScheduler()
    try:
        async with ApiFootballProvider() as provider:
            added = register_jobs(scheduler, provider)
            scheduler.start()
            logger.info("Background scheduler started with %d jobs", added)
            try:
                await _initial_settlement(provider)
                await stop.wait()
            finally:
                if scheduler.running:
                    scheduler.shutdown(wait=False)
    finally:
        await _db.close_db()
        logger.info("Worker stopped")


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()

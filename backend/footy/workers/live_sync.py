"""
backend/footy/workers/live_sync.py

Purpose:
    Keep cached fixture snapshots fresh for every match of every active
    contest. Runs every minute via scheduler.

    A snapshot already cached as final is never written again: from that point
    on the settlement worker owns the match. The write that records the
    final state itself is the last one this worker makes for the fixture.

Dependencies:
    - footy.providers.api_football
    - footy.services.contest_service
    - footy.store
"""

import logging
from typing import Any, Optional

import footy.database as _db
from footy.config import settings
from footy.models.contest import ContestInDB
from footy.models.match import MatchPhase, MatchSnapshot
from footy.providers.api_football import ApiFootballProvider
from footy.providers.base import ResultProvider
from footy.services.contest_service import (
    cached_snapshot,
    external_match_id,
    list_active_contests,
    list_contest_matches,
)
from footy.services.outcome_service import classify_status, is_final
from footy.store import keys
from footy.store.base import BatchConflictError, DocumentStore
from footy.utils import utcnow
from footy.workers._report import JobReport, for_each_contest, run_job
from footy.workers._state import set_synced

logger = logging.getLogger("footy.live_sync")

JOB_ID = "live_sync"

# An overlapping run may have cached the final state in the meantime.
_NOT_FINAL_GUARD = {"phase": {"$ne": MatchPhase.final.value}}


def _unchanged(cached: Optional[MatchSnapshot], fresh: MatchSnapshot) -> bool:
    return cached is not None and cached.status == fresh.status and cached.raw == fresh.raw


async def sync_live_fixtures(
    store: DocumentStore | None = None,
    provider: ResultProvider | None = None,
) -> JobReport:
    """Refresh cached snapshots for all active contests. Safe to run concurrently."""
    report = JobReport(job=JOB_ID)
    if store is None:
        try:
            store = _db.get_store()
        except RuntimeError as e:
            report.fail(str(e))
            logger.error("Live sync cannot start: %s", e)
            return report

    owns_provider = provider is None
    if provider is None:
        provider = ApiFootballProvider()
    try:
        await run_job(
            report,
            lambda: _sync_all(store, provider, report),
            deadline_seconds=settings.LIVE_SYNC_DEADLINE_SECONDS,
        )
    finally:
        if owns_provider:
            await provider.aclose()

    await set_synced(store, report)
    return report


async def _sync_all(store: DocumentStore, provider: ResultProvider, report: JobReport) -> None:
    contests = await list_active_contests(store)
    if not contests:
        logger.debug("No active contests, nothing to sync")
        return

    async def _handle(contest: ContestInDB) -> None:
        await sync_contest(store, provider, contest.id, report)

    await for_each_contest(
        contests, _handle, report,
        concurrency=settings.CONTEST_CONCURRENCY,
        label=lambda c: c.id,
    )


async def sync_contest(
    store: DocumentStore,
    provider: ResultProvider,
    contest_id: str,
    report: JobReport,
) -> int:
    """Sync one contest; returns the number of cached snapshots written.

    Provider and store errors propagate to the caller, which isolates them
    per contest.
    """
    match_docs = await list_contest_matches(store, contest_id)
    if not match_docs:
        return 0

    tracked: list[tuple[dict[str, Any], int]] = []
    for doc in match_docs:
        match_id = external_match_id(doc)
        if match_id is not None:
            tracked.append((doc, match_id))
    if not tracked:
        return 0

    fresh_by_id = {
        snap.match_id: snap
        for snap in await provider.fetch_by_ids([match_id for _, match_id in tracked])
    }

    writes: list[tuple[str, MatchSnapshot]] = []
    for doc, match_id in tracked:
        fresh = fresh_by_id.get(match_id)
        if fresh is None:
            logger.debug("Contest %s: provider returned nothing for fixture %s", contest_id, match_id)
            continue
        cached = cached_snapshot(doc)
        if cached is not None and is_final(cached.status):
            continue
        if _unchanged(cached, fresh):
            continue
        writes.append((doc["_id"], fresh))

    if not writes:
        return 0

    now = utcnow()
    written = 0
    for start in range(0, len(writes), store.max_batch_size):
        batch = store.batch()
        for key, snap in writes[start:start + store.max_batch_size]:
            batch.update(
                keys.CONTEST_MATCHES,
                key,
                {
                    "snapshot": snap.model_dump(),
                    "phase": classify_status(snap.status).value,
                    "updated_at": now,
                },
                guard=_NOT_FINAL_GUARD,
            )
        try:
            written += await batch.commit()
        except BatchConflictError as e:
            logger.info(
                "Contest %s: fixture turned final in a concurrent run, deferring %d writes (%s)",
                contest_id, len(batch), e,
            )

    report.matches_updated += written
    if written:
        logger.info("Contest %s: refreshed %d fixtures", contest_id, written)
    return written

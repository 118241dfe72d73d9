"""
backend/footy/workers/settlement.py

Purpose:
    Award points for finished fixtures exactly once and keep participant
    aggregates in step. Runs every 5 minutes via scheduler.

    Per active contest: pick the fixtures cached as final, confirm them with
    the provider, resolve the 1X2 outcome and settle every unsettled
    prediction entry. Entries are written only through guarded batches
    (``awarded`` must still be unset), so a chunk that races another run is
    rejected as a whole and its increments are dropped. Aggregates are written
    only through single-document transactions, from increments of committed
    chunks.

Dependencies:
    - footy.providers.api_football
    - footy.services.outcome_service
    - footy.services.contest_service
    - footy.store
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import footy.database as _db
from footy.config import settings
from footy.models.contest import ContestInDB
from footy.models.match import MatchSnapshot, Outcome
from footy.models.participant import AggregateIncrement, ParticipantAggregate
from footy.models.prediction import EntryResult
from footy.providers.api_football import ApiFootballProvider
from footy.providers.base import ResultProvider
from footy.services.contest_service import (
    cached_snapshot,
    external_match_id,
    list_active_contests,
    list_contest_matches,
    list_match_entries,
)
from footy.services.outcome_service import OutcomeError, is_final, resolve_outcome
from footy.store import keys
from footy.store.base import BatchConflictError, DocumentStore, WriteBatch
from footy.utils import utcnow
from footy.workers._report import JobReport, for_each_contest, run_job
from footy.workers._state import set_synced

logger = logging.getLogger("footy.settlement")

JOB_ID = "settlement"

_UNSETTLED_GUARD = {"awarded": {"$ne": True}}


@dataclass
class _Chunk:
    batch: WriteBatch
    increments: dict[str, AggregateIncrement] = field(default_factory=dict)
    points: int = 0


def _parse_pick(value: Any) -> Optional[Outcome]:
    if not isinstance(value, str):
        return None
    try:
        return Outcome(value)
    except ValueError:
        return None


def _entry_result(snapshot: MatchSnapshot) -> Optional[dict[str, int]]:
    if snapshot.score is None or not snapshot.score.complete:
        return None
    return EntryResult(home_goals=snapshot.score.home, away_goals=snapshot.score.away).model_dump()


async def settle_finished_fixtures(
    store: DocumentStore | None = None,
    provider: ResultProvider | None = None,
) -> JobReport:
    """Settle every final fixture of every active contest. Safe to re-run at any point."""
    report = JobReport(job=JOB_ID)
    if store is None:
        try:
            store = _db.get_store()
        except RuntimeError as e:
            report.fail(str(e))
            logger.error("Settlement cannot start: %s", e)
            return report

    owns_provider = provider is None
    if provider is None:
        provider = ApiFootballProvider()
    try:
        await run_job(
            report,
            lambda: _settle_all(store, provider, report),
            deadline_seconds=settings.SETTLEMENT_DEADLINE_SECONDS,
        )
    finally:
        if owns_provider:
            await provider.aclose()

    await set_synced(store, report)
    return report


async def _settle_all(store: DocumentStore, provider: ResultProvider, report: JobReport) -> None:
    contests = await list_active_contests(store)
    if not contests:
        logger.debug("No active contests, nothing to settle")
        return

    async def _handle(contest: ContestInDB) -> None:
        await settle_contest(store, provider, contest.id, report)

    await for_each_contest(
        contests, _handle, report,
        concurrency=settings.CONTEST_CONCURRENCY,
        label=lambda c: c.id,
    )


async def settle_contest(
    store: DocumentStore,
    provider: ResultProvider,
    contest_id: str,
    report: JobReport,
) -> None:
    """Settle the final fixtures of one contest.

    Listing and the provider call propagate errors (per-contest isolation
    happens in the caller); anything after that is contained per fixture.
    """
    match_docs = await list_contest_matches(store, contest_id)

    final_ids: list[int] = []
    for doc in match_docs:
        cached = cached_snapshot(doc)
        if cached is None or not is_final(cached.status):
            continue
        match_id = external_match_id(doc)
        if match_id is not None and match_id not in final_ids:
            final_ids.append(match_id)

    if not final_ids:
        return

    confirmed = {snap.match_id: snap for snap in await provider.fetch_by_ids(final_ids)}

    for match_id in final_ids:
        snapshot = confirmed.get(match_id)
        if snapshot is None:
            report.matches_skipped += 1
            logger.warning(
                "Contest %s: provider returned no result for final fixture %s", contest_id, match_id,
            )
            continue
        try:
            await settle_match(store, snapshot, report)
        except Exception as e:
            report.matches_skipped += 1
            report.record_error(f"fixture {match_id}: {e}")
            logger.error("Contest %s: settling fixture %s failed: %s", contest_id, match_id, e)


async def settle_match(store: DocumentStore, snapshot: MatchSnapshot, report: JobReport) -> None:
    """Settle all unsettled entries of one confirmed fixture, then update aggregates.

    Once entry writes start, the fixture runs to completion even if the job
    deadline cancels the caller; ``run_job`` waits for it before reporting.
    """
    match_id = snapshot.match_id
    try:
        outcome = resolve_outcome(snapshot)
    except OutcomeError as e:
        report.matches_skipped += 1
        logger.warning("Fixture %s: cannot resolve outcome, skipping: %s", match_id, e)
        return
    if outcome is None:
        report.matches_skipped += 1
        logger.warning(
            "Fixture %s: cached as final but provider reports %s, skipping",
            match_id, snapshot.status,
        )
        return
    if snapshot.score is None or not snapshot.score.complete:
        logger.warning(
            "Fixture %s is %s without a full score; missing goals counted as 0 (outcome %s)",
            match_id, snapshot.status, outcome.value,
        )

    # Committed entries and their aggregate updates must not be split by the
    # job deadline: once a chunk is written its increments have to land.
    await report.protect(_settle_entries(store, snapshot, outcome, report))


async def _settle_entries(
    store: DocumentStore,
    snapshot: MatchSnapshot,
    outcome: Outcome,
    report: JobReport,
) -> None:
    match_id = snapshot.match_id
    entries = await list_match_entries(store, match_id)
    now = utcnow()
    settled_fields = {"status": snapshot.status, "result": _entry_result(snapshot), "settled_at": now}

    increments: dict[str, AggregateIncrement] = {}
    chunk = _Chunk(store.batch())
    committed_chunks = 0

    for entry in entries:
        if entry.get("awarded") is True:
            continue
        try:
            pick = _parse_pick(entry.get("pick"))
            if pick is None:
                report.entries_skipped += 1
                logger.warning(
                    "Fixture %s: entry %s has invalid pick %r, skipping",
                    match_id, entry.get("_id"), entry.get("pick"),
                )
                continue
            participant_id = entry.get("participant_id") or keys.participant_from_entry_key(entry["_id"])
            correct = pick is outcome
            points = 1 if correct else 0
            chunk.batch.update(
                keys.PREDICTION_ENTRIES,
                entry["_id"],
                {"awarded": True, "points": points, "correct": correct, **settled_fields},
                guard=_UNSETTLED_GUARD,
            )
        except Exception as e:
            report.entries_skipped += 1
            logger.error("Fixture %s: could not stage entry %s: %s", match_id, entry.get("_id"), e)
            continue

        chunk.increments.setdefault(participant_id, AggregateIncrement()).add(points, correct)
        chunk.points += points

        if chunk.batch.full:
            committed_chunks += await _commit_chunk(chunk, increments, report, match_id)
            chunk = _Chunk(store.batch())

    if len(chunk.batch):
        committed_chunks += await _commit_chunk(chunk, increments, report, match_id)

    if committed_chunks:
        report.matches_settled += 1
        logger.info(
            "Settled fixture %s (%s vs %s): %s, %d participants",
            match_id, snapshot.home_team or "?", snapshot.away_team or "?",
            outcome.value, len(increments),
        )

    await apply_increments(store, increments, report)


async def _commit_chunk(
    chunk: _Chunk,
    increments: dict[str, AggregateIncrement],
    report: JobReport,
    match_id: int,
) -> int:
    """Commit one chunk; its increments count only if the commit succeeded."""
    try:
        written = await chunk.batch.commit()
    except BatchConflictError as e:
        logger.warning(
            "Fixture %s: %d entries raced a concurrent settlement, chunk left for next run (%s)",
            match_id, len(chunk.batch), e,
        )
        return 0
    except Exception as e:
        report.record_error(f"fixture {match_id}: batch commit failed: {e}")
        logger.error("Fixture %s: batch of %d entries failed: %s", match_id, len(chunk.batch), e)
        return 0

    for participant_id, inc in chunk.increments.items():
        increments.setdefault(participant_id, AggregateIncrement()).merge(inc)
    report.entries_settled += written
    report.points_awarded += chunk.points
    return 1


async def apply_increments(
    store: DocumentStore,
    increments: dict[str, AggregateIncrement],
    report: JobReport,
) -> None:
    """Apply per-participant increments, one transaction each.

    A missing aggregate document is never created. Failures are not rolled back
    into the entries, which stay settled.
    """
    for participant_id, inc in increments.items():
        if inc.is_zero:
            continue

        def _apply(current: Optional[dict], inc: AggregateIncrement = inc) -> Optional[dict]:
            if current is None:
                return None
            present = {k: v for k, v in current.items() if v is not None}
            return ParticipantAggregate.model_validate(present).apply(inc).model_dump()

        try:
            applied = await store.transaction(keys.PARTICIPANTS, participant_id, _apply)
        except Exception as e:
            report.participants_skipped += 1
            report.record_error(f"participant {participant_id}: {e}")
            logger.error(
                "Aggregate update failed for %s (+%d points, +%d predictions): %s",
                participant_id, inc.points, inc.predictions, e,
            )
            continue

        if applied:
            report.participants_updated += 1
        else:
            report.participants_skipped += 1
            logger.warning(
                "Participant %s has no aggregate document; +%d points not recorded",
                participant_id, inc.points,
            )

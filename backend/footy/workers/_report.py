"""Run report returned by every worker entry point, plus the shared run loop."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Awaitable, Callable, Coroutine, Iterable, Optional, TypeVar

from footy.utils import utcnow

logger = logging.getLogger("footy.workers")

T = TypeVar("T")

_MAX_ERRORS = 50


@dataclass
class JobReport:
    job: str
    ok: bool = True
    contests_processed: int = 0
    contests_failed: int = 0
    matches_updated: int = 0
    matches_settled: int = 0
    matches_skipped: int = 0
    entries_settled: int = 0
    entries_skipped: int = 0
    points_awarded: int = 0
    participants_updated: int = 0
    participants_skipped: int = 0
    errors: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    _protected: set = field(default_factory=set, init=False, repr=False, compare=False)

    def record_error(self, message: str) -> None:
        if len(self.errors) < _MAX_ERRORS:
            self.errors.append(message)

    def fail(self, message: str) -> None:
        self.ok = False
        self.record_error(message)

    def summary(self) -> str:
        parts = [
            f"{self.job}: {'ok' if self.ok else 'FAILED'}",
            f"contests={self.contests_processed}",
        ]
        if self.contests_failed:
            parts.append(f"contests_failed={self.contests_failed}")
        if self.job == "live_sync":
            parts.append(f"matches_updated={self.matches_updated}")
        else:
            parts.extend([
                f"matches_settled={self.matches_settled}",
                f"entries_settled={self.entries_settled}",
                f"points_awarded={self.points_awarded}",
                f"participants_updated={self.participants_updated}",
            ])
            if self.entries_skipped:
                parts.append(f"entries_skipped={self.entries_skipped}")
            if self.participants_skipped:
                parts.append(f"participants_skipped={self.participants_skipped}")
        if self.matches_skipped:
            parts.append(f"matches_skipped={self.matches_skipped}")
        if self.errors:
            parts.append(f"errors={len(self.errors)}")
        return " ".join(parts)

    def to_dict(self) -> dict:
        data = {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}
        data["errors"] = list(self.errors)
        return data

    async def protect(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run ``coro`` as a task that survives cancellation of the caller.

        Cancelling the job only stops waiting for it; ``drain`` awaits the rest.
        """
        task = asyncio.ensure_future(coro)
        self._protected.add(task)
        task.add_done_callback(self._protected.discard)
        return await asyncio.shield(task)

    async def drain(self) -> None:
        """Wait for protected work still running after the job body stopped."""
        pending = [t for t in self._protected if not t.done()]
        if not pending:
            return
        logger.info("%s: waiting for %d in-flight units to finish", self.job, len(pending))
        for result in await asyncio.gather(*pending, return_exceptions=True):
            if isinstance(result, Exception):
                self.record_error(str(result))
                logger.error("%s: in-flight unit failed: %s", self.job, result)


async def for_each_contest(
    contests: Iterable[T],
    handler: Callable[[T], Awaitable[None]],
    report: JobReport,
    *,
    concurrency: int,
    label: Callable[[T], str] = str,
) -> None:
    """Run ``handler`` per contest with bounded concurrency; one failure never stops the others."""
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _run_one(contest: T) -> None:
        async with semaphore:
            try:
                await handler(contest)
            except Exception as e:
                report.contests_failed += 1
                report.record_error(f"{label(contest)}: {e}")
                logger.error("%s failed for contest %s: %s", report.job, label(contest), e)
            else:
                report.contests_processed += 1

    await asyncio.gather(*(_run_one(c) for c in contests))


async def run_job(
    report: JobReport,
    body: Callable[[], Awaitable[None]],
    *,
    deadline_seconds: float,
) -> JobReport:
    """Execute a job body under an overall deadline and log its summary.

    The deadline stops the body; protected units it already started are
    awaited before the report is finalized.
    """
    try:
        await asyncio.wait_for(body(), timeout=deadline_seconds)
    except asyncio.TimeoutError:
        report.fail(f"deadline of {deadline_seconds:g}s exceeded")
        logger.error("%s exceeded its %gs deadline", report.job, deadline_seconds)
    except Exception as e:
        report.fail(str(e))
        logger.exception("%s failed", report.job)

    await report.drain()
    report.finished_at = utcnow()
    logger.log(logging.INFO if report.ok else logging.ERROR, report.summary())
    return report

"""Persistent worker state: last run time and summary per job.

Uses a lightweight `worker_state` collection; purely informational.
"""

import logging
from datetime import datetime, timedelta

from footy.store import keys
from footy.store.base import DocumentStore
from footy.utils import ensure_utc, utcnow
from footy.workers._report import JobReport

logger = logging.getLogger("footy.worker_state")


async def get_synced_at(store: DocumentStore, worker_id: str) -> datetime | None:
    """Get the last synced_at timestamp for a worker."""
    doc = await store.get(keys.WORKER_STATE, worker_id)
    return doc["synced_at"] if doc and doc.get("synced_at") else None


async def set_synced(store: DocumentStore, report: JobReport) -> None:
    """Record a finished run. Never raises: state is a convenience, not part of settlement."""
    try:
        await store.set(
            keys.WORKER_STATE,
            report.job,
            {"synced_at": utcnow(), "ok": report.ok, "last_report": report.to_dict()},
        )
    except Exception as e:
        logger.warning("Could not record worker state for %s: %s", report.job, e)


async def recently_synced(store: DocumentStore, worker_id: str, max_age: timedelta) -> bool:
    """Check if a worker synced within the given time window."""
    last = await get_synced_at(store, worker_id)
    if not last:
        return False
    return (utcnow() - ensure_utc(last)) < max_age

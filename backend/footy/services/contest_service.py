"""Read-side helpers for contests, their cached matches and prediction entries."""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from footy.models.contest import ContestInDB, ContestStatus
from footy.models.match import MatchSnapshot
from footy.store import keys
from footy.store.base import DocumentStore

logger = logging.getLogger("footy.contest_service")


async def list_active_contests(store: DocumentStore) -> list[ContestInDB]:
    docs = await store.query(keys.CONTESTS, status=ContestStatus.active.value)
    contests: list[ContestInDB] = []
    for doc in docs:
        try:
            contests.append(ContestInDB.model_validate(doc))
        except ValidationError as e:
            logger.warning("Skipping malformed contest %s: %s", doc.get("_id"), e)
    return contests


async def list_contest_matches(store: DocumentStore, contest_id: str) -> list[dict[str, Any]]:
    return await store.query(keys.CONTEST_MATCHES, contest_id=contest_id)


async def list_match_entries(store: DocumentStore, match_id: int) -> list[dict[str, Any]]:
    return await store.query(keys.PREDICTION_ENTRIES, match_id=match_id)


def cached_snapshot(match_doc: dict[str, Any]) -> Optional[MatchSnapshot]:
    """Cached MatchSnapshot of a contest match, None if absent or unreadable."""
    raw = match_doc.get("snapshot")
    if not raw:
        return None
    try:
        return MatchSnapshot.model_validate(raw)
    except ValidationError as e:
        logger.warning("Unreadable cached snapshot for %s: %s", match_doc.get("_id"), e)
        return None


def external_match_id(match_doc: dict[str, Any]) -> Optional[int]:
    value = match_doc.get("match_id")
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Contest match %s has invalid match_id %r", match_doc.get("_id"), value)
        return None

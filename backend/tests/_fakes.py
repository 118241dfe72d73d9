"""
backend/tests/_fakes.py

Purpose:
    In-memory document store and scripted result provider used by the worker
    tests. The store yields to the event loop on every call so concurrent runs
    interleave, while guard checks and writes of one batch stay atomic.
"""

from __future__ import annotations

import asyncio
import copy
from collections import defaultdict
from typing import Any, Optional, Sequence

from footy.models.match import MatchSnapshot
from footy.providers.api_football import parse_fixture
from footy.providers.base import ProviderError, ResultProvider
from footy.store import keys
from footy.store.base import (
    BatchConflictError,
    DocumentStore,
    StoreError,
    TransactionFn,
    WriteBatch,
    WriteOp,
)


def _guard_holds(doc: dict[str, Any], guard: dict[str, Any]) -> bool:
    for name, cond in guard.items():
        value = doc.get(name)
        if isinstance(cond, dict):
            for op, arg in cond.items():
                if op == "$ne":
                    if value == arg:
                        return False
                else:
                    raise NotImplementedError(op)
        elif value != cond:
            return False
    return True


class MemoryWriteBatch(WriteBatch):
    def __init__(self, store: "MemoryDocumentStore", max_size: int) -> None:
        super().__init__(max_size)
        self._store = store

    async def _commit(self, ops: list[WriteOp]) -> None:
        await self._store._apply_batch(ops)


class MemoryDocumentStore(DocumentStore):
    def __init__(self, max_batch_size: int = 500) -> None:
        self.max_batch_size = max_batch_size
        self.collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.commits: list[int] = []
        self.transactions: list[str] = []
        self.failing_transactions: set[str] = set()
        self.failing_batches = 0
        self.transaction_delay = 0.0
        self._locks: dict[tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)

    # ---- seeding helpers ----

    def put(self, collection: str, key: str, doc: dict[str, Any]) -> None:
        self.collections[collection][key] = {"_id": key, **copy.deepcopy(doc)}

    def doc(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        return self.collections[collection].get(key)

    # ---- DocumentStore ----

    async def get(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        await asyncio.sleep(0)
        doc = self.collections[collection].get(key)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(
        self, collection: str, key: str, doc: dict[str, Any], *, merge: bool = True
    ) -> None:
        await asyncio.sleep(0)
        existing = self.collections[collection].get(key)
        if merge and existing is not None:
            existing.update(copy.deepcopy(doc))
        else:
            self.collections[collection][key] = {"_id": key, **copy.deepcopy(doc)}

    async def query(self, collection: str, **equals: Any) -> list[dict[str, Any]]:
        await asyncio.sleep(0)
        return [
            copy.deepcopy(doc)
            for doc in self.collections[collection].values()
            if all(doc.get(k) == v for k, v in equals.items())
        ]

    def batch(self) -> MemoryWriteBatch:
        return MemoryWriteBatch(self, self.max_batch_size)

    async def _apply_batch(self, ops: list[WriteOp]) -> None:
        await asyncio.sleep(0)
        if self.failing_batches:
            self.failing_batches -= 1
            raise StoreError("simulated batch failure")
        # Check every guard before touching anything: all or nothing.
        for op in ops:
            target = self.collections[op.collection].get(op.key)
            if target is None or (op.guard and not _guard_holds(target, op.guard)):
                raise BatchConflictError(f"{op.collection}/{op.key} failed its guard")
        for op in ops:
            self.collections[op.collection][op.key].update(copy.deepcopy(op.fields))
        self.commits.append(len(ops))

    async def transaction(self, collection: str, key: str, fn: TransactionFn) -> bool:
        async with self._locks[(collection, key)]:
            self.transactions.append(key)
            if key in self.failing_transactions:
                raise StoreError(f"simulated transaction failure for {key}")
            current = self.collections[collection].get(key)
            await asyncio.sleep(self.transaction_delay)
            if current is None:
                return False
            fields = fn(copy.deepcopy(current))
            if fields is None:
                return False
            current.update(fields)
            return True


def fixture_item(
    match_id: int,
    status: str = "NS",
    home: Optional[int] = None,
    away: Optional[int] = None,
    *,
    elapsed: Optional[int] = None,
) -> dict[str, Any]:
    """API-Football ``response[]`` element."""
    return {
        "fixture": {
            "id": match_id,
            "date": "2025-08-16T14:00:00+00:00",
            "status": {"long": status, "short": status, "elapsed": elapsed},
        },
        "teams": {
            "home": {"id": 1, "name": f"Home {match_id}"},
            "away": {"id": 2, "name": f"Away {match_id}"},
        },
        "goals": {"home": home, "away": away},
    }


def snapshot(
    match_id: int, status: str = "NS", home: Optional[int] = None, away: Optional[int] = None
) -> MatchSnapshot:
    return parse_fixture(fixture_item(match_id, status, home, away))


class FakeProvider(ResultProvider):
    """Serves snapshots from a dict; ids listed in ``failing`` raise ProviderError."""

    def __init__(self, snapshots: dict[int, MatchSnapshot] | None = None) -> None:
        self.snapshots: dict[int, MatchSnapshot] = dict(snapshots or {})
        self.failing: set[int] = set()
        self.calls: list[list[int]] = []
        self.delay = 0.0

    def set(self, match_id: int, status: str, home: Optional[int] = None, away: Optional[int] = None) -> None:
        self.snapshots[match_id] = snapshot(match_id, status, home, away)

    async def fetch_by_ids(self, match_ids: Sequence[int]) -> list[MatchSnapshot]:
        self.calls.append(list(match_ids))
        await asyncio.sleep(self.delay)
        if self.failing.intersection(match_ids):
            raise ProviderError("API-Football request failed: 503 Service Unavailable")
        return [self.snapshots[i] for i in match_ids if i in self.snapshots]


def seed_contest(
    store: MemoryDocumentStore,
    contest_id: str,
    matches: dict[int, Optional[MatchSnapshot]],
    *,
    status: str = "active",
) -> None:
    """Contest plus one cached match document per fixture (snapshot may be None)."""
    store.put(keys.CONTESTS, contest_id, {
        "name": contest_id,
        "status": status,
        "match_ids": list(matches),
    })
    for match_id, snap in matches.items():
        doc: dict[str, Any] = {"contest_id": contest_id, "match_id": match_id}
        if snap is not None:
            doc["snapshot"] = snap.model_dump()
        store.put(keys.CONTEST_MATCHES, keys.contest_match_key(contest_id, match_id), doc)


def seed_entries(
    store: MemoryDocumentStore,
    match_id: int,
    picks: dict[str, Any],
    *,
    with_aggregates: bool = True,
) -> None:
    for participant_id, pick in picks.items():
        store.put(keys.PREDICTION_ENTRIES, keys.entry_key(match_id, participant_id), {
            "match_id": match_id,
            "participant_id": participant_id,
            "pick": pick,
            "awarded": False,
            "points": 0,
        })
        if with_aggregates and store.doc(keys.PARTICIPANTS, participant_id) is None:
            store.put(keys.PARTICIPANTS, participant_id, {
                "display_name": participant_id,
                "points": 0,
                "total_predictions": 0,
                "correct_predictions": 0,
                "accuracy": 0,
            })

"""
backend/footy/store/base.py

Purpose:
    Document store contract used by the workers: point reads/writes, equality
    queries, bounded atomic batch writes and single-document read-modify-write
    transactions.

    Batch updates may carry a guard (a MongoDB filter fragment on the target
    document). A batch commits only if every guard still holds; otherwise
    nothing is written and BatchConflictError is raised.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

# Transaction callback: receives the current document (None when missing) and
# returns the fields to set, or None to leave the document untouched.
TransactionFn = Callable[[Optional[dict[str, Any]]], Optional[dict[str, Any]]]


class StoreError(Exception):
    """Base class for store adapter failures."""


class BatchLimitError(StoreError):
    """More operations were staged than a single batch may hold."""


class BatchConflictError(StoreError):
    """A guarded batch write found a document that no longer matches its guard."""


@dataclass(frozen=True)
class WriteOp:
    collection: str
    key: str
    fields: dict[str, Any]
    guard: Optional[dict[str, Any]] = None


class WriteBatch(ABC):
    """Accumulates update operations and applies them atomically on commit."""

    def __init__(self, max_size: int) -> None:
        self.max_size = max_size
        self._ops: list[WriteOp] = []
        self._committed = False

    def __len__(self) -> int:
        return len(self._ops)

    @property
    def full(self) -> bool:
        return len(self._ops) >= self.max_size

    def update(
        self,
        collection: str,
        key: str,
        fields: dict[str, Any],
        *,
        guard: Optional[dict[str, Any]] = None,
    ) -> None:
        if self._committed:
            raise StoreError("Batch already committed")
        if len(self._ops) >= self.max_size:
            raise BatchLimitError(f"Batch ceiling of {self.max_size} operations reached")
        self._ops.append(WriteOp(collection, key, dict(fields), dict(guard) if guard else None))

    async def commit(self) -> int:
        """Apply all staged operations atomically; returns the number written."""
        if self._committed:
            raise StoreError("Batch already committed")
        if not self._ops:
            self._committed = True
            return 0
        await self._commit(list(self._ops))
        self._committed = True
        return len(self._ops)

    @abstractmethod
    async def _commit(self, ops: list[WriteOp]) -> None:
        ...


class DocumentStore(ABC):
    """Document collections addressed by string keys."""

    max_batch_size: int = 500

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        ...

    @abstractmethod
    async def set(
        self, collection: str, key: str, doc: dict[str, Any], *, merge: bool = True
    ) -> None:
        ...

    @abstractmethod
    async def query(self, collection: str, **equals: Any) -> list[dict[str, Any]]:
        """Return all documents whose fields equal the given values."""
        ...

    @abstractmethod
    def batch(self) -> WriteBatch:
        ...

    @abstractmethod
    async def transaction(self, collection: str, key: str, fn: TransactionFn) -> bool:
        """Read-modify-write one document atomically.

        Returns False when the document is missing or ``fn`` returned None.
        """
        ...

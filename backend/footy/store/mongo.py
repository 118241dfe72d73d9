"""
backend/footy/store/mongo.py

Purpose:
    MongoDB implementation of the document store. Batches and read-modify-write
    updates run inside multi-document transactions (replica set required).

Dependencies:
    - motor.motor_asyncio
    - pymongo
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import UpdateOne
from pymongo.errors import PyMongoError

from footy.store.base import (
    BatchConflictError,
    DocumentStore,
    StoreError,
    TransactionFn,
    WriteBatch,
    WriteOp,
)

logger = logging.getLogger("footy.store")


class MongoWriteBatch(WriteBatch):
    def __init__(self, store: "MongoDocumentStore", max_size: int) -> None:
        super().__init__(max_size)
        self._store = store

    async def _commit(self, ops: list[WriteOp]) -> None:
        grouped: dict[str, list[UpdateOne]] = {}
        for op in ops:
            query: dict[str, Any] = {"_id": op.key}
            if op.guard:
                query.update(op.guard)
            grouped.setdefault(op.collection, []).append(UpdateOne(query, {"$set": op.fields}))

        try:
            async with await self._store.client.start_session() as session:
                async with session.start_transaction():
                    for collection, requests in grouped.items():
                        result = await self._store.db[collection].bulk_write(
                            requests, ordered=True, session=session,
                        )
                        if result.matched_count != len(requests):
                            # Leaving the block with an exception aborts the transaction.
                            raise BatchConflictError(
                                f"{len(requests) - result.matched_count} of {len(requests)} "
                                f"{collection} updates no longer match their guard"
                            )
        except BatchConflictError:
            raise
        except PyMongoError as exc:
            raise StoreError(f"Batch commit failed: {exc}") from exc


class MongoDocumentStore(DocumentStore):
    def __init__(
        self,
        client: AsyncIOMotorClient,
        db: AsyncIOMotorDatabase,
        *,
        max_batch_size: int = 500,
        transaction_attempts: int = 3,
    ) -> None:
        self.client = client
        self.db = db
        self.max_batch_size = max_batch_size
        self._transaction_attempts = max(1, transaction_attempts)

    async def get(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        return await self.db[collection].find_one({"_id": key})

    async def set(
        self, collection: str, key: str, doc: dict[str, Any], *, merge: bool = True
    ) -> None:
        if merge:
            await self.db[collection].update_one({"_id": key}, {"$set": doc}, upsert=True)
        else:
            await self.db[collection].replace_one({"_id": key}, doc, upsert=True)

    async def query(self, collection: str, **equals: Any) -> list[dict[str, Any]]:
        return await self.db[collection].find(equals).to_list(length=None)

    def batch(self) -> MongoWriteBatch:
        return MongoWriteBatch(self, self.max_batch_size)

    async def transaction(self, collection: str, key: str, fn: TransactionFn) -> bool:
        for attempt in range(self._transaction_attempts):
            try:
                async with await self.client.start_session() as session:
                    async with session.start_transaction():
                        current = await self.db[collection].find_one({"_id": key}, session=session)
                        if current is None:
                            return False
                        fields = fn(current)
                        if fields is None:
                            return False
                        await self.db[collection].update_one(
                            {"_id": key}, {"$set": fields}, session=session,
                        )
                return True
            except PyMongoError as exc:
                # Only write conflicts are retried; an unknown commit result is not,
                # since the first attempt may have been applied.
                if exc.has_error_label("TransientTransactionError") and (
                    attempt + 1 < self._transaction_attempts
                ):
                    logger.info(
                        "Transaction conflict on %s/%s (attempt %d/%d), retrying",
                        collection, key, attempt + 1, self._transaction_attempts,
                    )
                    continue
                raise StoreError(f"Transaction on {collection}/{key} failed: {exc}") from exc
        return False

"""
backend/footy/database.py

Purpose:
    MongoDB connection bootstrap and index management for the collections the
    workers read and write.

Dependencies:
    - motor.motor_asyncio
    - footy.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from footy.config import settings
from footy.store import keys
from footy.store.mongo import MongoDocumentStore

logger = logging.getLogger("footy.database")

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=2,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()
    logger.info("Connected to MongoDB database %s", settings.MONGO_DB)


async def close_db() -> None:
    global client, db
    if client:
        client.close()
    client = None
    db = None


def get_store() -> MongoDocumentStore:
    if client is None or db is None:
        raise RuntimeError("Database not connected; call connect_db() first.")
    return MongoDocumentStore(
        client,
        db,
        max_batch_size=settings.STORE_MAX_BATCH_SIZE,
        transaction_attempts=settings.STORE_TRANSACTION_ATTEMPTS,
    )


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent."""

    # ---- Contests (gameweeks) ----
    await db[keys.CONTESTS].create_index("status")

    # ---- Cached match snapshots per contest ----
    await db[keys.CONTEST_MATCHES].create_index("contest_id")
    await db[keys.CONTEST_MATCHES].create_index([("contest_id", 1), ("match_id", 1)], unique=True)

    # ---- Prediction entries ----
    await db[keys.PREDICTION_ENTRIES].create_index("match_id")
    await db[keys.PREDICTION_ENTRIES].create_index([("match_id", 1), ("awarded", 1)])
    await db[keys.PREDICTION_ENTRIES].create_index("participant_id")

    # ---- Participants (leaderboard reads) ----
    await db[keys.PARTICIPANTS].create_index([("points", -1)])

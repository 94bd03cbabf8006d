# sustainability_dashboard/core/database.py

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from sustainability_dashboard.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def _get_db_name_from_uri(uri: str) -> str:
    # A /dbname suffix on the URI wins over MONGODB_DB.
    tail = uri.split("://", 1)[-1]
    if "/" in tail:
        name = tail.split("/", 1)[1].split("?", 1)[0].strip()
        if name:
            return name
    return settings.get_mongo_db()


async def connect_to_mongo() -> AsyncIOMotorDatabase:
    global _client, _db

    if _client is not None and _db is not None:
        return _db

    mongo_url = settings.get_mongo_uri()
    db_name = _get_db_name_from_uri(mongo_url)
    logger.info(f"Connecting to MongoDB (db={db_name})")

    _client = AsyncIOMotorClient(mongo_url, tz_aware=True)
    _db = _client[db_name]

    await _db.command("ping")
    logger.info("MongoDB connection OK")

    return _db


async def close_mongo_connection() -> None:
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None
    logger.info("MongoDB connection closed")


async def get_db() -> AsyncIOMotorDatabase:
    """FastAPI dependency; tests override it with an in-memory fake."""
    return await connect_to_mongo()


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db.users.create_index("email", unique=True)
    await db.users.create_index("role")

    readings = db.meter_readings
    await readings.create_index([("metric", ASCENDING), ("timestamp", DESCENDING)])
    for ref in ("unitId", "departmentId", "machineId", "shiftId"):
        await readings.create_index(
            [("metric", ASCENDING), (ref, ASCENDING), ("timestamp", DESCENDING)]
        )
    await readings.create_index([("timestamp", DESCENDING)])
    await readings.create_index("qualityFlag")

    await db.alerts.create_index([("isResolved", ASCENDING), ("createdAt", DESCENDING)])
    await db.reports.create_index("expiresAt")

"""Shared async MongoDB access patterns for the cache backend and common error handling."""

from datetime import datetime, timedelta

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from app.config.logging import get_logger
from app.services.search.errors import StoreError

logger = get_logger(__name__)

CACHE_ENTRIES_COLLECTION = "cache_entries"
RATE_COUNTERS_COLLECTION = "rate_limit_counters"

EXPIRES_AT_FIELD = "expires_at"
VALUE_FIELD = "value"


def _translate_pymongo_error(e: PyMongoError, context: str) -> StoreError:
    """Wrap PyMongo errors into a non-leaking StoreError."""
    logger.warning(
        "MongoDB operation failed",
        extra={"context": context, "error_type": type(e).__name__},
    )
    return StoreError(f"Cache store temporarily unavailable: {context}", cause=e)


def cache_entries_collection(db: AsyncIOMotorDatabase) -> AsyncIOMotorCollection:
    """Collection for cached blobs (search pages, documents)."""
    return db[CACHE_ENTRIES_COLLECTION]


def rate_counters_collection(db: AsyncIOMotorDatabase) -> AsyncIOMotorCollection:
    """Collection for fixed-window rate limit counters."""
    return db[RATE_COUNTERS_COLLECTION]


def live_filter(key: str, now: datetime) -> dict:
    """Filter for a key that has not expired yet. The TTL monitor sweeps lazily, so reads must check."""
    return {"_id": key, EXPIRES_AT_FIELD: {"$gt": now}}


def expiry(now: datetime, ttl_seconds: int) -> datetime:
    return now + timedelta(seconds=ttl_seconds)

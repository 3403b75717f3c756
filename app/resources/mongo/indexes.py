"""
MongoDB index creation for the cache backend.
TTL indexes let the server sweep expired cache entries and rate limit counters.
"""

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.config.logging import get_logger
from app.repositories.mongodb.base import (
    CACHE_ENTRIES_COLLECTION,
    EXPIRES_AT_FIELD,
    RATE_COUNTERS_COLLECTION,
)

logger = get_logger(__name__)


async def create_indexes(db: AsyncIOMotorDatabase) -> None:
    """
    Create all required indexes for the cache collections.
    Called during application startup when CACHE_BACKEND=mongo.
    """
    try:
        cache_entries = db[CACHE_ENTRIES_COLLECTION]
        await cache_entries.create_index([(EXPIRES_AT_FIELD, 1)], expireAfterSeconds=0)
        logger.info("Created indexes for cache_entries collection")

        counters = db[RATE_COUNTERS_COLLECTION]
        await counters.create_index([(EXPIRES_AT_FIELD, 1)], expireAfterSeconds=0)
        logger.info("Created indexes for rate_limit_counters collection")

        logger.info("All MongoDB indexes created successfully")
    except Exception as e:
        logger.error("Failed to create MongoDB indexes", extra={"error": str(e), "error_type": type(e).__name__})
        raise

"""Shared Motor client for the mongo cache backend. One pooled client per process, closed on shutdown."""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from app.config.logging import get_logger
from app.config.storage.mongo import get_mongo_config

logger = get_logger(__name__)

_client: AsyncIOMotorClient | None = None


def get_mongo_client() -> AsyncIOMotorClient:
    global _client
    if _client is None:
        cfg = get_mongo_config()
        _client = AsyncIOMotorClient(cfg.uri, **cfg.client_options())
        logger.info(
            "MongoDB async client initialized",
            extra={"database": cfg.database, "max_pool_size": cfg.max_pool_size},
        )
    return _client


def get_cache_database() -> AsyncIOMotorDatabase:
    """Database holding the cache_entries and rate_limit_counters collections."""
    return get_mongo_client()[get_mongo_config().database]


def close_mongo_client() -> None:
    global _client
    if _client is None:
        return
    try:
        _client.close()
        logger.info("MongoDB async client closed")
    except PyMongoError as e:
        logger.warning("Error closing MongoDB client", extra={"error": str(e)})
    _client = None

"""Async Redis client with connection pooling, timeouts, and graceful shutdown."""

from redis.asyncio import ConnectionPool, Redis

from app.config.logging import get_logger
from app.config.storage.redis import get_redis_config

logger = get_logger(__name__)

_client: Redis | None = None


def get_redis_client() -> Redis:
    """Return the shared async Redis client. Creates it (and its pool) on first use."""
    global _client
    if _client is None:
        cfg = get_redis_config()
        pool = ConnectionPool.from_url(
            cfg.url,
            max_connections=cfg.max_connections,
            socket_timeout=cfg.socket_timeout,
            socket_connect_timeout=cfg.socket_timeout,
        )
        _client = Redis(connection_pool=pool)
        logger.info(
            "Redis async client initialized",
            extra={"max_connections": cfg.max_connections, "socket_timeout": cfg.socket_timeout},
        )
    return _client


async def close_redis_client() -> None:
    """Close the Redis client and disconnect its pool. Call on app shutdown."""
    global _client
    if _client is not None:
        try:
            await _client.aclose()
            logger.info("Redis async client closed")
        except Exception as e:
            logger.warning("Error closing Redis client", extra={"error": str(e)})
        _client = None

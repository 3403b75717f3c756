"""
Redis-backed BlobStore and CounterStore. Redis errors are translated to StoreError;
callers decide whether to degrade.
"""

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.config.logging import get_logger
from app.services.search.base import BlobStore, CounterStore
from app.services.search.errors import StoreError

logger = get_logger(__name__)

SCAN_BATCH_SIZE = 500
_GLOB_SPECIAL = "\\*?[]"


def escape_glob(value: str) -> str:
    """Escape Redis MATCH glob metacharacters so a key prefix is matched literally."""
    return "".join(f"\\{ch}" if ch in _GLOB_SPECIAL else ch for ch in value)


def _translate_redis_error(e: RedisError, context: str) -> StoreError:
    logger.warning(
        "Redis operation failed",
        extra={"context": context, "error_type": type(e).__name__},
    )
    return StoreError(f"Cache store temporarily unavailable: {context}", cause=e)


class RedisBlobStore(BlobStore):
    """Cached blobs as plain Redis strings with SET EX."""

    def __init__(self, client: Redis):
        self._r = client

    async def get(self, key: str) -> bytes | None:
        try:
            value = await self._r.get(key)
        except RedisError as e:
            raise _translate_redis_error(e, "get") from e
        if value is None:
            return None
        if isinstance(value, bytes):
            return value
        return str(value).encode()

    async def set_with_ttl(self, key: str, value: bytes, ttl_seconds: int) -> None:
        try:
            await self._r.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            raise _translate_redis_error(e, "set") from e

    async def delete(self, key: str) -> None:
        try:
            await self._r.delete(key)
        except RedisError as e:
            raise _translate_redis_error(e, "delete") from e

    async def delete_by_prefix(self, prefix: str) -> int:
        """SCAN (never KEYS) for prefix matches and UNLINK them in batches."""
        deleted = 0
        batch: list[bytes | str] = []
        try:
            async for key in self._r.scan_iter(match=f"{escape_glob(prefix)}*", count=SCAN_BATCH_SIZE):
                batch.append(key)
                if len(batch) >= SCAN_BATCH_SIZE:
                    deleted += await self._r.unlink(*batch)
                    batch = []
            if batch:
                deleted += await self._r.unlink(*batch)
        except RedisError as e:
            raise _translate_redis_error(e, "delete_by_prefix") from e
        return deleted

    async def ping(self) -> bool:
        try:
            return bool(await self._r.ping())
        except RedisError as e:
            logger.warning("Redis ping failed", extra={"error": type(e).__name__})
            return False


class RedisCounterStore(CounterStore):
    """Rate limit counters: INCR + EXPIRE in one MULTI/EXEC so the increment and expiry land together."""

    def __init__(self, client: Redis):
        self._r = client

    async def increment_with_expiry(self, key: str, ttl_seconds: int) -> int:
        try:
            async with self._r.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, ttl_seconds)
                new_value, _ = await pipe.execute()
        except RedisError as e:
            raise _translate_redis_error(e, "incr") from e
        return int(new_value)

    async def get(self, key: str) -> int:
        try:
            value = await self._r.get(key)
        except RedisError as e:
            raise _translate_redis_error(e, "get counter") from e
        if value is None:
            return 0
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("Non-integer rate limit counter, treating as 0", extra={"key": key})
            return 0

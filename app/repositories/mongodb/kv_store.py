"""
MongoDB-backed BlobStore and CounterStore, for deployments that run MongoDB instead of Redis.
Keys are document _ids; expiry is an `expires_at` field swept by a TTL index (see resources/mongo/indexes).
"""

import re
from collections.abc import Callable
from datetime import datetime

from bson.binary import Binary
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.config.logging import get_logger
from app.repositories.mongodb.base import (
    EXPIRES_AT_FIELD,
    VALUE_FIELD,
    _translate_pymongo_error,
    cache_entries_collection,
    expiry,
    live_filter,
    rate_counters_collection,
)
from app.services.search.base import BlobStore, CounterStore
from app.utils.time import utc_now

logger = get_logger(__name__)


class MongoBlobStore(BlobStore):
    """Cached blobs in the cache_entries collection."""

    def __init__(self, db: AsyncIOMotorDatabase, clock: Callable[[], datetime] = utc_now):
        self._db = db
        self._coll = cache_entries_collection(db)
        self._clock = clock

    async def get(self, key: str) -> bytes | None:
        try:
            doc = await self._coll.find_one(live_filter(key, self._clock()), {VALUE_FIELD: 1})
        except PyMongoError as e:
            raise _translate_pymongo_error(e, "get") from e
        if doc is None:
            return None
        return bytes(doc[VALUE_FIELD])

    async def set_with_ttl(self, key: str, value: bytes, ttl_seconds: int) -> None:
        update = {"$set": {VALUE_FIELD: Binary(value), EXPIRES_AT_FIELD: expiry(self._clock(), ttl_seconds)}}
        try:
            await self._coll.update_one({"_id": key}, update, upsert=True)
        except DuplicateKeyError:
            # Lost an upsert race on the same key; the entry now exists, so a plain update wins.
            try:
                await self._coll.update_one({"_id": key}, update)
            except PyMongoError as e:
                raise _translate_pymongo_error(e, "set") from e
        except PyMongoError as e:
            raise _translate_pymongo_error(e, "set") from e

    async def delete(self, key: str) -> None:
        try:
            await self._coll.delete_one({"_id": key})
        except PyMongoError as e:
            raise _translate_pymongo_error(e, "delete") from e

    async def delete_by_prefix(self, prefix: str) -> int:
        """Anchored, escaped regex on _id so the primary index serves the prefix scan."""
        try:
            result = await self._coll.delete_many({"_id": {"$regex": f"^{re.escape(prefix)}"}})
        except PyMongoError as e:
            raise _translate_pymongo_error(e, "delete_by_prefix") from e
        return result.deleted_count

    async def ping(self) -> bool:
        try:
            await self._db.command("ping")
            return True
        except PyMongoError as e:
            logger.warning("MongoDB ping failed", extra={"error": type(e).__name__})
            return False


class MongoCounterStore(CounterStore):
    """Counters in the rate_limit_counters collection. $inc with upsert is atomic per document."""

    def __init__(self, db: AsyncIOMotorDatabase, clock: Callable[[], datetime] = utc_now):
        self._coll = rate_counters_collection(db)
        self._clock = clock

    async def increment_with_expiry(self, key: str, ttl_seconds: int) -> int:
        update = {"$inc": {VALUE_FIELD: 1}, "$set": {EXPIRES_AT_FIELD: expiry(self._clock(), ttl_seconds)}}
        try:
            try:
                doc = await self._coll.find_one_and_update(
                    {"_id": key}, update, upsert=True, return_document=ReturnDocument.AFTER
                )
            except DuplicateKeyError:
                # Two first-in-window requests raced the upsert; the loser retries against the created document.
                doc = await self._coll.find_one_and_update(
                    {"_id": key}, update, return_document=ReturnDocument.AFTER
                )
        except PyMongoError as e:
            raise _translate_pymongo_error(e, "incr") from e
        return int(doc[VALUE_FIELD]) if doc else 1

    async def get(self, key: str) -> int:
        try:
            doc = await self._coll.find_one(live_filter(key, self._clock()), {VALUE_FIELD: 1})
        except PyMongoError as e:
            raise _translate_pymongo_error(e, "get counter") from e
        if doc is None:
            return 0
        return int(doc.get(VALUE_FIELD, 0))

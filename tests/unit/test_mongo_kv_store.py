"""Unit tests for the MongoDB blob and counter stores (motor collections mocked)."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from app.repositories.mongodb.kv_store import MongoBlobStore, MongoCounterStore
from app.services.search.errors import StoreError

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def collection():
    coll = MagicMock()
    coll.find_one = AsyncMock(return_value=None)
    coll.update_one = AsyncMock()
    coll.delete_one = AsyncMock()
    coll.delete_many = AsyncMock(return_value=MagicMock(deleted_count=0))
    coll.find_one_and_update = AsyncMock(return_value={"_id": "k", "value": 1})
    return coll


@pytest.fixture
def db(collection):
    database = MagicMock()
    database.__getitem__.return_value = collection
    database.command = AsyncMock(return_value={"ok": 1})
    return database


class TestMongoBlobStore:
    @pytest.mark.asyncio
    async def test_get_only_reads_live_entries(self, db, collection):
        collection.find_one.return_value = {"_id": "k", "value": b"payload"}
        store = MongoBlobStore(db, clock=lambda: NOW)
        assert await store.get("k") == b"payload"
        query = collection.find_one.await_args.args[0]
        assert query == {"_id": "k", "expires_at": {"$gt": NOW}}

    @pytest.mark.asyncio
    async def test_set_upserts_with_expiry(self, db, collection):
        await MongoBlobStore(db, clock=lambda: NOW).set_with_ttl("k", b"v", 60)
        args, kwargs = collection.update_one.await_args
        assert args[0] == {"_id": "k"}
        assert args[1]["$set"]["expires_at"] == NOW + timedelta(seconds=60)
        assert kwargs == {"upsert": True}

    @pytest.mark.asyncio
    async def test_set_retries_after_upsert_race(self, db, collection):
        collection.update_one.side_effect = [DuplicateKeyError("dup"), None]
        await MongoBlobStore(db, clock=lambda: NOW).set_with_ttl("k", b"v", 60)
        assert collection.update_one.await_count == 2

    @pytest.mark.asyncio
    async def test_delete_by_prefix_uses_escaped_anchored_regex(self, db, collection):
        collection.delete_many.return_value = MagicMock(deleted_count=3)
        assert await MongoBlobStore(db).delete_by_prefix("search:t-1:") == 3
        query = collection.delete_many.await_args.args[0]
        assert query == {"_id": {"$regex": "^search:t\\-1:"}}

    @pytest.mark.asyncio
    async def test_errors_become_store_errors(self, db, collection):
        collection.find_one.side_effect = ServerSelectionTimeoutError("no servers")
        with pytest.raises(StoreError):
            await MongoBlobStore(db).get("k")

    @pytest.mark.asyncio
    async def test_ping(self, db):
        assert await MongoBlobStore(db).ping() is True
        db.command.side_effect = ServerSelectionTimeoutError("no servers")
        assert await MongoBlobStore(db).ping() is False


class TestMongoCounterStore:
    @pytest.mark.asyncio
    async def test_increment_returns_new_value(self, db, collection):
        collection.find_one_and_update.return_value = {"_id": "k", "value": 4}
        assert await MongoCounterStore(db, clock=lambda: NOW).increment_with_expiry("k", 60) == 4
        args, kwargs = collection.find_one_and_update.await_args
        assert args[1]["$inc"] == {"value": 1}
        assert kwargs["upsert"] is True

    @pytest.mark.asyncio
    async def test_increment_retries_after_upsert_race(self, db, collection):
        collection.find_one_and_update.side_effect = [DuplicateKeyError("dup"), {"_id": "k", "value": 2}]
        assert await MongoCounterStore(db).increment_with_expiry("k", 60) == 2

    @pytest.mark.asyncio
    async def test_get_missing_is_zero(self, db):
        assert await MongoCounterStore(db).get("k") == 0

    @pytest.mark.asyncio
    async def test_get_failure_is_store_error(self, db, collection):
        collection.find_one.side_effect = ServerSelectionTimeoutError("no servers")
        with pytest.raises(StoreError):
            await MongoCounterStore(db).get("k")

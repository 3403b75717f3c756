"""
In-process BlobStore and CounterStore for single-process development and tests.
Expiry is checked on read against an injectable monotonic clock, and every write first evicts
all entries whose deadline has passed, so keys that are never read again do not accumulate.
"""

import heapq
import time
from collections.abc import Callable

from app.services.search.base import BlobStore, CounterStore


class _ExpiringDict:
    def __init__(self, clock: Callable[[], float]):
        self._clock = clock
        self._data: dict[str, tuple[object, float]] = {}
        # (expires_at, key) per write; entries for overwritten or deleted keys are skipped on eviction
        self._deadlines: list[tuple[float, str]] = []

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str):
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._data[key]
            return None
        return value

    def put(self, key: str, value: object, ttl_seconds: float) -> None:
        now = self._clock()
        self.evict_expired(now)
        expires_at = now + ttl_seconds
        self._data[key] = (value, expires_at)
        heapq.heappush(self._deadlines, (expires_at, key))

    def pop(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def evict_expired(self, now: float | None = None) -> int:
        now = self._clock() if now is None else now
        evicted = 0
        while self._deadlines and self._deadlines[0][0] <= now:
            expires_at, key = heapq.heappop(self._deadlines)
            entry = self._data.get(key)
            if entry is not None and entry[1] == expires_at:
                del self._data[key]
                evicted += 1
        return evicted

    def live_keys(self) -> list[str]:
        self.evict_expired()
        return list(self._data)

    def clear(self) -> None:
        self._data.clear()
        self._deadlines.clear()


class MemoryBlobStore(BlobStore):
    """Dict-backed blob store. Not shared across processes."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries = _ExpiringDict(clock)

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> bytes | None:
        return self._entries.get(key)

    async def set_with_ttl(self, key: str, value: bytes, ttl_seconds: int) -> None:
        self._entries.put(key, bytes(value), ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key)

    async def delete_by_prefix(self, prefix: str) -> int:
        matching = [k for k in self._entries.live_keys() if k.startswith(prefix)]
        for key in matching:
            self._entries.pop(key)
        return len(matching)

    async def ping(self) -> bool:
        return True

    def keys(self) -> list[str]:
        return self._entries.live_keys()

    def clear(self) -> None:
        self._entries.clear()


class MemoryCounterStore(CounterStore):
    """Dict-backed counters. Increment has no await point, so it is atomic within the event loop."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._counters = _ExpiringDict(clock)

    def __len__(self) -> int:
        return len(self._counters)

    async def increment_with_expiry(self, key: str, ttl_seconds: int) -> int:
        new_value = int(self._counters.get(key) or 0) + 1
        self._counters.put(key, new_value, ttl_seconds)
        return new_value

    async def get(self, key: str) -> int:
        return int(self._counters.get(key) or 0)

"""Shared test fixtures and configuration."""

from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from app.repositories.memory.kv_store import MemoryBlobStore, MemoryCounterStore  # noqa: E402
from app.services.search.cache import CacheLayer  # noqa: E402
from app.services.search.orchestrator import SearchOrchestrator  # noqa: E402
from app.services.search.rate_limiter import RateLimiter  # noqa: E402
from tests.fakes import FakeClock, FakeIndexClient  # noqa: E402


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def index_client():
    return FakeIndexClient()


@pytest.fixture
def blob_store():
    return MemoryBlobStore()


@pytest.fixture
def counter_store():
    return MemoryCounterStore()


@pytest.fixture
def cache(blob_store):
    return CacheLayer(blob_store, search_ttl_seconds=120, document_ttl_seconds=60, store_timeout=0.5)


@pytest.fixture
def rate_limiter(counter_store, clock):
    return RateLimiter(counter_store, max_requests=100, window_ms=60_000, store_timeout=0.5, clock=clock)


@pytest.fixture
def orchestrator(index_client, cache, rate_limiter):
    return SearchOrchestrator(index_client, cache, rate_limiter, index_timeout=0.5)

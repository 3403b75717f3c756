"""Wires the search core: picks the key-value backend from settings and injects stores into the core."""

from collections.abc import Callable

from app.config.logging import get_logger
from app.config.settings import Settings
from app.services.search.base import BlobStore, CounterStore, IndexClient
from app.services.search.cache import CacheLayer
from app.services.search.orchestrator import SearchOrchestrator
from app.services.search.planner import QueryPlanner
from app.services.search.rate_limiter import RateLimiter

logger = get_logger(__name__)


def _build_redis_stores() -> tuple[BlobStore, CounterStore]:
    from app.repositories.redis.kv_store import RedisBlobStore, RedisCounterStore
    from app.resources.redis.client import get_redis_client

    client = get_redis_client()
    return RedisBlobStore(client), RedisCounterStore(client)


def _build_mongo_stores() -> tuple[BlobStore, CounterStore]:
    from app.repositories.mongodb.kv_store import MongoBlobStore, MongoCounterStore
    from app.resources.mongo.client import get_cache_database

    db = get_cache_database()
    return MongoBlobStore(db), MongoCounterStore(db)


def _build_memory_stores() -> tuple[BlobStore, CounterStore]:
    from app.repositories.memory.kv_store import MemoryBlobStore, MemoryCounterStore

    return MemoryBlobStore(), MemoryCounterStore()


_STORE_BUILDERS: dict[str, Callable[[], tuple[BlobStore, CounterStore]]] = {
    "redis": _build_redis_stores,
    "mongo": _build_mongo_stores,
    "memory": _build_memory_stores,
}


def build_stores(settings: Settings) -> tuple[BlobStore, CounterStore]:
    """Return (blob store, counter store) for settings.cache_backend."""
    builder = _STORE_BUILDERS.get(settings.cache_backend)
    if builder is None:
        raise ValueError(
            f"Unsupported CACHE_BACKEND={settings.cache_backend!r}. Supported values: {sorted(_STORE_BUILDERS)}"
        )
    return builder()


def build_index_client(settings: Settings) -> IndexClient:
    from app.repositories.opensearch.documents_repository import OpenSearchIndexClient
    from app.resources.opensearch.client import get_opensearch_client

    return OpenSearchIndexClient(
        get_opensearch_client(),
        settings.opensearch_index,
        refresh_on_write=settings.opensearch_refresh_on_write,
    )


def build_orchestrator(
    settings: Settings,
    *,
    index_client: IndexClient | None = None,
    blob_store: BlobStore | None = None,
    counter_store: CounterStore | None = None,
    clock: Callable[[], float] | None = None,
) -> SearchOrchestrator:
    """
    Assemble a SearchOrchestrator from settings. Any collaborator can be passed in explicitly
    (tests pass fakes); missing ones are built from the configured backends.
    """
    if blob_store is None or counter_store is None:
        built_blobs, built_counters = build_stores(settings)
        blob_store = built_blobs if blob_store is None else blob_store
        counter_store = built_counters if counter_store is None else counter_store
    if index_client is None:
        index_client = build_index_client(settings)

    cache = CacheLayer(
        blob_store,
        search_ttl_seconds=settings.search_cache_ttl_seconds,
        document_ttl_seconds=settings.cache_ttl_seconds,
        store_timeout=settings.store_timeout_seconds,
    )
    limiter_kwargs = {"clock": clock} if clock is not None else {}
    rate_limiter = RateLimiter(
        counter_store,
        max_requests=settings.rate_limit_max_requests,
        window_ms=settings.rate_limit_window_ms,
        store_timeout=settings.store_timeout_seconds,
        enabled=settings.rate_limit_enabled,
        **limiter_kwargs,
    )
    logger.info(
        "Search orchestrator assembled",
        extra={
            "cache_backend": settings.cache_backend,
            "rate_limit_enabled": settings.rate_limit_enabled,
            "rate_limit_max_requests": settings.rate_limit_max_requests,
            "rate_limit_window_ms": settings.rate_limit_window_ms,
        },
    )
    return SearchOrchestrator(
        index_client,
        cache,
        rate_limiter,
        QueryPlanner(),
        index_timeout=settings.index_timeout_seconds,
    )

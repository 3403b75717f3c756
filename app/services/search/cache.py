"""
Cache-aside layer over a BlobStore: search pages and single documents, keyed per tenant.

Every operation is fail-open. A store outage reads as a miss and writes/invalidations become no-ops,
so the index engine stays authoritative. Consistency is TTL-bounded: an entry that survives a
missed invalidation lives at most until its TTL.
"""

from pydantic import ValidationError

from app.config.logging import get_logger
from app.services import metrics
from app.services.search.base import BlobStore
from app.services.search.degrade import degrade
from app.services.search.models import Document, SearchFilters, SearchResponse
from app.utils.keys import derive_doc_key, derive_search_key, search_prefix

logger = get_logger(__name__)

SEARCH_CACHE = "search"
DOCUMENT_CACHE = "document"


class CacheLayer:
    """Tenant-scoped search and document cache."""

    def __init__(
        self,
        store: BlobStore,
        *,
        search_ttl_seconds: int = 120,
        document_ttl_seconds: int = 60,
        store_timeout: float = 1.0,
    ):
        self.store = store
        self.search_ttl_seconds = search_ttl_seconds
        self.document_ttl_seconds = document_ttl_seconds
        self.store_timeout = store_timeout

    async def _read(self, key: str, context: str, tenant_id: str) -> bytes | None:
        return await degrade(
            self.store.get(key),
            fallback=None,
            timeout=self.store_timeout,
            context=context,
            fields={"tenant_id": tenant_id},
        )

    async def _write(self, key: str, payload: bytes, ttl: int, context: str, tenant_id: str) -> bool:
        return await degrade(
            self._set(key, payload, ttl),
            fallback=False,
            timeout=self.store_timeout,
            context=context,
            fields={"tenant_id": tenant_id},
        )

    async def _set(self, key: str, payload: bytes, ttl: int) -> bool:
        await self.store.set_with_ttl(key, payload, ttl)
        return True

    async def _remove(self, key: str) -> bool:
        await self.store.delete(key)
        return True

    async def get_search(
        self,
        tenant_id: str,
        query_text: str | None,
        filters: SearchFilters,
        offset: int,
        limit: int,
    ) -> SearchResponse | None:
        """Cached page for the exact (tenant, query, filters, offset, limit), or None on miss or store error."""
        key = derive_search_key(tenant_id, query_text, filters, offset, limit)
        raw = await self._read(key, "cache.get_search", tenant_id)
        cached = self._decode(raw, SearchResponse, key) if raw is not None else None
        if cached is not None and cached.tenant_id != tenant_id:
            logger.warning("Search cache entry tenant mismatch", extra={"tenant_id": tenant_id})
            cached = None
        if cached is None:
            metrics.record_cache_miss(SEARCH_CACHE)
            return None
        logger.debug("Cache hit for search", extra={"tenant_id": tenant_id, "query": query_text})
        metrics.record_cache_hit(SEARCH_CACHE)
        return cached

    async def set_search(
        self,
        tenant_id: str,
        query_text: str | None,
        filters: SearchFilters,
        offset: int,
        limit: int,
        result: SearchResponse,
    ) -> bool:
        """Best-effort write. Returns whether the store accepted it; never raises for store failures."""
        key = derive_search_key(tenant_id, query_text, filters, offset, limit)
        ok = await self._write(
            key,
            result.model_dump_json().encode("utf-8"),
            self.search_ttl_seconds,
            "cache.set_search",
            tenant_id,
        )
        if ok:
            logger.debug("Cached search result", extra={"tenant_id": tenant_id, "query": query_text})
        return ok

    async def get_document(self, tenant_id: str, doc_id: str) -> Document | None:
        """Cached document, or None on miss, store error, or an entry owned by another tenant."""
        key = derive_doc_key(tenant_id, doc_id)
        raw = await self._read(key, "cache.get_document", tenant_id)
        cached = self._decode(raw, Document, key) if raw is not None else None
        if cached is not None and (cached.tenant_id != tenant_id or cached.id != doc_id):
            logger.warning(
                "Document cache entry mismatch, treating as miss",
                extra={"tenant_id": tenant_id, "doc_id": doc_id},
            )
            cached = None
        if cached is None:
            metrics.record_cache_miss(DOCUMENT_CACHE)
            return None
        logger.debug("Cache hit for document", extra={"tenant_id": tenant_id, "doc_id": doc_id})
        metrics.record_cache_hit(DOCUMENT_CACHE)
        return cached

    async def set_document(self, tenant_id: str, doc_id: str, document: Document) -> bool:
        key = derive_doc_key(tenant_id, doc_id)
        ok = await self._write(
            key,
            document.model_dump_json().encode("utf-8"),
            self.document_ttl_seconds,
            "cache.set_document",
            tenant_id,
        )
        if ok:
            logger.debug("Cached document", extra={"tenant_id": tenant_id, "doc_id": doc_id})
        return ok

    async def invalidate_document(self, tenant_id: str, doc_id: str) -> bool:
        """Remove the single document entry. Best-effort."""
        ok = await degrade(
            self._remove(derive_doc_key(tenant_id, doc_id)),
            fallback=False,
            timeout=self.store_timeout,
            context="cache.invalidate_document",
            fields={"tenant_id": tenant_id, "doc_id": doc_id},
        )
        if ok:
            metrics.record_invalidation(DOCUMENT_CACHE, 1)
            logger.debug("Invalidated document cache", extra={"tenant_id": tenant_id, "doc_id": doc_id})
        return ok

    async def invalidate_tenant_searches(self, tenant_id: str) -> int:
        """
        Remove every cached search page of the tenant (prefix scan + bulk delete).
        Cost is O(matching keys). Returns the deleted count; 0 when nothing matched or the store failed.
        """
        deleted = await degrade(
            self.store.delete_by_prefix(search_prefix(tenant_id)),
            fallback=0,
            timeout=self.store_timeout,
            context="cache.invalidate_tenant_searches",
            fields={"tenant_id": tenant_id},
        )
        metrics.record_invalidation(SEARCH_CACHE, deleted)
        logger.debug("Invalidated tenant search cache", extra={"tenant_id": tenant_id, "deleted_count": deleted})
        return deleted

    @staticmethod
    def _decode(raw: bytes, model, key: str):
        try:
            return model.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding undecodable cache entry", extra={"key": key})
            return None

"""
Composes admission control, cache-aside reads, and cache invalidation around the index engine.

Read path:  admit -> cache get -> [miss] plan -> index search -> cache set.
Write path: index mutation -> invalidate document key -> invalidate tenant search namespace.
Index engine failures and timeouts surface as DependencyUnavailable; cache and counter failures never surface.
"""

import asyncio
from collections.abc import Awaitable
from typing import Any, TypeVar

from app.config.logging import get_logger
from app.services.search.base import IndexClient
from app.services.search.cache import CacheLayer
from app.services.search.errors import DependencyUnavailable, InvalidRequestError, RateLimitExceeded
from app.services.search.models import (
    Document,
    RateLimitDecision,
    SearchRequest,
    SearchResponse,
    validate_tenant_id,
)
from app.services.search.planner import (
    QueryPlanner,
    clamp_limit,
    normalize_query_text,
    validate_date_range,
    validate_offset,
)
from app.services.search.rate_limiter import RateLimiter
from app.utils.ids import generate_document_id
from app.utils.time import utc_now

logger = get_logger(__name__)

T = TypeVar("T")


class SearchOrchestrator:
    """Entry point of the query-serving core. Holds no per-request state; safe to share across requests."""

    def __init__(
        self,
        index_client: IndexClient,
        cache: CacheLayer,
        rate_limiter: RateLimiter,
        planner: QueryPlanner | None = None,
        *,
        index_timeout: float = 10.0,
    ):
        self.index_client = index_client
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.planner = planner or QueryPlanner()
        self.index_timeout = index_timeout

    async def _bounded(self, operation: Awaitable[T], context: str, tenant_id: str | None = None) -> T:
        """Await an index engine call under the hard deadline. A timeout is a dependency failure."""
        try:
            return await asyncio.wait_for(operation, timeout=self.index_timeout)
        except asyncio.TimeoutError as e:
            logger.error(
                "Index engine call timed out",
                extra={"context": context, "tenant_id": tenant_id, "timeout": self.index_timeout},
            )
            raise DependencyUnavailable(f"Search engine timed out: {context}", cause=e) from e

    async def admit(self, tenant_id: str) -> RateLimitDecision:
        """Run admission control. Raises RateLimitExceeded (carrying the decision) when rejected."""
        decision = await self.rate_limiter.admit(tenant_id)
        if not decision.allowed:
            raise RateLimitExceeded(decision)
        return decision

    async def search(self, tenant_id: str, request: SearchRequest) -> tuple[SearchResponse, RateLimitDecision]:
        """
        Serve a search page for the tenant. Returns (response, rate limit decision) so the caller can render
        rate limit headers. Rejected requests do no further work, and invalid ones are refused before
        admission so they cost no quota.
        """
        validate_tenant_id(tenant_id)
        offset = validate_offset(request.offset)
        limit = clamp_limit(request.limit)
        query_text = normalize_query_text(request.query_text)
        filters = validate_date_range(request.filters)

        decision = await self.admit(tenant_id)

        cached = await self.cache.get_search(tenant_id, query_text, filters, offset, limit)
        if cached is not None:
            return cached, decision

        plan = self.planner.build(tenant_id, query_text, filters, offset, limit)
        hits, total = await self._bounded(self.index_client.search(plan), "search", tenant_id)

        response = SearchResponse(
            tenant_id=tenant_id,
            query_text=query_text or "",
            offset=offset,
            limit=limit,
            total=total,
            results=self.planner.map_hits(hits),
        )
        await self.cache.set_search(tenant_id, query_text, filters, offset, limit, response)
        logger.info("Search performed", extra={"tenant_id": tenant_id, "query": query_text, "total": total})
        return response, decision

    async def index_document(self, tenant_id: str, document: Document) -> Document:
        """
        Create or replace a document for the tenant, then invalidate its cache entry and the tenant's
        search pages. The tenant on the stored document is always the caller's tenant.
        """
        validate_tenant_id(tenant_id)
        now = utc_now()
        stored = document.model_copy(
            update={
                "id": document.id or generate_document_id(),
                "tenant_id": tenant_id,
                "created_at": document.created_at or now,
                "updated_at": now,
            }
        )
        await self._bounded(self.index_client.index(tenant_id, stored), "index", tenant_id)
        logger.info("Document indexed", extra={"tenant_id": tenant_id, "doc_id": stored.id})
        await self._invalidate(tenant_id, stored.id)
        return stored

    async def get_document(self, tenant_id: str, doc_id: str) -> Document | None:
        """Cache-aside read. Returns None when absent or owned by another tenant (never distinguishable)."""
        validate_tenant_id(tenant_id)
        self._validate_doc_id(doc_id)

        cached = await self.cache.get_document(tenant_id, doc_id)
        if cached is not None:
            return cached

        document = await self._bounded(self.index_client.get(tenant_id, doc_id), "get", tenant_id)
        if document is None:
            return None
        if document.tenant_id != tenant_id:
            logger.warning("Tenant mismatch on document retrieval", extra={"tenant_id": tenant_id, "doc_id": doc_id})
            return None

        await self.cache.set_document(tenant_id, doc_id, document)
        return document

    async def delete_document(self, tenant_id: str, doc_id: str) -> bool:
        """Delete then invalidate. Returns False when the document did not exist; invalidation runs either way."""
        validate_tenant_id(tenant_id)
        self._validate_doc_id(doc_id)
        deleted = await self._bounded(self.index_client.delete(tenant_id, doc_id), "delete", tenant_id)
        logger.info("Document deleted", extra={"tenant_id": tenant_id, "doc_id": doc_id, "deleted": deleted})
        await self._invalidate(tenant_id, doc_id)
        return deleted

    async def _invalidate(self, tenant_id: str, doc_id: str) -> None:
        # Both calls are fail-open; the mutation has already succeeded and stale entries expire by TTL.
        await self.cache.invalidate_document(tenant_id, doc_id)
        await self.cache.invalidate_tenant_searches(tenant_id)

    @staticmethod
    def _validate_doc_id(doc_id: str) -> None:
        if not doc_id or not doc_id.strip():
            raise InvalidRequestError("document id must not be empty")

    async def health(self) -> dict[str, Any]:
        """Dependency health: UP when both are healthy, DEGRADED when one is, DOWN when neither is."""
        index_ok, cache_ok = await asyncio.gather(
            self._probe(self.index_client.health_check()),
            self._probe(self.cache.store.ping()),
        )
        if index_ok and cache_ok:
            status = "UP"
        elif index_ok or cache_ok:
            status = "DEGRADED"
        else:
            status = "DOWN"
        return {
            "status": status,
            "dependencies": {
                "opensearch": "UP" if index_ok else "DOWN",
                "cache": "UP" if cache_ok else "DOWN",
            },
        }

    async def _probe(self, check: Awaitable[bool]) -> bool:
        try:
            return bool(await asyncio.wait_for(check, timeout=self.index_timeout))
        except asyncio.TimeoutError:
            return False

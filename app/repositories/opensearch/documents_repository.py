"""
IndexClient over OpenSearch: executes query plans and tenant-scoped document reads/writes.
Document _ids are "<tenant>:<doc id>"; every stored document also carries its tenant_id keyword,
which is re-checked on every read. Engine failures are raised as DependencyUnavailable.
"""

from typing import Any

from opensearchpy import AsyncOpenSearch
from opensearchpy.exceptions import NotFoundError, OpenSearchException

from app.config.logging import get_logger
from app.resources.opensearch.health import cluster_is_healthy
from app.services.search.base import IndexClient
from app.services.search.errors import DependencyUnavailable
from app.services.search.models import Document, QueryPlan
from app.utils.ids import index_document_id

logger = get_logger(__name__)


def _document_to_index_doc(tenant_id: str, document: Document) -> dict[str, Any]:
    """Map a Document to the stored OpenSearch source. tenant_id always comes from the caller, not the body."""
    body = document.model_dump(mode="json")
    return {
        "tenant_id": tenant_id,
        "doc_id": document.id,
        "title": body["title"],
        "content": body["content"],
        "tags": body["tags"],
        "metadata": body["metadata"],
        "created_at": body["created_at"],
        "updated_at": body["updated_at"],
    }


def _index_doc_to_document(source: dict[str, Any]) -> Document:
    return Document(
        id=source.get("doc_id"),
        tenant_id=source.get("tenant_id") or "",
        title=source.get("title") or "",
        content=source.get("content") or "",
        tags=source.get("tags") or [],
        metadata=source.get("metadata") or {},
        created_at=source.get("created_at"),
        updated_at=source.get("updated_at"),
    )


def _total_hits(hits: dict[str, Any]) -> int:
    total = hits.get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


def _translate_opensearch_error(e: OpenSearchException, context: str, tenant_id: str | None) -> DependencyUnavailable:
    logger.error(
        "OpenSearch operation failed",
        extra={"context": context, "tenant_id": tenant_id, "error_type": type(e).__name__},
    )
    return DependencyUnavailable(f"Search engine temporarily unavailable: {context}", cause=e)


class OpenSearchIndexClient(IndexClient):
    """IndexClient backed by a single shared documents index."""

    def __init__(self, client: AsyncOpenSearch, index_name: str, *, refresh_on_write: bool = True):
        self._client = client
        self.index_name = index_name
        self.refresh_on_write = refresh_on_write

    async def search(self, plan: QueryPlan) -> tuple[list[dict[str, Any]], int]:
        try:
            response = await self._client.search(index=self.index_name, body=plan.to_search_body())
        except OpenSearchException as e:
            raise _translate_opensearch_error(e, "search", plan.tenant_id) from e

        hits_section = response.get("hits") or {}
        hits = hits_section.get("hits") or []
        # The tenant clause already scopes the query; drop anything else as a last line of defense.
        scoped = [h for h in hits if (h.get("_source") or {}).get("tenant_id") == plan.tenant_id]
        if len(scoped) != len(hits):
            logger.error(
                "Search returned hits outside the tenant filter",
                extra={"tenant_id": plan.tenant_id, "dropped": len(hits) - len(scoped)},
            )
        return scoped, _total_hits(hits_section)

    async def index(self, tenant_id: str, document: Document) -> None:
        if not document.id:
            raise ValueError("document.id must be set before indexing")
        try:
            await self._client.index(
                index=self.index_name,
                id=index_document_id(tenant_id, document.id),
                body=_document_to_index_doc(tenant_id, document),
                refresh=self.refresh_on_write,
            )
        except OpenSearchException as e:
            raise _translate_opensearch_error(e, "index", tenant_id) from e

    async def get(self, tenant_id: str, doc_id: str) -> Document | None:
        try:
            response = await self._client.get(index=self.index_name, id=index_document_id(tenant_id, doc_id))
        except NotFoundError:
            return None
        except OpenSearchException as e:
            raise _translate_opensearch_error(e, "get", tenant_id) from e

        source = response.get("_source") or {}
        if source.get("tenant_id") != tenant_id:
            logger.warning("Tenant mismatch on document retrieval", extra={"tenant_id": tenant_id, "doc_id": doc_id})
            return None
        return _index_doc_to_document(source)

    async def delete(self, tenant_id: str, doc_id: str) -> bool:
        try:
            await self._client.delete(
                index=self.index_name,
                id=index_document_id(tenant_id, doc_id),
                refresh=self.refresh_on_write,
            )
        except NotFoundError:
            logger.debug("Document not found for deletion", extra={"tenant_id": tenant_id, "doc_id": doc_id})
            return False
        except OpenSearchException as e:
            raise _translate_opensearch_error(e, "delete", tenant_id) from e
        return True

    async def health_check(self) -> bool:
        return await cluster_is_healthy(self._client)

"""GET /search: tenant-scoped full-text search with cache-aside reads."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response

from app.controllers.dependencies import apply_rate_limit_headers, get_orchestrator, get_tenant_id
from app.services.search.models import SearchFilters, SearchRequest, SearchResponse
from app.services.search.orchestrator import SearchOrchestrator

router = APIRouter(prefix="/search", tags=["search"])


@router.get("", response_model=SearchResponse)
async def search_documents(
    response: Response,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
    q: str | None = Query(default=None, max_length=1000, description="Free text; omit to list all documents"),
    offset: int = Query(default=0, description="Zero-based offset; negative values are rejected"),
    limit: int = Query(default=10, description="Page size; clamped to [1, 50]"),
    tag: str | None = Query(default=None),
    author: str | None = Query(default=None),
    date_from: datetime | None = Query(default=None, alias="from"),
    date_to: datetime | None = Query(default=None, alias="to"),
) -> SearchResponse:
    """
    Search the tenant's documents. Rate limited per tenant; results are served from cache when fresh.
    Filters narrow results (AND), they never broaden them.
    """
    request = SearchRequest(
        query_text=q,
        filters=SearchFilters(tag=tag, author=author, date_from=date_from, date_to=date_to),
        offset=offset,
        limit=limit,
    )
    result, decision = await orchestrator.search(tenant_id, request)
    apply_rate_limit_headers(response, decision)
    return result

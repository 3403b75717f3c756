"""
Turns (tenant, free text, filters) into a QueryPlan, and maps raw engine hits back to SearchResults.

The tenant term clause is injected here and nowhere else. Filters only narrow: each one becomes an
additional mandatory clause AND-combined with the tenant clause.
"""

from typing import Any

from app.services.search.errors import InvalidRequestError
from app.services.search.models import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    MIN_LIMIT,
    TENANT_FIELD,
    FilterClause,
    QueryPlan,
    SearchFilters,
    SearchResult,
    validate_tenant_id,
)

# Title and tag matches outrank body matches of equal term frequency.
TEXT_FIELDS: tuple[tuple[str, int], ...] = (("title", 3), ("content", 1), ("tags", 2))

TAGS_FIELD = "tags"
AUTHOR_FIELD = "metadata.author"
CREATED_AT_FIELD = "created_at"

SNIPPET_LENGTH = 150


def clamp_limit(limit: int | None) -> int:
    """Clamp page size into [1, 50]. Never an error; None means the default page size."""
    if limit is None:
        return DEFAULT_LIMIT
    return max(MIN_LIMIT, min(MAX_LIMIT, limit))


def validate_offset(offset: int | None) -> int:
    if offset is None:
        return 0
    if offset < 0:
        raise InvalidRequestError("offset must be >= 0")
    return offset


def validate_date_range(filters: SearchFilters) -> SearchFilters:
    if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
        raise InvalidRequestError("date_from must not be after date_to")
    return filters


def normalize_query_text(query_text: str | None) -> str | None:
    """Stripped text, or None when empty/whitespace (match all)."""
    if query_text is None:
        return None
    stripped = query_text.strip()
    return stripped or None


class QueryPlanner:
    """Builds tenant-isolated query plans."""

    def __init__(
        self,
        text_fields: tuple[tuple[str, int], ...] = TEXT_FIELDS,
        snippet_length: int = SNIPPET_LENGTH,
    ):
        self.text_fields = text_fields
        self.snippet_length = snippet_length

    def build(
        self,
        tenant_id: str,
        query_text: str | None,
        filters: SearchFilters | None = None,
        offset: int = 0,
        limit: int = DEFAULT_LIMIT,
    ) -> QueryPlan:
        validate_tenant_id(tenant_id)
        filters = filters or SearchFilters()
        clauses = [FilterClause(TENANT_FIELD, "term", tenant_id)]
        clauses.extend(self._filter_clauses(filters))
        return QueryPlan(
            tenant_id=tenant_id,
            query_text=normalize_query_text(query_text),
            filters=tuple(clauses),
            offset=validate_offset(offset),
            limit=clamp_limit(limit),
            text_fields=self.text_fields,
            highlight_fragment_size=self.snippet_length,
        )

    @staticmethod
    def _filter_clauses(filters: SearchFilters) -> list[FilterClause]:
        clauses: list[FilterClause] = []
        if filters.tag:
            clauses.append(FilterClause(TAGS_FIELD, "term", filters.tag))
        if filters.author:
            clauses.append(FilterClause(AUTHOR_FIELD, "term", filters.author))
        validate_date_range(filters)
        if filters.date_from or filters.date_to:
            bounds: dict[str, str] = {}
            if filters.date_from:
                bounds["gte"] = filters.date_from.isoformat()
            if filters.date_to:
                bounds["lte"] = filters.date_to.isoformat()
            clauses.append(FilterClause(CREATED_AT_FIELD, "range", bounds))
        return clauses

    def map_hit(self, hit: dict[str, Any]) -> SearchResult:
        """Map one raw hit to a SearchResult. Snippet: content highlight, then title highlight, then body prefix."""
        source = hit.get("_source") or {}
        highlight = hit.get("highlight") or {}
        content = source.get("content") or ""
        if highlight.get("content"):
            snippet = highlight["content"][0]
        elif highlight.get("title"):
            snippet = highlight["title"][0]
        else:
            snippet = content[: self.snippet_length]
            if len(content) > self.snippet_length:
                snippet += "..."
        return SearchResult(
            id=source.get("doc_id") or "",
            title=source.get("title") or "",
            snippet=snippet,
            score=hit.get("_score"),
            tags=list(source.get("tags") or []),
        )

    def map_hits(self, hits: list[dict[str, Any]]) -> list[SearchResult]:
        return [self.map_hit(hit) for hit in hits]

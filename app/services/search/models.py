"""Data model for the query-serving core: requests, cached values, rate limit decisions, query plans."""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.services.search.errors import InvalidRequestError

TENANT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,100}$")
TENANT_FIELD = "tenant_id"

MAX_LIMIT = 50
MIN_LIMIT = 1
DEFAULT_LIMIT = 10


def validate_tenant_id(tenant_id: str) -> str:
    """Return tenant_id unchanged, or raise InvalidRequestError if it is outside [A-Za-z0-9_-]{1,100}."""
    if not isinstance(tenant_id, str) or not TENANT_ID_PATTERN.match(tenant_id):
        raise InvalidRequestError(
            "Invalid tenant ID format. Must be alphanumeric with hyphens/underscores (max 100 chars)."
        )
    return tenant_id


class SearchFilters(BaseModel):
    """Optional structured filters. Fixed field set so serialization for cache keys is canonical."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    tag: str | None = Field(default=None, description="Exact tag match")
    author: str | None = Field(default=None, description="Exact metadata.author match")
    date_from: datetime | None = Field(default=None, description="created_at lower bound (inclusive)")
    date_to: datetime | None = Field(default=None, description="created_at upper bound (inclusive)")

    @field_validator("date_from", "date_to")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        """Naive bounds are UTC, so mixed naive/aware bounds stay comparable."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class SearchRequest(BaseModel):
    """A tenant's search. Offset and limit are validated/clamped by the core, not by the model."""

    query_text: str | None = Field(default=None, description="Free text; empty or None matches all")
    filters: SearchFilters = Field(default_factory=SearchFilters)
    offset: int = Field(default=0, description="Zero-based result offset")
    limit: int = Field(default=DEFAULT_LIMIT, description="Page size, clamped to [1, 50]")


class SearchResult(BaseModel):
    """One ranked hit."""

    id: str
    title: str
    snippet: str
    score: float | None = None
    tags: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """Search page as returned to callers and stored in the search cache."""

    tenant_id: str
    query_text: str
    offset: int
    limit: int
    total: int
    results: list[SearchResult] = Field(default_factory=list)


class Document(BaseModel):
    """A tenant-owned document as stored in the index engine and the document cache."""

    id: str | None = None
    tenant_id: str
    title: str
    content: str
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RateLimitDecision(BaseModel):
    """Admission outcome. remaining/reset_at are None when the decision was made fail-open."""

    allowed: bool
    limit: int
    remaining: int | None = None
    reset_at: datetime | None = None
    retry_after_seconds: int | None = None
    degraded: bool = False


@dataclass(frozen=True)
class FilterClause:
    """A mandatory (AND-combined) filter clause: exact term or inclusive range."""

    field: str
    kind: Literal["term", "range"]
    value: Any

    def to_dsl(self) -> dict[str, Any]:
        return {self.kind: {self.field: self.value}}


@dataclass(frozen=True)
class QueryPlan:
    """
    Structured query handed to an IndexClient. The first filter clause is always the tenant term
    clause for tenant_id, and no other clause may touch the tenant field. Construction fails otherwise,
    so a plan without the server-controlled tenant filter cannot exist.
    """

    tenant_id: str
    query_text: str | None
    filters: tuple[FilterClause, ...]
    offset: int
    limit: int
    text_fields: tuple[tuple[str, int], ...] = ()
    highlight_fragment_size: int = 150
    source_fields: tuple[str, ...] = ("tenant_id", "doc_id", "title", "content", "tags", "metadata")

    def __post_init__(self) -> None:
        validate_tenant_id(self.tenant_id)
        if not self.filters or self.filters[0] != FilterClause(TENANT_FIELD, "term", self.tenant_id):
            raise ValueError("Query plan must start with the tenant filter clause")
        if any(c.field == TENANT_FIELD for c in self.filters[1:]):
            raise ValueError("Query plan may contain exactly one tenant filter clause")
        if self.offset < 0:
            raise ValueError("Query plan offset must be >= 0")
        if not MIN_LIMIT <= self.limit <= MAX_LIMIT:
            raise ValueError(f"Query plan limit must be within [{MIN_LIMIT}, {MAX_LIMIT}]")

    @property
    def match_all(self) -> bool:
        return not self.query_text

    def to_search_body(self) -> dict[str, Any]:
        """Render the OpenSearch request body: bool query with scoring must + non-scoring filter."""
        if self.match_all:
            must: list[dict[str, Any]] = [{"match_all": {}}]
        else:
            must = [
                {
                    "multi_match": {
                        "query": self.query_text,
                        "fields": [f"{name}^{weight}" for name, weight in self.text_fields],
                        "type": "best_fields",
                        "operator": "or",
                    }
                }
            ]
        return {
            "query": {
                "bool": {
                    "must": must,
                    "filter": [c.to_dsl() for c in self.filters],
                }
            },
            "from": self.offset,
            "size": self.limit,
            "_source": list(self.source_fields),
            "highlight": {
                "fields": {
                    "title": {},
                    "content": {
                        "fragment_size": self.highlight_fragment_size,
                        "number_of_fragments": 1,
                    },
                }
            },
        }

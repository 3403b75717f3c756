"""Cache and counter key derivation. Pure and deterministic; every key embeds exactly one tenant id."""

import hashlib
import json
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

SEARCH_NAMESPACE = "search"
DOC_NAMESPACE = "doc"
RATE_LIMIT_NAMESPACE = "ratelimit"


def _sha256(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def canonical_filters(filters: BaseModel | Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Filters as a sorted, JSON-ready dict with unset fields dropped.
    Logically equal filter sets give equal output whatever order they were built in.
    """
    if filters is None:
        return {}
    if isinstance(filters, BaseModel):
        raw = filters.model_dump(mode="json", exclude_none=True)
    else:
        raw = {k: v for k, v in filters.items() if v is not None}
    return {k: raw[k] for k in sorted(raw)}


def search_prefix(tenant_id: str) -> str:
    """Prefix shared by every search-cache key of the tenant. Tenant ids never contain ':'."""
    return f"{SEARCH_NAMESPACE}:{tenant_id}:"


def derive_search_key(
    tenant_id: str,
    query_text: str | None,
    filters: BaseModel | Mapping[str, Any] | None,
    offset: int,
    limit: int,
) -> str:
    """search:<tenant>:<sha256 of canonical {query, filters, offset, limit}>."""
    payload = json.dumps(
        {
            "query": (query_text or "").strip(),
            "filters": canonical_filters(filters),
            "offset": offset,
            "limit": limit,
        },
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return f"{search_prefix(tenant_id)}{_sha256(payload)}"


def derive_doc_key(tenant_id: str, doc_id: str) -> str:
    """doc:<tenant>:<sha256 of doc id>."""
    return f"{DOC_NAMESPACE}:{tenant_id}:{_sha256(doc_id)}"


def derive_rate_limit_key(tenant_id: str, window_start_ms: int) -> str:
    """ratelimit:<tenant>:<window start epoch ms>."""
    return f"{RATE_LIMIT_NAMESPACE}:{tenant_id}:{window_start_ms}"

"""
Contracts for the three external collaborators of the search core (index engine, blob store, counter store).
Adapters live under app/repositories. Store adapters raise StoreError for backend failures;
the index adapter raises DependencyUnavailable. Neither leaks backend-specific exceptions.
"""

from abc import ABC, abstractmethod
from typing import Any

from app.services.search.models import Document, QueryPlan


class IndexClient(ABC):
    """Executes query plans and document mutations against the search engine (source of truth)."""

    @abstractmethod
    async def search(self, plan: QueryPlan) -> tuple[list[dict[str, Any]], int]:
        """Run the plan. Returns (raw hits, total matching). Hits carry _source, _score, highlight."""
        ...

    @abstractmethod
    async def index(self, tenant_id: str, document: Document) -> None:
        """Create or replace the document under the tenant. document.id must be set."""
        ...

    @abstractmethod
    async def get(self, tenant_id: str, doc_id: str) -> Document | None:
        """Return the tenant's document, or None if absent or owned by another tenant."""
        ...

    @abstractmethod
    async def delete(self, tenant_id: str, doc_id: str) -> bool:
        """Delete the tenant's document. Returns False when it did not exist."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...


class BlobStore(ABC):
    """Opaque serialized values with TTL. Backs the cache layer."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        ...

    @abstractmethod
    async def set_with_ttl(self, key: str, value: bytes, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def delete_by_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix. Returns the number of keys removed (0 is not an error)."""
        ...

    @abstractmethod
    async def ping(self) -> bool:
        ...


class CounterStore(ABC):
    """Integer counters with expiry. Backs the rate limiter."""

    @abstractmethod
    async def increment_with_expiry(self, key: str, ttl_seconds: int) -> int:
        """Atomically increment (creating at 1) and set/refresh expiry. Returns the new value."""
        ...

    @abstractmethod
    async def get(self, key: str) -> int:
        """Current value; 0 when missing or expired."""
        ...

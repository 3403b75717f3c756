"""Test doubles: in-memory index engine, failing stores, and a controllable clock."""

import asyncio
from datetime import datetime
from typing import Any

from app.repositories.memory.kv_store import MemoryBlobStore
from app.services.search.base import BlobStore, CounterStore, IndexClient
from app.services.search.errors import StoreError
from app.services.search.models import Document, QueryPlan

# 2024-01-01T00:00:00Z, aligned to a 60s window
START_MS = 1_704_067_200_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now_ms: float = START_MS):
        self.now_ms = now_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


class FakeIndexClient(IndexClient):
    """
    Dict-backed index engine. Interprets QueryPlan term/range clauses exactly and matches free text
    as an OR over lowercase tokens in title, content and tags.
    """

    def __init__(self):
        self.documents: dict[tuple[str, str], Document] = {}
        self.search_calls = 0
        self.plans: list[QueryPlan] = []
        self.error: Exception | None = None
        self.delay: float = 0.0
        self.healthy = True

    async def _maybe_fail(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    @staticmethod
    def _field_values(doc: Document, field: str) -> list[Any]:
        if field == "tenant_id":
            return [doc.tenant_id]
        if field == "tags":
            return list(doc.tags)
        if field.startswith("metadata."):
            value = doc.metadata.get(field.split(".", 1)[1])
            return [] if value is None else [value]
        return [getattr(doc, field, None)]

    def _matches_filters(self, doc: Document, plan: QueryPlan) -> bool:
        for clause in plan.filters:
            if clause.kind == "term":
                if clause.value not in self._field_values(doc, clause.field):
                    return False
            else:
                value = getattr(doc, clause.field)
                if value is None:
                    return False
                if "gte" in clause.value and value < datetime.fromisoformat(clause.value["gte"]):
                    return False
                if "lte" in clause.value and value > datetime.fromisoformat(clause.value["lte"]):
                    return False
        return True

    @staticmethod
    def _score(doc: Document, plan: QueryPlan) -> float:
        if plan.match_all:
            return 1.0
        weights = dict(plan.text_fields)
        fields = {
            "title": doc.title.lower(),
            "content": doc.content.lower(),
            "tags": " ".join(doc.tags).lower(),
        }
        score = 0.0
        for token in plan.query_text.lower().split():
            for name, text in fields.items():
                if token in text:
                    score += weights.get(name, 1)
        return score

    async def search(self, plan: QueryPlan) -> tuple[list[dict[str, Any]], int]:
        self.search_calls += 1
        self.plans.append(plan)
        await self._maybe_fail()
        scored = []
        for doc in self.documents.values():
            if not self._matches_filters(doc, plan):
                continue
            score = self._score(doc, plan)
            if score > 0:
                scored.append((score, doc))
        scored.sort(key=lambda pair: (-pair[0], pair[1].id))
        page = scored[plan.offset : plan.offset + plan.limit]
        hits = [
            {
                "_score": score,
                "_source": {
                    "tenant_id": doc.tenant_id,
                    "doc_id": doc.id,
                    "title": doc.title,
                    "content": doc.content,
                    "tags": doc.tags,
                    "metadata": doc.metadata,
                },
            }
            for score, doc in page
        ]
        return hits, len(scored)

    async def index(self, tenant_id: str, document: Document) -> None:
        await self._maybe_fail()
        self.documents[(tenant_id, document.id)] = document

    async def get(self, tenant_id: str, doc_id: str) -> Document | None:
        await self._maybe_fail()
        return self.documents.get((tenant_id, doc_id))

    async def delete(self, tenant_id: str, doc_id: str) -> bool:
        await self._maybe_fail()
        return self.documents.pop((tenant_id, doc_id), None) is not None

    async def health_check(self) -> bool:
        return self.healthy


class FailingBlobStore(BlobStore):
    """Blob store whose backend is down."""

    def __init__(self):
        self.calls = 0

    async def _fail(self):
        self.calls += 1
        raise StoreError("blob store down", cause=ConnectionError("refused"))

    async def get(self, key: str) -> bytes | None:
        await self._fail()

    async def set_with_ttl(self, key: str, value: bytes, ttl_seconds: int) -> None:
        await self._fail()

    async def delete(self, key: str) -> None:
        await self._fail()

    async def delete_by_prefix(self, prefix: str) -> int:
        await self._fail()

    async def ping(self) -> bool:
        return False


class FailingCounterStore(CounterStore):
    """Counter store whose backend is down."""

    async def increment_with_expiry(self, key: str, ttl_seconds: int) -> int:
        raise StoreError("counter store down", cause=ConnectionError("refused"))

    async def get(self, key: str) -> int:
        raise StoreError("counter store down", cause=ConnectionError("refused"))


class HangingBlobStore(MemoryBlobStore):
    """Blob store that never answers reads."""

    async def get(self, key: str) -> bytes | None:
        await asyncio.sleep(3600)


def make_document(doc_id: str, tenant_id: str, title: str, content: str, **kwargs) -> Document:
    return Document(id=doc_id, tenant_id=tenant_id, title=title, content=content, **kwargs)

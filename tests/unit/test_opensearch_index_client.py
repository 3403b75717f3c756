"""Unit tests for OpenSearchIndexClient and index bootstrap (AsyncOpenSearch mocked)."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from opensearchpy.exceptions import ConnectionError as OSConnectionError
from opensearchpy.exceptions import NotFoundError, RequestError

from app.repositories.opensearch.documents_repository import OpenSearchIndexClient
from app.resources.opensearch.index_manager import build_index_body, create_index_if_not_exists
from app.services.search.errors import DependencyUnavailable
from app.services.search.planner import QueryPlanner
from tests.fakes import make_document


@pytest.fixture
def os_client():
    client = MagicMock()
    client.search = AsyncMock(return_value={"hits": {"total": {"value": 0}, "hits": []}})
    client.index = AsyncMock(return_value={"result": "created"})
    client.get = AsyncMock()
    client.delete = AsyncMock(return_value={"result": "deleted"})
    client.cluster.health = AsyncMock(return_value={"status": "green"})
    client.indices.exists = AsyncMock(return_value=False)
    client.indices.create = AsyncMock(return_value={"acknowledged": True})
    return client


@pytest.fixture
def index(os_client):
    return OpenSearchIndexClient(os_client, "documents")


def _hit(tenant_id: str, doc_id: str) -> dict:
    return {"_score": 1.0, "_source": {"tenant_id": tenant_id, "doc_id": doc_id, "title": "T", "content": "C"}}


class TestSearch:
    @pytest.mark.asyncio
    async def test_sends_plan_body(self, index, os_client):
        plan = QueryPlanner().build("t1", "payment")
        await index.search(plan)
        kwargs = os_client.search.await_args.kwargs
        assert kwargs["index"] == "documents"
        assert kwargs["body"] == plan.to_search_body()

    @pytest.mark.asyncio
    async def test_drops_hits_outside_the_tenant(self, index, os_client):
        os_client.search.return_value = {"hits": {"total": {"value": 2}, "hits": [_hit("t1", "a"), _hit("t2", "b")]}}
        hits, total = await index.search(QueryPlanner().build("t1", "x"))
        assert [h["_source"]["doc_id"] for h in hits] == ["a"]
        assert total == 2

    @pytest.mark.asyncio
    async def test_accepts_integer_total(self, index, os_client):
        os_client.search.return_value = {"hits": {"total": 5, "hits": []}}
        _, total = await index.search(QueryPlanner().build("t1", "x"))
        assert total == 5

    @pytest.mark.asyncio
    async def test_engine_error_is_dependency_unavailable(self, index, os_client):
        os_client.search.side_effect = OSConnectionError("N/A", "refused", None)
        with pytest.raises(DependencyUnavailable):
            await index.search(QueryPlanner().build("t1", "x"))


class TestDocuments:
    @pytest.mark.asyncio
    async def test_index_uses_tenant_scoped_id(self, index, os_client):
        await index.index("t1", make_document("d1", "t1", "T", "C", metadata={"author": "bob"}))
        kwargs = os_client.index.await_args.kwargs
        assert kwargs["id"] == "t1:d1"
        assert kwargs["body"]["tenant_id"] == "t1"
        assert kwargs["body"]["doc_id"] == "d1"
        assert kwargs["body"]["metadata"] == {"author": "bob"}
        assert kwargs["refresh"] is True

    @pytest.mark.asyncio
    async def test_index_requires_id(self, index):
        with pytest.raises(ValueError):
            await index.index("t1", make_document(None, "t1", "T", "C"))

    @pytest.mark.asyncio
    async def test_get_maps_source(self, index, os_client):
        os_client.get.return_value = {"_source": {**_hit("t1", "d1")["_source"], "tags": ["x"]}}
        document = await index.get("t1", "d1")
        assert document.id == "d1"
        assert document.tags == ["x"]
        assert os_client.get.await_args.kwargs["id"] == "t1:d1"

    @pytest.mark.asyncio
    async def test_get_missing_is_none(self, index, os_client):
        os_client.get.side_effect = NotFoundError(404, "not_found", {})
        assert await index.get("t1", "d1") is None

    @pytest.mark.asyncio
    async def test_get_other_tenant_is_none(self, index, os_client):
        os_client.get.return_value = {"_source": _hit("t2", "d1")["_source"]}
        assert await index.get("t1", "d1") is None

    @pytest.mark.asyncio
    async def test_delete(self, index, os_client):
        assert await index.delete("t1", "d1") is True
        os_client.delete.side_effect = NotFoundError(404, "not_found", {})
        assert await index.delete("t1", "d1") is False

    @pytest.mark.asyncio
    async def test_health(self, index, os_client):
        assert await index.health_check() is True
        os_client.cluster.health.return_value = {"status": "red"}
        assert await index.health_check() is False
        os_client.cluster.health.side_effect = OSConnectionError("N/A", "refused", None)
        assert await index.health_check() is False


class TestIndexBootstrap:
    def test_mapping_uses_keywords_for_exact_fields(self):
        properties = build_index_body()["mappings"]["properties"]
        assert properties["tenant_id"]["type"] == "keyword"
        assert properties["tags"]["type"] == "keyword"
        assert properties["metadata"]["properties"]["author"]["type"] == "keyword"
        assert properties["created_at"]["type"] == "date"

    @pytest.mark.asyncio
    async def test_creates_missing_index(self, os_client):
        assert await create_index_if_not_exists(os_client, "documents") is True
        os_client.indices.create.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_existing_index_is_left_alone(self, os_client):
        os_client.indices.exists.return_value = True
        assert await create_index_if_not_exists(os_client, "documents") is False
        os_client.indices.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_creation_is_not_an_error(self, os_client):
        os_client.indices.create.side_effect = RequestError(400, "resource_already_exists_exception", {})
        assert await create_index_if_not_exists(os_client, "documents") is False

    @pytest.mark.asyncio
    async def test_bad_request_raises(self, os_client):
        os_client.indices.create.side_effect = RequestError(
            400, "mapper_parsing_exception", {"error": {"reason": "bad mapping"}}
        )
        with pytest.raises(ValueError, match="bad mapping"):
            await create_index_if_not_exists(os_client, "documents")

"""
Async create the documents index with its mapping if it does not exist.
tenant_id, doc_id, tags and metadata keys are keyword fields so tenant and filter clauses are exact matches.
No business logic beyond index definition and mapping.
"""

from typing import Any

from opensearchpy import AsyncOpenSearch
from opensearchpy.exceptions import OpenSearchException, RequestError

from app.config.logging import get_logger

logger = get_logger(__name__)


def build_index_body(number_of_shards: int = 1, number_of_replicas: int = 0) -> dict[str, Any]:
    """Index settings and mappings for tenant-scoped full-text documents."""
    properties: dict[str, Any] = {
        "tenant_id": {"type": "keyword"},
        "doc_id": {"type": "keyword"},
        "title": {"type": "text", "analyzer": "standard"},
        "content": {"type": "text", "analyzer": "standard"},
        "tags": {"type": "keyword"},
        "metadata": {
            "properties": {
                "author": {"type": "keyword"},
                "type": {"type": "keyword"},
                "department": {"type": "keyword"},
            }
        },
        "created_at": {"type": "date"},
        "updated_at": {"type": "date"},
    }
    return {
        "settings": {
            "number_of_shards": number_of_shards,
            "number_of_replicas": number_of_replicas,
            "analysis": {"analyzer": {"default": {"type": "standard"}}},
        },
        "mappings": {"properties": properties},
    }


async def create_index_if_not_exists(client: AsyncOpenSearch, index_name: str) -> bool:
    """
    Create the documents index if it does not exist.
    Returns True if the index was created, False if it already existed.
    Raises ValueError if index creation fails (e.g., invalid configuration).
    """
    if await client.indices.exists(index=index_name):
        logger.info("OpenSearch index already exists", extra={"index_name": index_name})
        return False

    try:
        await client.indices.create(index=index_name, body=build_index_body())
    except RequestError as e:
        # Another replica created it between exists() and create().
        if getattr(e, "error", "") == "resource_already_exists_exception":
            logger.info("OpenSearch index created concurrently", extra={"index_name": index_name})
            return False
        error_message = str(e)
        if isinstance(getattr(e, "info", None), dict):
            error_info = e.info.get("error", {})
            if isinstance(error_info, dict) and "reason" in error_info:
                error_message = error_info["reason"]
        logger.error(
            "Failed to create OpenSearch index",
            extra={"index_name": index_name, "error": error_message, "error_type": type(e).__name__},
        )
        raise ValueError(f"Failed to create index '{index_name}': {error_message}") from e
    except OpenSearchException as e:
        logger.error(
            "OpenSearch error during index creation",
            extra={"index_name": index_name, "error": str(e), "error_type": type(e).__name__},
        )
        raise ValueError(f"OpenSearch error while creating index '{index_name}': {str(e)}") from e

    logger.info("OpenSearch index created", extra={"index_name": index_name})
    return True

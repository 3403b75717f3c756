"""Shared AsyncOpenSearch client for the index engine. Created lazily, closed on shutdown."""

from opensearchpy import AsyncOpenSearch
from opensearchpy.exceptions import OpenSearchException

from app.config.logging import get_logger
from app.config.storage.opensearch import get_opensearch_config

logger = get_logger(__name__)

_client: AsyncOpenSearch | None = None


def get_opensearch_client() -> AsyncOpenSearch:
    """Return the process-wide client, creating it on first use."""
    global _client
    if _client is None:
        cfg = get_opensearch_config()
        _client = AsyncOpenSearch(
            hosts=[cfg.host],
            http_auth=cfg.http_auth,
            use_ssl=cfg.use_ssl,
            verify_certs=cfg.verify_certs,
            timeout=cfg.timeout,
        )
        logger.info(
            "OpenSearch async client initialized",
            extra={"host": cfg.host, "index": cfg.index, "timeout": cfg.timeout},
        )
    return _client


async def close_opensearch_client() -> None:
    """Release the client's HTTP session. Safe to call when no client was created."""
    global _client
    if _client is None:
        return
    try:
        await _client.close()
        logger.info("OpenSearch async client closed")
    except OpenSearchException as e:
        logger.warning("Error closing OpenSearch client", extra={"error": str(e)})
    _client = None

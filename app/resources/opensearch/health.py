"""Async OpenSearch cluster health probe. Used by the index client's health check; no business logic."""

from opensearchpy import AsyncOpenSearch
from opensearchpy.exceptions import ConnectionError as OSConnectionError
from opensearchpy.exceptions import ConnectionTimeout as OSConnectionTimeout
from opensearchpy.exceptions import OpenSearchException

from app.config.logging import get_logger

logger = get_logger(__name__)


async def cluster_is_healthy(client: AsyncOpenSearch) -> bool:
    """
    True when the cluster answers and its status is not red. Yellow (unassigned replicas) still serves reads.
    Never raises; failures are logged without internal details.
    """
    try:
        response = await client.cluster.health()
    except OSConnectionTimeout as e:
        logger.warning("OpenSearch health check timeout", extra={"error": type(e).__name__})
        return False
    except (OSConnectionError, OpenSearchException) as e:
        logger.warning("OpenSearch health check failed", extra={"error": type(e).__name__})
        return False
    return response.get("status") != "red"

"""
Fail-open combinator for cache and counter store calls. Used only by CacheLayer and RateLimiter:
a store error or timeout is logged and replaced by a fallback value. Index engine calls never go through here.
"""

import asyncio
from collections.abc import Awaitable
from typing import Any, TypeVar

from app.config.logging import get_logger
from app.services.search.errors import StoreError

logger = get_logger(__name__)

T = TypeVar("T")


async def degrade(
    operation: Awaitable[T],
    *,
    fallback: T,
    timeout: float,
    context: str,
    fields: dict[str, Any] | None = None,
) -> T:
    """
    Await operation with a deadline. On StoreError or timeout return fallback instead of raising.
    context names the operation in the log line; fields adds structured log fields (tenant_id, key, ...).
    """
    try:
        return await asyncio.wait_for(operation, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(
            "Store call timed out, degrading",
            extra={"context": context, "timeout": timeout, **(fields or {})},
        )
    except StoreError as e:
        cause = e.cause if e.cause is not None else e
        logger.warning(
            "Store call failed, degrading",
            extra={"context": context, "error_type": type(cause).__name__, **(fields or {})},
        )
    return fallback

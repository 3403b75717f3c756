"""
Per-tenant fixed-window admission control on top of a CounterStore.

Window start is floor(now / window) * window, so a request landing exactly on a boundary counts against
the new window. Counters are never deleted; they expire one window after their last increment.
A counter store outage admits every request (fail-open) and is only logged.
"""

import math
from collections.abc import Callable

from app.config.logging import get_logger
from app.services import metrics
from app.services.search.base import CounterStore
from app.services.search.degrade import degrade
from app.services.search.models import RateLimitDecision, validate_tenant_id
from app.utils.keys import derive_rate_limit_key
from app.utils.time import epoch_ms, from_epoch_ms

logger = get_logger(__name__)


class RateLimiter:
    """Fixed-window counter limiter. Stateless apart from the injected store and clock."""

    def __init__(
        self,
        counters: CounterStore,
        *,
        max_requests: int,
        window_ms: int,
        store_timeout: float = 1.0,
        enabled: bool = True,
        clock: Callable[[], float] = epoch_ms,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        self.counters = counters
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.store_timeout = store_timeout
        self.enabled = enabled
        self.clock = clock

    @property
    def ttl_seconds(self) -> int:
        return max(1, math.ceil(self.window_ms / 1000))

    def window_start(self, now_ms: float) -> int:
        return int(now_ms // self.window_ms) * self.window_ms

    def _open_decision(self) -> RateLimitDecision:
        return RateLimitDecision(allowed=True, limit=self.max_requests, degraded=True)

    async def admit(self, tenant_id: str) -> RateLimitDecision:
        """
        Decide whether the tenant may proceed. A full window rejects without incrementing.
        The increment is atomic and its result is re-checked, so concurrent requests racing at the
        boundary cannot both be admitted past max_requests.
        """
        validate_tenant_id(tenant_id)
        if not self.enabled:
            return RateLimitDecision(allowed=True, limit=self.max_requests)

        now = self.clock()
        start = self.window_start(now)
        reset_ms = start + self.window_ms
        reset_at = from_epoch_ms(reset_ms)
        key = derive_rate_limit_key(tenant_id, start)
        log_fields = {"tenant_id": tenant_id, "key": key}

        current = await degrade(
            self.counters.get(key),
            fallback=None,
            timeout=self.store_timeout,
            context="rate_limit.get",
            fields=log_fields,
        )
        if current is None:
            metrics.record_rate_limit_degraded()
            return self._open_decision()

        if current >= self.max_requests:
            return self._reject(tenant_id, current, now, reset_ms)

        new_count = await degrade(
            self.counters.increment_with_expiry(key, self.ttl_seconds),
            fallback=None,
            timeout=self.store_timeout,
            context="rate_limit.increment",
            fields=log_fields,
        )
        if new_count is None:
            metrics.record_rate_limit_degraded()
            return self._open_decision()

        if new_count > self.max_requests:
            return self._reject(tenant_id, new_count, now, reset_ms)

        return RateLimitDecision(
            allowed=True,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - new_count),
            reset_at=reset_at,
        )

    def _reject(self, tenant_id: str, count: int, now: float, reset_ms: int) -> RateLimitDecision:
        retry_after = max(1, math.ceil((reset_ms - now) / 1000))
        logger.warning(
            "Rate limit exceeded",
            extra={"tenant_id": tenant_id, "current_count": count, "max_requests": self.max_requests},
        )
        metrics.record_rate_limit_violation(tenant_id)
        return RateLimitDecision(
            allowed=False,
            limit=self.max_requests,
            remaining=0,
            reset_at=from_epoch_ms(reset_ms),
            retry_after_seconds=retry_after,
        )

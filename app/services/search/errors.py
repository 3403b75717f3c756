"""Error taxonomy for the query-serving core. No HTTP knowledge; app.main maps these to responses."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.services.search.models import RateLimitDecision


class SearchServiceError(Exception):
    """Base class for errors raised by the search core."""


class InvalidRequestError(SearchServiceError):
    """Malformed tenant id, negative offset, or inverted date range. Caller's fault, not retried."""


class NotFoundError(SearchServiceError):
    """Document absent or owned by another tenant. Both cases are reported identically."""


class RateLimitExceeded(SearchServiceError):
    """Tenant exhausted its request budget for the current window."""

    def __init__(self, decision: "RateLimitDecision"):
        super().__init__(
            f"Rate limit exceeded. Maximum {decision.limit} requests per window. "
            f"Retry after {decision.retry_after_seconds} seconds."
        )
        self.decision = decision

    @property
    def retry_after_seconds(self) -> int:
        return self.decision.retry_after_seconds or 0


class DependencyUnavailable(SearchServiceError):
    """Index engine unreachable, timed out, or failed. Surfaced to the caller; never cached."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class StoreError(SearchServiceError):
    """Cache or counter store failure. Absorbed by degrade(); never escapes as a request failure."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause

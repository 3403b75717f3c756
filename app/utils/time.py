"""Time utilities for timestamps and rate limit windows. All datetimes in UTC."""

import time
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC datetime. Use for created_at/updated_at."""
    return datetime.now(timezone.utc)


def epoch_ms() -> float:
    """Return wall-clock time in epoch milliseconds. Default clock for the rate limiter."""
    return time.time() * 1000


def from_epoch_ms(value: float) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)

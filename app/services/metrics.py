"""
Prometheus collectors for HTTP traffic, cache effectiveness and admission control.
Exposition is left to prometheus_client; `summary()` condenses the same collectors into JSON.
"""

import time
from typing import Any

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

from app.utils.time import utc_now

_STARTED_AT = time.monotonic()


def uptime_seconds() -> float:
    return time.monotonic() - _STARTED_AT


HTTP_LABELS = ["method", "route", "status_code"]
LATENCY_BUCKETS_MS = (10, 50, 100, 200, 300, 500, 1000, 2000, 5000)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_ms",
    "Duration of HTTP requests in milliseconds",
    HTTP_LABELS,
    buckets=LATENCY_BUCKETS_MS,
)
HTTP_REQUESTS = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    HTTP_LABELS,
)
HTTP_REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total number of HTTP requests answered with a 4xx or 5xx status",
    HTTP_LABELS,
)
UPTIME = Gauge(
    "process_uptime_seconds",
    "Process uptime in seconds",
)
UPTIME.set_function(uptime_seconds)

CACHE_HITS = Counter(
    "cache_hits_total",
    "Total number of cache hits",
    ["cache_type"],
)
CACHE_MISSES = Counter(
    "cache_misses_total",
    "Total number of cache misses",
    ["cache_type"],
)
CACHE_INVALIDATIONS = Counter(
    "cache_invalidated_keys_total",
    "Total number of cache keys removed by invalidation",
    ["cache_type"],
)
RATE_LIMIT_REJECTIONS = Counter(
    "rate_limit_violations_total",
    "Total number of requests rejected by the rate limiter",
    ["tenant_id"],
)
RATE_LIMIT_DEGRADED = Counter(
    "rate_limit_degraded_total",
    "Total number of rate limiter decisions made fail-open",
)


def record_request(method: str, route: str, status_code: int, duration_ms: float) -> None:
    labels = {"method": method, "route": route, "status_code": str(status_code)}
    HTTP_REQUEST_DURATION.labels(**labels).observe(duration_ms)
    HTTP_REQUESTS.labels(**labels).inc()
    if status_code >= 400:
        HTTP_REQUEST_ERRORS.labels(**labels).inc()


def record_cache_hit(cache_type: str) -> None:
    CACHE_HITS.labels(cache_type=cache_type).inc()


def record_cache_miss(cache_type: str) -> None:
    CACHE_MISSES.labels(cache_type=cache_type).inc()


def record_invalidation(cache_type: str, count: int) -> None:
    if count > 0:
        CACHE_INVALIDATIONS.labels(cache_type=cache_type).inc(count)


def record_rate_limit_violation(tenant_id: str) -> None:
    RATE_LIMIT_REJECTIONS.labels(tenant_id=tenant_id).inc()


def record_rate_limit_degraded() -> None:
    RATE_LIMIT_DEGRADED.inc()


def render_latest() -> tuple[bytes, str]:
    """Return (payload, content_type) for the /metrics endpoint."""
    return generate_latest(), CONTENT_TYPE_LATEST


def _samples(collector, suffix: str):
    for metric in collector.collect():
        for sample in metric.samples:
            if sample.name == metric.name + suffix:
                yield sample


def _total(collector) -> float:
    return sum(s.value for s in _samples(collector, "_total"))


def _endpoint(labels: dict[str, str]) -> str:
    return f"{labels['method']} {labels['route']}"


def _quantile(buckets: list[tuple[float, float]], count: float, q: float) -> float:
    """Upper bound of the first bucket whose cumulative count reaches q * count, capped at the largest finite bound."""
    if not count:
        return 0.0
    target = q * count
    for upper, cumulative in buckets:
        if cumulative >= target:
            return min(upper, float(LATENCY_BUCKETS_MS[-1]))
    return float(LATENCY_BUCKETS_MS[-1])


def summary() -> dict[str, Any]:
    """
    Per-endpoint request, error and latency figures plus cache and rate limit totals.
    Endpoints are keyed "METHOD /route" and aggregate across status codes. Latency percentiles are
    bucket upper bounds, so they are approximations in milliseconds.
    """
    endpoints: dict[str, dict[str, Any]] = {}

    def entry(labels: dict[str, str]) -> dict[str, Any]:
        return endpoints.setdefault(
            _endpoint(labels),
            {"requests": 0, "errors": 0, "_sum": 0.0, "_buckets": {}},
        )

    for sample in _samples(HTTP_REQUESTS, "_total"):
        entry(sample.labels)["requests"] += int(sample.value)
    for sample in _samples(HTTP_REQUEST_ERRORS, "_total"):
        entry(sample.labels)["errors"] += int(sample.value)
    for sample in _samples(HTTP_REQUEST_DURATION, "_sum"):
        entry(sample.labels)["_sum"] += sample.value
    for sample in _samples(HTTP_REQUEST_DURATION, "_bucket"):
        upper = float(sample.labels["le"])
        buckets = entry(sample.labels)["_buckets"]
        buckets[upper] = buckets.get(upper, 0.0) + sample.value

    for stats in endpoints.values():
        requests = stats["requests"]
        buckets = sorted(stats.pop("_buckets").items())
        total_ms = stats.pop("_sum")
        stats["error_rate"] = (stats["errors"] / requests * 100) if requests else 0.0
        stats["latency_ms"] = {
            "p50": _quantile(buckets, requests, 0.50),
            "p95": _quantile(buckets, requests, 0.95),
            "p99": _quantile(buckets, requests, 0.99),
            "avg": (total_ms / requests) if requests else 0.0,
        }

    hits = _total(CACHE_HITS)
    misses = _total(CACHE_MISSES)
    lookups = hits + misses
    return {
        "timestamp": utc_now().isoformat(),
        "uptime_seconds": uptime_seconds(),
        "endpoints": endpoints,
        "cache": {
            "hits": int(hits),
            "misses": int(misses),
            "hit_ratio": (hits / lookups * 100) if lookups else 0.0,
        },
        "rate_limit": {
            "violations": int(_total(RATE_LIMIT_REJECTIONS)),
            "degraded": int(_total(RATE_LIMIT_DEGRADED)),
        },
    }

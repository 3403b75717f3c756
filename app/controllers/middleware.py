"""HTTP middleware: per-request latency, count and error metrics labelled by route template."""

import time
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, Response

from app.services import metrics

UNMATCHED_ROUTE = "<unmatched>"


def _route_label(request: Request) -> str:
    # Route templates ("/documents/{doc_id}") keep label cardinality bounded; raw paths would not.
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


def add_request_metrics_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def record_request_metrics(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            metrics.record_request(request.method, _route_label(request), status_code, duration_ms)

"""FastAPI app entry: config, logging, health, error mapping, and graceful shutdown."""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config.logging import configure_logging, get_logger
from app.config.settings import Settings, get_settings
from app.controllers.dependencies import rate_limit_headers
from app.controllers.middleware import add_request_metrics_middleware
from app.controllers.routes.documents import router as documents_router
from app.controllers.routes.search import router as search_router
from app.services import metrics
from app.services.search.errors import (
    DependencyUnavailable,
    InvalidRequestError,
    NotFoundError,
    RateLimitExceeded,
)
from app.services.search.factory import build_orchestrator
from app.services.search.orchestrator import SearchOrchestrator

logger = get_logger(__name__)


async def _bootstrap(settings: Settings) -> None:
    """Create the OpenSearch index (and Mongo TTL indexes when that backend is used). Never fails startup."""
    from app.resources.opensearch.client import get_opensearch_client
    from app.resources.opensearch.index_manager import create_index_if_not_exists

    try:
        await create_index_if_not_exists(get_opensearch_client(), settings.opensearch_index)
    except Exception as e:
        logger.error("Failed to initialize OpenSearch index on startup", extra={"error": str(e)})

    if settings.cache_backend == "mongo":
        from app.resources.mongo.client import get_cache_database
        from app.resources.mongo.indexes import create_indexes

        try:
            await create_indexes(get_cache_database())
        except Exception as e:
            logger.error("Failed to create MongoDB indexes on startup", extra={"error": str(e)})


async def _shutdown(settings: Settings) -> None:
    from app.resources.opensearch.client import close_opensearch_client

    if settings.cache_backend == "redis":
        from app.resources.redis.client import close_redis_client

        await close_redis_client()
    elif settings.cache_backend == "mongo":
        from app.resources.mongo.client import close_mongo_client

        close_mongo_client()
    await close_opensearch_client()


def create_app(orchestrator: SearchOrchestrator | None = None) -> FastAPI:
    """
    Build the application. With an orchestrator passed in (tests), startup neither builds clients
    nor touches external systems.
    """
    owns_dependencies = orchestrator is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup: config, logging, orchestrator, index bootstrap. Shutdown: close shared clients."""
        settings = get_settings()
        if owns_dependencies:
            configure_logging()
            logger.info(
                "Application starting",
                extra={"app_name": settings.app_name, "environment": settings.environment},
            )
            app.state.orchestrator = build_orchestrator(settings)
            await _bootstrap(settings)
        yield
        if owns_dependencies:
            logger.info("Application shutting down")
            await _shutdown(settings)
            logger.info("Shutdown complete")

    app = FastAPI(
        title="Tenant Search Service",
        description="Multi-tenant full-text search with cache-aside reads and per-tenant rate limiting",
        version="1.0.0",
        lifespan=lifespan,
    )
    if orchestrator is not None:
        app.state.orchestrator = orchestrator
    add_request_metrics_middleware(app)
    app.include_router(search_router)
    app.include_router(documents_router)
    _register_health_routes(app)
    _register_exception_handlers(app)
    return app


def _health_status_code(body: dict[str, Any]) -> int:
    return 503 if body["status"] == "DOWN" else 200


def _register_health_routes(app: FastAPI) -> None:
    @app.get("/live")
    async def live() -> dict[str, Any]:
        """Liveness: service is up. Does not check dependencies."""
        return {"status": "ok"}

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """Dependency health. UP or DEGRADED -> 200 (cache loss only slows service); DOWN -> 503."""
        body = await request.app.state.orchestrator.health()
        return JSONResponse(content=body, status_code=_health_status_code(body))

    @app.get("/metrics")
    async def prometheus_metrics() -> Response:
        payload, content_type = metrics.render_latest()
        return Response(content=payload, media_type=content_type)

    @app.get("/metrics/json")
    async def metrics_json() -> dict[str, Any]:
        """Request, cache and rate limit figures condensed for humans and dashboards."""
        return metrics.summary()

    @app.get("/metrics/summary")
    async def metrics_summary() -> dict[str, Any]:
        return metrics.summary()


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_request: Request, exc: RequestValidationError):
        # Malformed params and bodies are client errors like any other invalid request
        return JSONResponse(content={"detail": jsonable_encoder(exc.errors())}, status_code=400)

    @app.exception_handler(InvalidRequestError)
    async def invalid_request_handler(_request: Request, exc: InvalidRequestError):
        return JSONResponse(content={"detail": str(exc)}, status_code=400)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(_request: Request, exc: NotFoundError):
        return JSONResponse(content={"detail": str(exc) or "Not found"}, status_code=404)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(_request: Request, exc: RateLimitExceeded):
        headers = rate_limit_headers(exc.decision)
        headers.setdefault("Retry-After", str(exc.retry_after_seconds))
        return JSONResponse(content={"detail": str(exc)}, status_code=429, headers=headers)

    @app.exception_handler(DependencyUnavailable)
    async def dependency_unavailable_handler(_request: Request, exc: DependencyUnavailable):
        return JSONResponse(
            content={"detail": "Search is temporarily unavailable. Please retry later."},
            status_code=503,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(_request: Request, exc: Exception):
        """Centralized error handling: connection failures and timeouts get clear, non-leaking messages."""
        exc_name = type(exc).__name__
        # Do not leak stack traces or internal details to the client
        if "Connection" in exc_name or "Timeout" in exc_name:
            logger.warning("Connection or timeout error", extra={"error": exc_name})
            return JSONResponse(
                content={"detail": "A dependency is temporarily unavailable. Please retry later."},
                status_code=503,
            )
        logger.exception("Unhandled error")
        return JSONResponse(
            content={"detail": "An internal error occurred."},
            status_code=500,
        )


app = create_app()

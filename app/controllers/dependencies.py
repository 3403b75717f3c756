"""Shared FastAPI dependencies: tenant extraction, the orchestrator, and rate limit headers."""

from fastapi import Depends, Header, HTTPException, Request, Response

from app.config.logging import get_logger
from app.services.search.errors import InvalidRequestError
from app.services.search.models import RateLimitDecision, validate_tenant_id
from app.services.search.orchestrator import SearchOrchestrator

logger = get_logger(__name__)

TENANT_HEADER = "X-Tenant-Id"


async def get_tenant_id(
    request: Request,
    x_tenant_id: str | None = Header(default=None, alias=TENANT_HEADER),
) -> str:
    """Tenant id from the trusted upstream header. Missing or malformed -> 400."""
    if not x_tenant_id:
        logger.warning("Missing X-Tenant-Id header", extra={"path": request.url.path})
        raise HTTPException(status_code=400, detail=f"Missing required header: {TENANT_HEADER}")
    try:
        return validate_tenant_id(x_tenant_id)
    except InvalidRequestError as e:
        logger.warning("Invalid tenant ID format", extra={"path": request.url.path})
        raise HTTPException(status_code=400, detail=str(e)) from e


def get_orchestrator(request: Request) -> SearchOrchestrator:
    """The orchestrator assembled at startup (or injected by create_app)."""
    return request.app.state.orchestrator


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    """Headers describing the window. Empty for fail-open decisions, which carry no real counter state."""
    if decision.degraded or decision.remaining is None:
        return {}
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
    }
    if decision.reset_at is not None:
        headers["X-RateLimit-Reset"] = decision.reset_at.isoformat()
    if not decision.allowed and decision.retry_after_seconds is not None:
        headers["Retry-After"] = str(decision.retry_after_seconds)
    return headers


def apply_rate_limit_headers(response: Response, decision: RateLimitDecision) -> None:
    for name, value in rate_limit_headers(decision).items():
        response.headers[name] = value


async def enforce_rate_limit(
    response: Response,
    tenant_id: str = Depends(get_tenant_id),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
) -> RateLimitDecision:
    """Admission control for routes that do not run it inside the orchestrator. Rejection raises RateLimitExceeded."""
    decision = await orchestrator.admit(tenant_id)
    apply_rate_limit_headers(response, decision)
    return decision

from __future__ import annotations

from fastapi import APIRouter

from psicohub.core.rate_limit import get_rate_limiter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Reports which rate limit backend is active ("redis" or "memory") without
    touching the shared store, so a Redis outage does not fail the health check.
    """

    return {"status": "ok", "rate_limit_backend": get_rate_limiter().backend}

from __future__ import annotations

from fastapi import APIRouter, Depends

from psicohub.core.rate_limit import RATE_LIMIT_CONFIGS, get_rate_limiter, rate_limited
from psicohub.schemas.rate_limit import RateLimitPolicy, RateLimitPoliciesResponse

router = APIRouter(tags=["Rate limits"])


@router.get(
    "/rate-limits",
    response_model=RateLimitPoliciesResponse,
    dependencies=[Depends(rate_limited("api"))],
)
async def list_rate_limits() -> RateLimitPoliciesResponse:
    """List the named rate limit presets and the active backend.

    Lets clients size their retry behavior without hardcoding quotas.
    """

    return RateLimitPoliciesResponse(
        backend=get_rate_limiter().backend,
        policies=[
            RateLimitPolicy(
                name=name,
                limit=config.limit,
                window_in_seconds=config.window_in_seconds,
            )
            for name, config in RATE_LIMIT_CONFIGS.items()
        ],
    )

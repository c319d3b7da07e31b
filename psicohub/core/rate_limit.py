"""Rate limiting for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: Redis is used when configured, otherwise the in-process
  store; both share the same fixed-window algorithm.
- Available first: a failing Redis degrades to local counting, it never
  fails the request.

Rate limiting strategy:
- Named presets (auth, register, api, ...) per call site.
- Keys are ``{bucket}:{client_ip}``; callers own the namespacing.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from types import MappingProxyType
from typing import Awaitable, Callable, Mapping

from fastapi import Request, status
from fastapi.responses import JSONResponse

from psicohub.adapters.rate_limit.base import RateLimitConfig, RateLimitResult
from psicohub.adapters.rate_limit.in_memory import InMemoryCounterStore
from psicohub.adapters.rate_limit.limiter import FixedWindowRateLimiter
from psicohub.adapters.rate_limit.redis_store import RedisCounterStore
from psicohub.core.config import settings
from psicohub.core.errors import RateLimitAppError

logger = logging.getLogger(__name__)

RATE_LIMIT_ERROR_CODE = "rate_limit_exceeded"
RATE_LIMIT_MESSAGE = "Muitas requisições. Tente novamente em alguns instantes."

UNKNOWN_CLIENT = "unknown"

# Checked in order; the first present header wins.
CLIENT_IP_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")

RATE_LIMIT_CONFIGS: Mapping[str, RateLimitConfig] = MappingProxyType(
    {
        # Login: brute force protection
        "auth": RateLimitConfig(limit=5, window_in_seconds=60),
        # Sign-up: spam protection
        "register": RateLimitConfig(limit=3, window_in_seconds=60),
        "api": RateLimitConfig(limit=100, window_in_seconds=60),
        "sensitive": RateLimitConfig(limit=10, window_in_seconds=60),
        "upload": RateLimitConfig(limit=10, window_in_seconds=60),
        "password_reset": RateLimitConfig(limit=3, window_in_seconds=3600),
        # Mass deletion protection
        "delete": RateLimitConfig(limit=20, window_in_seconds=60),
    }
)


_local_store: InMemoryCounterStore | None = None
_limiter: FixedWindowRateLimiter | None = None
_limiter_config: tuple | None = None


def is_redis_configured() -> bool:
    """Return whether the shared Redis store has both URL and token."""

    return settings.redis.configured


def _get_local_store() -> InMemoryCounterStore:
    global _local_store

    if _local_store is None:
        _local_store = InMemoryCounterStore(max_entries=settings.app.rate_limit_max_entries)
    return _local_store


def get_rate_limiter() -> FixedWindowRateLimiter:
    """Return the process-wide rate limiter instance.

    The instance is cached in-module to preserve counters across requests.
    If the Redis configuration changes (primarily in tests), the limiter is
    rebuilt around the same in-process store.

    Returns:
        FixedWindowRateLimiter: Limiter backed by Redis when configured.
    """

    global _limiter, _limiter_config

    redis_settings = settings.redis
    config = (
        redis_settings.configured,
        redis_settings.url,
        redis_settings.token,
        redis_settings.key_prefix,
        redis_settings.timeout_seconds,
        redis_settings.failure_cooldown_seconds,
    )

    if _limiter is None or _limiter_config != config:
        remote_store = None
        if redis_settings.configured:
            remote_store = RedisCounterStore(
                url=redis_settings.url,
                token=redis_settings.token,
                key_prefix=redis_settings.key_prefix,
                timeout_seconds=redis_settings.timeout_seconds,
            )
        _limiter = FixedWindowRateLimiter(
            _get_local_store(),
            remote_store,
            failure_cooldown_seconds=redis_settings.failure_cooldown_seconds,
        )
        _limiter_config = config
        logger.info("rate_limit.backend_selected", extra={"backend": _limiter.backend})

    return _limiter


async def close_rate_limiter() -> None:
    """Close the shared store connection, if one was opened.

    The limiter is rebuilt on next use; in-process counters are kept.
    """

    global _limiter, _limiter_config

    if _limiter is not None and isinstance(_limiter.remote_store, RedisCounterStore):
        await _limiter.remote_store.close()
        _limiter = None
        _limiter_config = None


async def check_rate_limit(key: str, config: RateLimitConfig) -> RateLimitResult:
    """Check ``key`` against ``config`` using Redis when configured.

    Falls back to the in-process store when Redis is missing or failing.
    """

    return await get_rate_limiter().check(key, config)


def check_rate_limit_sync(key: str, config: RateLimitConfig) -> RateLimitResult:
    """Check ``key`` against ``config`` using the in-process store only."""

    return get_rate_limiter().check_sync(key, config)


def get_client_ip(request: Request) -> str:
    """Extract a best-effort client IP from forwarding headers.

    Args:
        request: Incoming request.

    Returns:
        First address of ``X-Forwarded-For``, else ``X-Real-IP``, else
        ``CF-Connecting-IP``, else ``"unknown"``.

    Examples:
        X-Forwarded-For: "203.0.113.7, 10.0.0.1" -> "203.0.113.7"
    """

    for header in CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if not value:
            continue
        if header == "x-forwarded-for":
            value = value.split(",")[0]
        value = value.strip()
        if value:
            return value
    return UNKNOWN_CLIENT


def build_rate_limit_key(bucket: str, request: Request) -> str:
    return f"{bucket}:{get_client_ip(request)}"


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing client IPs."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def retry_after_seconds(result: RateLimitResult, *, now: float | None = None) -> int:
    """Seconds until the window of ``result`` ends, rounded up."""

    now_ms = (time.time() if now is None else now) * 1000
    return max(0, math.ceil((result.reset - now_ms) / 1000))


def rate_limit_headers(result: RateLimitResult, retry_after: int) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
        "Retry-After": str(retry_after),
    }


def rate_limit_exceeded_response(
    result: RateLimitResult,
    *,
    now: float | None = None,
) -> JSONResponse:
    """Build the standard 429 response for a rejected check.

    Args:
        result: Rejected rate limit result.
        now: Optional UNIX time in seconds (defaults to the current time).

    Returns:
        JSONResponse with ``error``, ``code`` and ``retryAfter`` plus the
        ``X-RateLimit-*`` and ``Retry-After`` headers.
    """

    retry_after = retry_after_seconds(result, now=now)
    headers = None
    if settings.app.rate_limit_include_headers:
        headers = rate_limit_headers(result, retry_after)

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "error": RATE_LIMIT_MESSAGE,
            "code": RATE_LIMIT_ERROR_CODE,
            "retryAfter": retry_after,
        },
        headers=headers,
    )


def rate_limited(
    preset: str,
    *,
    bucket: str | None = None,
) -> Callable[[Request], Awaitable[None]]:
    """Build a FastAPI dependency enforcing a named preset.

    Usage:
        @router.post("/login", dependencies=[Depends(rate_limited("auth"))])

    Args:
        preset: Key of RATE_LIMIT_CONFIGS.
        bucket: Key namespace; defaults to the preset name.

    Raises:
        KeyError: If the preset does not exist.
    """

    config = RATE_LIMIT_CONFIGS[preset]
    namespace = bucket or preset

    async def enforce_rate_limit(request: Request) -> None:
        """Consume one attempt; raise RateLimitAppError when over quota."""

        if not settings.app.rate_limit_enabled:
            return

        key = build_rate_limit_key(namespace, request)
        result = await check_rate_limit(key, config)
        log_extra = {
            "bucket": namespace,
            "key_hash": _hash_limiter_key(key),
            "limit": result.limit,
            "remaining": result.remaining,
            "window_s": config.window_in_seconds,
        }

        if result.success:
            logger.info("rate_limit.allowed", extra=log_extra)
            return

        logger.warning("rate_limit.exceeded", extra=log_extra)
        raise RateLimitAppError(
            code=RATE_LIMIT_ERROR_CODE,
            message=RATE_LIMIT_MESSAGE,
            result=result,
        )

    return enforce_rate_limit

"""Fixed-window rate limiter over interchangeable counter stores.

``check_sync`` always counts in the in-process store. ``check`` counts in the
shared store when one is configured and falls back to the in-process store
when it fails, so an unavailable Redis never fails the parent request.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from redis.exceptions import RedisError

from psicohub.adapters.rate_limit.base import (
    AsyncCounterStore,
    CounterStore,
    RateLimitConfig,
    RateLimitResult,
    Window,
    build_result,
    current_window,
)

logger = logging.getLogger(__name__)

BACKEND_REDIS = "redis"
BACKEND_MEMORY = "memory"


class FixedWindowRateLimiter:
    """Admit or reject attempts per key under a fixed-window quota.

    Bursts of up to ``2 * limit`` can be admitted across a window boundary;
    this is the accepted cost of O(1) state per key.
    """

    def __init__(
        self,
        local_store: CounterStore,
        remote_store: AsyncCounterStore | None = None,
        *,
        clock: Callable[[], float] = time.time,
        failure_cooldown_seconds: float = 5.0,
    ) -> None:
        """Initialize the limiter.

        Args:
            local_store: In-process store used by ``check_sync`` and as fallback.
            remote_store: Optional shared store used by ``check``.
            clock: Time source function returning UNIX time in seconds.
            failure_cooldown_seconds: After a shared store failure, count
                locally for this long before trying the shared store again.

        Raises:
            ValueError: If failure_cooldown_seconds is negative.
        """
        if failure_cooldown_seconds < 0:
            raise ValueError("failure_cooldown_seconds must be >= 0")

        self._local_store = local_store
        self._remote_store = remote_store
        self._clock = clock
        self._failure_cooldown_seconds = failure_cooldown_seconds
        self._remote_retry_at = 0.0

    @property
    def backend(self) -> str:
        return BACKEND_REDIS if self._remote_store is not None else BACKEND_MEMORY

    @property
    def failure_cooldown_seconds(self) -> float:
        return self._failure_cooldown_seconds

    @property
    def local_store(self) -> CounterStore:
        return self._local_store

    @property
    def remote_store(self) -> AsyncCounterStore | None:
        return self._remote_store

    def _window(self, config: RateLimitConfig, now: float | None = None) -> Window:
        now_ms = int((self._clock() if now is None else now) * 1000)
        return current_window(now_ms, config)

    def check_sync(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one attempt for ``key`` in the in-process store.

        Args:
            key: Caller-namespaced rate limit key (e.g., ``auth:203.0.113.7``).
            config: Quota to enforce.

        Returns:
            RateLimitResult with the decision and remaining quota.

        Raises:
            ValueError: If key is empty.
        """
        window = self._window(config)
        count = self._local_store.increment(key, window)
        return build_result(count, config, window)

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one attempt for ``key``, preferring the shared store.

        Store failures are logged and the attempt is counted locally instead;
        they are never raised to the caller. After a failure the shared store
        is skipped until the cooldown elapses.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        window = self._window(config, now)
        if self._remote_store is None or now < self._remote_retry_at:
            count = self._local_store.increment(key, window)
            return build_result(count, config, window)

        try:
            count = await self._remote_store.increment(key, window)
        except (RedisError, OSError) as exc:
            self._mark_remote_failed(now)
            logger.warning(
                "rate_limit.backend_unavailable",
                extra={
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "fallback": BACKEND_MEMORY,
                    "cooldown_s": self._failure_cooldown_seconds,
                },
            )
        except Exception as exc:
            self._mark_remote_failed(now)
            logger.warning(
                "rate_limit.backend_unexpected_error",
                exc_info=True,
                extra={
                    "error_type": type(exc).__name__,
                    "fallback": BACKEND_MEMORY,
                    "cooldown_s": self._failure_cooldown_seconds,
                },
            )
        else:
            return build_result(count, config, window)

        count = self._local_store.increment(key, window)
        return build_result(count, config, window)

    def _mark_remote_failed(self, now: float) -> None:
        self._remote_retry_at = now + self._failure_cooldown_seconds

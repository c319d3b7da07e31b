"""Redis-backed fixed-window counter store.

Counters live at ``{prefix}:{key}:{window_id}`` and expire through Redis'
native TTL at the end of their window, so there is nothing to clean up
locally. Works with any Redis-protocol server, including Upstash (the REST
token is the password).
"""

from __future__ import annotations

import logging
from typing import Any

import redis.asyncio as aioredis

from psicohub.adapters.rate_limit.base import AsyncCounterStore, Window

logger = logging.getLogger(__name__)


class RedisCounterStore(AsyncCounterStore):
    """Shared counter store using ``INCR`` + ``PEXPIREAT`` in one transaction."""

    def __init__(
        self,
        *,
        redis_client: Any | None = None,
        url: str | None = None,
        token: str | None = None,
        key_prefix: str = "psicohub:ratelimit",
        timeout_seconds: float = 1.0,
    ) -> None:
        """Initialize the Redis store.

        Args:
            redis_client: Optional ``redis.asyncio`` client (tests, shared pools).
            url: Redis connection URL, used when no client is given.
            token: Credential sent as the Redis password.
            key_prefix: Namespace for counter keys.
            timeout_seconds: Socket and connect timeout per round trip.

        Raises:
            ValueError: If neither a client nor a URL is provided.
        """
        if redis_client is None and not url:
            raise ValueError("either redis_client or url is required")

        self._redis = redis_client
        self._url = url
        self._token = token
        self._key_prefix = key_prefix
        self._timeout_seconds = timeout_seconds

    def _get_redis(self) -> Any:
        """Get or lazily create the Redis client."""
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._url,
                password=self._token,
                socket_timeout=self._timeout_seconds,
                socket_connect_timeout=self._timeout_seconds,
                decode_responses=True,
            )
        return self._redis

    def build_key(self, key: str, window: Window) -> str:
        return f"{self._key_prefix}:{key}:{window.window_id}"

    async def increment(self, key: str, window: Window) -> int:
        if not key:
            raise ValueError("key must be a non-empty string")

        redis_key = self.build_key(key, window)
        pipe = self._get_redis().pipeline(transaction=True)
        pipe.incr(redis_key)
        pipe.pexpireat(redis_key, window.reset)
        count, _ = await pipe.execute()
        return int(count)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()

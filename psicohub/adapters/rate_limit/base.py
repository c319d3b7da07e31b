"""Rate limiter types and the fixed-window arithmetic shared by all stores.

The limiter depends on these abstractions (not the concrete stores) so the
same windowing logic runs against the in-process map and against Redis.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitConfig:
    """Quota policy for a call site.

    Attributes:
        limit: Max admitted attempts per window.
        window_in_seconds: Size of the fixed window in seconds.

    Raises:
        ValueError: If limit or window_in_seconds are not positive.
    """

    limit: int
    window_in_seconds: int

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be >= 1")
        if self.window_in_seconds < 1:
            raise ValueError("window_in_seconds must be >= 1")

    @property
    def window_ms(self) -> int:
        return self.window_in_seconds * 1000


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        success: Whether the attempt is admitted.
        limit: Max attempts per window.
        remaining: Attempts left in the current window (0 when rejected).
        reset: UNIX epoch milliseconds when the current window ends.
    """

    success: bool
    limit: int
    remaining: int
    reset: int


@dataclass(frozen=True)
class Window:
    """A discrete fixed window as seen at check time.

    Attributes:
        window_id: ``floor(now / window_ms)``.
        reset: UNIX epoch milliseconds when the window ends.
        now: UNIX epoch milliseconds of the check itself.
    """

    window_id: int
    reset: int
    now: int


def current_window(now_ms: int, config: RateLimitConfig) -> Window:
    """Locate the fixed window containing ``now_ms``.

    Args:
        now_ms: UNIX time in milliseconds.
        config: Policy providing the window size.

    Returns:
        Window with ``floor(now_ms / window_ms)`` as id.
    """

    window_id = now_ms // config.window_ms
    return Window(
        window_id=window_id,
        reset=(window_id + 1) * config.window_ms,
        now=now_ms,
    )


def build_result(count: int, config: RateLimitConfig, window: Window) -> RateLimitResult:
    """Turn the post-increment counter into a decision.

    Args:
        count: Attempts counted in this window, including the current one.
        config: Policy being enforced.
        window: Window the count belongs to.

    Returns:
        RateLimitResult; rejected once ``count`` exceeds the limit.
    """

    if count > config.limit:
        return RateLimitResult(success=False, limit=config.limit, remaining=0, reset=window.reset)
    return RateLimitResult(
        success=True,
        limit=config.limit,
        remaining=max(0, config.limit - count),
        reset=window.reset,
    )


class CounterStore(ABC):
    """Synchronous counter store (in-process)."""

    @abstractmethod
    def increment(self, key: str, window: Window) -> int:
        """Atomically add one attempt to ``key`` in ``window``.

        Args:
            key: Rate limit key.
            window: Current window; older records for the key expire.

        Returns:
            The counter value after the increment.
        """
        raise NotImplementedError


class AsyncCounterStore(ABC):
    """Asynchronous counter store shared across processes."""

    @abstractmethod
    async def increment(self, key: str, window: Window) -> int:
        """Atomically add one attempt to ``key`` in ``window``.

        The counter must expire on its own once ``window.reset`` passes.
        """
        raise NotImplementedError

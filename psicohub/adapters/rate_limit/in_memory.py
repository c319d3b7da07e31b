"""In-process fixed-window counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Bounded: expired records are purged, then least recently used keys are
  evicted once ``max_entries`` is exceeded.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass

from psicohub.adapters.rate_limit.base import CounterStore, Window

logger = logging.getLogger(__name__)


@dataclass
class _WindowState:
    window_id: int
    count: int
    expires_at: int


class InMemoryCounterStore(CounterStore):
    """Counter map keyed by rate limit key.

    There is no native TTL here, so expiry is explicit: a record belonging to
    a different window than the one being counted is replaced by a fresh one.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(self, *, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        """Initialize the in-memory store.

        Args:
            max_entries: Maximum number of keys held at once.

        Raises:
            ValueError: If max_entries is invalid.
        """
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._max_entries = max_entries
        self._lock = threading.RLock()
        self._state_by_key: OrderedDict[str, _WindowState] = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)

    def _get_or_reset_state(self, key: str, window: Window) -> _WindowState:
        """Get the current state for key or reset it when the window changed."""
        state = self._state_by_key.get(key)
        if state is None or state.window_id != window.window_id:
            state = _WindowState(window_id=window.window_id, count=0, expires_at=window.reset)
            self._state_by_key[key] = state
        self._state_by_key.move_to_end(key)
        return state

    def increment(self, key: str, window: Window) -> int:
        if not key:
            raise ValueError("key must be a non-empty string")

        with self._lock:
            state = self._get_or_reset_state(key, window)
            state.count += 1
            count = state.count
            self._evict_if_over_capacity_locked(now_ms=window.now)
            return count

    def purge_expired(self, now_ms: int) -> int:
        """Drop records whose window ended at or before ``now_ms``.

        Returns:
            Number of records removed.
        """

        with self._lock:
            return self._purge_expired_locked(now_ms)

    def _purge_expired_locked(self, now_ms: int) -> int:
        expired_keys = [k for k, s in self._state_by_key.items() if s.expires_at <= now_ms]
        for key in expired_keys:
            del self._state_by_key[key]
        return len(expired_keys)

    def _evict_if_over_capacity_locked(self, *, now_ms: int) -> None:
        if len(self._state_by_key) <= self._max_entries:
            return

        purged = self._purge_expired_locked(now_ms)
        evicted = 0
        while len(self._state_by_key) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._state_by_key.popitem(last=False)
            evicted += 1

        logger.debug(
            "rate_limit.store_evicted",
            extra={
                "purged": purged,
                "evicted": evicted,
                "size": len(self._state_by_key),
            },
        )

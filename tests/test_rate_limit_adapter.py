"""Unit tests for the fixed-window limiter and the in-memory counter store."""

import threading
from unittest.mock import Mock

import pytest

from psicohub.adapters.rate_limit.base import (
    RateLimitConfig,
    build_result,
    current_window,
)
from psicohub.adapters.rate_limit.in_memory import InMemoryCounterStore
from psicohub.adapters.rate_limit.limiter import FixedWindowRateLimiter


def _limiter(now: float = 1000.0) -> tuple[FixedWindowRateLimiter, Mock]:
    clock = Mock(return_value=now)
    return FixedWindowRateLimiter(InMemoryCounterStore(), clock=clock), clock


def test_current_window_uses_floor_of_window_size() -> None:
    config = RateLimitConfig(limit=5, window_in_seconds=60)

    window = current_window(1_000_000, config)

    assert window.window_id == 16
    assert window.reset == 1_020_000
    assert window.now == 1_000_000


def test_build_result_rejects_above_limit() -> None:
    config = RateLimitConfig(limit=2, window_in_seconds=60)
    window = current_window(0, config)

    assert build_result(2, config, window).success is True
    assert build_result(2, config, window).remaining == 0

    rejected = build_result(3, config, window)
    assert rejected.success is False
    assert rejected.remaining == 0
    assert rejected.limit == 2
    assert rejected.reset == 60_000


def test_first_calls_report_decreasing_remaining() -> None:
    limiter, _ = _limiter()
    config = RateLimitConfig(limit=5, window_in_seconds=60)

    first = limiter.check_sync("k1", config)
    assert first.success is True
    assert first.remaining == 4

    second = limiter.check_sync("k1", config)
    assert second.success is True
    assert second.remaining == 3


def test_blocks_call_after_limit() -> None:
    limiter, _ = _limiter()
    config = RateLimitConfig(limit=2, window_in_seconds=60)

    assert limiter.check_sync("k2", config).success is True
    assert limiter.check_sync("k2", config).success is True

    blocked = limiter.check_sync("k2", config)
    assert blocked.success is False
    assert blocked.remaining == 0


@pytest.mark.parametrize("limit", [1, 3, 10])
def test_remaining_decreases_by_one_and_never_goes_negative(limit: int) -> None:
    limiter, _ = _limiter()
    config = RateLimitConfig(limit=limit, window_in_seconds=60)

    remaining = [limiter.check_sync("k", config).remaining for _ in range(limit + 3)]

    assert remaining[:limit] == list(range(limit - 1, -1, -1))
    assert remaining[limit:] == [0, 0, 0]


def test_isolated_by_key() -> None:
    limiter, _ = _limiter()
    config = RateLimitConfig(limit=1, window_in_seconds=60)

    assert limiter.check_sync("auth:1.1.1.1", config).success is True
    assert limiter.check_sync("auth:1.1.1.1", config).success is False

    other = limiter.check_sync("auth:2.2.2.2", config)
    assert other.success is True
    assert other.remaining == 0


def test_resets_on_new_window() -> None:
    limiter, clock = _limiter()
    config = RateLimitConfig(limit=3, window_in_seconds=60)

    for _ in range(4):
        limiter.check_sync("k", config)
    assert limiter.check_sync("k", config).success is False

    clock.return_value = 1020.0
    fresh = limiter.check_sync("k", config)
    assert fresh.success is True
    assert fresh.remaining == 2
    assert fresh.reset == 1_080_000


def test_window_boundary_allows_burst() -> None:
    limiter, clock = _limiter(now=1019.9)
    config = RateLimitConfig(limit=2, window_in_seconds=60)

    assert limiter.check_sync("k", config).success is True
    assert limiter.check_sync("k", config).success is True

    clock.return_value = 1020.0
    assert limiter.check_sync("k", config).success is True
    assert limiter.check_sync("k", config).success is True


def test_reset_is_window_end_in_milliseconds() -> None:
    limiter, _ = _limiter(now=1000.5)
    config = RateLimitConfig(limit=5, window_in_seconds=60)

    assert limiter.check_sync("k", config).reset == 1_020_000


def test_backend_is_memory_without_remote_store() -> None:
    limiter, _ = _limiter()

    assert limiter.backend == "memory"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0, "window_in_seconds": 60},
        {"limit": 1, "window_in_seconds": 0},
        {"limit": -1, "window_in_seconds": -1},
    ],
)
def test_invalid_config(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        RateLimitConfig(**kwargs)


def test_empty_key_rejected() -> None:
    limiter, _ = _limiter()

    with pytest.raises(ValueError):
        limiter.check_sync("", RateLimitConfig(limit=1, window_in_seconds=60))


def test_store_rejects_invalid_capacity() -> None:
    with pytest.raises(ValueError):
        InMemoryCounterStore(max_entries=0)


def test_store_evicts_least_recently_used_keys() -> None:
    store = InMemoryCounterStore(max_entries=2)
    config = RateLimitConfig(limit=5, window_in_seconds=60)
    window = current_window(1_000_000, config)

    store.increment("a", window)
    store.increment("b", window)
    store.increment("a", window)
    store.increment("c", window)

    assert len(store) == 2
    # "b" was evicted, so it starts over
    assert store.increment("b", window) == 1
    assert store.increment("c", window) == 2


def test_store_purges_expired_before_evicting() -> None:
    store = InMemoryCounterStore(max_entries=2)
    short = RateLimitConfig(limit=5, window_in_seconds=1)
    long = RateLimitConfig(limit=5, window_in_seconds=3600)

    store.increment("long", current_window(1_000_000, long))
    store.increment("short", current_window(1_000_000, short))

    later = current_window(1_005_000, long)
    store.increment("long", later)
    store.increment("new", later)

    assert len(store) == 2
    assert store.increment("long", later) == 3


def test_purge_expired_returns_removed_count() -> None:
    store = InMemoryCounterStore()
    config = RateLimitConfig(limit=5, window_in_seconds=60)

    store.increment("a", current_window(1_000_000, config))
    store.increment("b", current_window(1_030_000, config))

    assert store.purge_expired(1_025_000) == 1
    assert len(store) == 1


def test_thread_safety_under_concurrent_checks() -> None:
    limiter = FixedWindowRateLimiter(InMemoryCounterStore(), clock=lambda: 1000.0)
    config = RateLimitConfig(limit=50, window_in_seconds=60)
    decisions: list[bool] = []

    def _worker() -> None:
        for _ in range(20):
            decisions.append(limiter.check_sync("k", config).success)

    threads = [threading.Thread(target=_worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(decisions) == 320
    assert decisions.count(True) == 50
    assert decisions.count(False) == 270

"""Unit tests for the fixed-window rate limiter."""

import pytest

from ratelimit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(max_requests=3, window_seconds=60, clock=clock)


def test_allows_up_to_limit_then_rejects(limiter: FixedWindowRateLimiter) -> None:
    assert [limiter.hit("10.0.0.1") for _ in range(5)] == [True, True, True, False, False]


def test_clients_are_counted_separately(limiter: FixedWindowRateLimiter) -> None:
    for _ in range(3):
        limiter.hit("10.0.0.1")

    assert limiter.hit("10.0.0.1") is False
    assert limiter.hit("10.0.0.2") is True


def test_window_resets(limiter: FixedWindowRateLimiter, clock: FakeClock) -> None:
    for _ in range(3):
        limiter.hit("10.0.0.1")
    clock.now += 59
    assert limiter.hit("10.0.0.1") is False

    clock.now += 1
    assert limiter.hit("10.0.0.1") is True


def test_rejections_do_not_extend_window(limiter: FixedWindowRateLimiter, clock: FakeClock) -> None:
    for _ in range(10):
        limiter.hit("10.0.0.1")
    clock.now += 60

    assert limiter.hit("10.0.0.1") is True


def test_retry_after(limiter: FixedWindowRateLimiter, clock: FakeClock) -> None:
    for _ in range(4):
        limiter.hit("10.0.0.1")
    clock.now += 10

    assert limiter.retry_after("10.0.0.1") == 51


def test_expired_windows_are_pruned(limiter: FixedWindowRateLimiter, clock: FakeClock) -> None:
    limiter.hit("10.0.0.1")
    limiter.hit("10.0.0.2")
    clock.now += 61
    limiter.hit("10.0.0.3")
    limiter.hit("10.0.0.1")

    assert set(limiter._windows) == {"10.0.0.1", "10.0.0.3"}

"""Tests for the submission rate limiter"""

import pytest

from formwright.config import RateLimitConfig
from formwright.ratelimit import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(max_requests=3, window_seconds=60, clock=clock)


def test_allows_up_to_limit(limiter):
    assert [limiter.allow("1.2.3.4") for _ in range(4)] == [True, True, True, False]
    assert limiter.remaining("1.2.3.4") == 0


def test_keys_are_independent(limiter):
    for _ in range(3):
        limiter.allow("a")
    assert limiter.allow("b") is True
    assert limiter.remaining("b") == 2


def test_window_resets(limiter, clock):
    for _ in range(3):
        limiter.allow("a")
    clock.advance(59)
    assert limiter.allow("a") is False

    clock.advance(1)
    assert limiter.remaining("a") == 3
    assert limiter.allow("a") is True
    assert limiter.remaining("a") == 2


def test_window_is_fixed_not_sliding(limiter, clock):
    limiter.allow("a")
    clock.advance(50)
    limiter.allow("a")
    limiter.allow("a")
    clock.advance(10)
    # The window opened by the first request has elapsed.
    assert limiter.allow("a") is True


def test_reset(limiter):
    for _ in range(3):
        limiter.allow("a")
    limiter.reset()
    assert limiter.allow("a") is True


def test_from_config():
    limiter = RateLimiter.from_config(RateLimitConfig(max_requests=5, window_seconds=30))
    assert limiter.max_requests == 5
    assert limiter.window_seconds == 30

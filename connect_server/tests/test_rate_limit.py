"""Tests for the sliding-window limiter."""
from connect_server.rate_limit import SlidingWindowLimiter


def test_allows_up_to_limit_then_blocks(clock):
    limiter = SlidingWindowLimiter(window=60, clock=clock)
    assert limiter.hit("ip", 2) == (True, None)
    assert limiter.hit("ip", 2) == (True, None)
    allowed, retry_after = limiter.hit("ip", 2)
    assert allowed is False
    assert retry_after == 60


def test_window_slides(clock):
    limiter = SlidingWindowLimiter(window=60, clock=clock)
    limiter.hit("ip", 1)
    clock.advance(30)
    allowed, retry_after = limiter.hit("ip", 1)
    assert not allowed
    assert retry_after == 30
    clock.advance(31)
    assert limiter.hit("ip", 1) == (True, None)


def test_keys_are_independent(clock):
    limiter = SlidingWindowLimiter(window=60, clock=clock)
    limiter.hit("confirm:1.2.3.4", 1)
    assert limiter.hit("token:1.2.3.4", 1)[0]
    assert not limiter.hit("confirm:1.2.3.4", 1)[0]


def test_zero_limit_disables(clock):
    limiter = SlidingWindowLimiter(window=60, clock=clock)
    for _ in range(5):
        assert limiter.hit("ip", 0) == (True, None)


def test_clear(clock):
    limiter = SlidingWindowLimiter(window=60, clock=clock)
    limiter.hit("ip", 1)
    limiter.clear()
    assert limiter.hit("ip", 1)[0]

import pytest

from goaltracker.errors import RateLimitError
from goaltracker.security import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_allows_up_to_limit_within_window():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=3, window=60, clock=clock)

    assert [limiter.can_make_request("u:ai") for _ in range(4)] == [True, True, True, False]


def test_window_slides():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window=60, clock=clock)
    limiter.can_make_request("u:ai")
    clock.now = 30
    limiter.can_make_request("u:ai")

    clock.now = 59
    assert limiter.can_make_request("u:ai") is False
    clock.now = 60
    assert limiter.can_make_request("u:ai") is True


def test_keys_are_independent():
    limiter = RateLimiter(max_requests=1, window=60, clock=FakeClock())

    assert limiter.can_make_request("a:ai")
    assert limiter.can_make_request("b:ai")
    assert not limiter.can_make_request("a:ai")


def test_check_raises():
    limiter = RateLimiter(max_requests=1, window=60, clock=FakeClock())
    limiter.check("u:ai")

    with pytest.raises(RateLimitError):
        limiter.check("u:ai")


def test_idle_keys_are_forgotten():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=5, window=60, clock=clock)
    limiter.can_make_request("a:ai")
    limiter.can_make_request("b:ai")

    clock.now = 61
    limiter.can_make_request("c:ai")

    assert set(limiter._requests) == {"c:ai"}

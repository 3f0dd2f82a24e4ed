# tests/unit/pipeline/test_unit_rate_limiter.py - v1
"""Tests for pipeline/rate_limiter.py."""

from __future__ import annotations

import pytest

from mediaseo.pipeline.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRateLimiter:
    def test_invalid_rpm(self):
        with pytest.raises(ValueError):
            RateLimiter(0)

    def test_under_limit_no_delay(self):
        clock = FakeClock()
        limiter = RateLimiter(3, clock=clock)
        limiter.record_request("openai")
        assert limiter.get_remaining("openai") == 2
        assert limiter.get_delay("openai") == 0.0

    def test_full_window_delays_until_oldest_expires(self):
        clock = FakeClock()
        limiter = RateLimiter(2, clock=clock)
        limiter.record_request("openai")
        clock.now += 10
        limiter.record_request("openai")
        assert limiter.get_remaining("openai") == 0
        assert limiter.get_delay("openai") == pytest.approx(50.0)

        clock.now += 50
        assert limiter.get_delay("openai") == 0.0
        assert limiter.get_remaining("openai") == 1

    def test_providers_are_independent(self):
        limiter = RateLimiter(1, clock=FakeClock())
        limiter.record_request("openai")
        assert limiter.get_delay("openai") > 0
        assert limiter.get_delay("anthropic") == 0.0
        assert limiter.get_delay(None) == 0.0

    def test_reset(self):
        limiter = RateLimiter(1, clock=FakeClock())
        limiter.record_request("openai")
        limiter.record_request("google")
        limiter.reset("openai")
        assert limiter.get_remaining("openai") == 1
        assert limiter.get_remaining("google") == 0
        limiter.reset()
        assert limiter.get_remaining("google") == 1

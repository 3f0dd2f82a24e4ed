# src/pipeline/rate_limiter.py - v1
"""Per-provider requests-per-minute bookkeeping.

The limiter never sleeps. It only computes how long a caller should wait
before the next request; the batch processor honors that delay.
"""

from __future__ import annotations

import time
from collections import defaultdict, deque
from typing import Callable


class RateLimiter:
    """Sliding-window request counter per provider.

    Args:
        rpm: Allowed requests per window for each provider.
        window_s: Window length in seconds.
        clock: Monotonic clock (injectable for tests).
    """

    def __init__(
        self,
        rpm: int,
        window_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rpm < 1:
            raise ValueError("rpm must be >= 1")
        self._rpm = rpm
        self._window_s = window_s
        self._clock = clock
        self._requests: dict[str, deque[float]] = defaultdict(deque)

    @property
    def rpm(self) -> int:
        return self._rpm

    def _prune(self, provider: str, now: float) -> deque[float]:
        stamps = self._requests[provider]
        while stamps and stamps[0] <= now - self._window_s:
            stamps.popleft()
        return stamps

    def record_request(self, provider: str) -> None:
        now = self._clock()
        self._prune(provider, now).append(now)

    def get_remaining(self, provider: str) -> int:
        return max(self._rpm - len(self._prune(provider, self._clock())), 0)

    def get_delay(self, provider: str | None) -> float:
        """Seconds to wait before the next request to ``provider`` (0 when allowed now)."""
        if not provider:
            return 0.0
        now = self._clock()
        stamps = self._prune(provider, now)
        if len(stamps) < self._rpm:
            return 0.0
        return max(stamps[0] + self._window_s - now, 0.0)

    def reset(self, provider: str | None = None) -> None:
        if provider is None:
            self._requests.clear()
        else:
            self._requests.pop(provider, None)

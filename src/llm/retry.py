# src/llm/retry.py - v2
"""Retry policy with exponential backoff for provider calls and batch items."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class RetryExhausted(Exception):
    """All retries exhausted for a call."""

    def __init__(self, label: str, error_type: str, attempts: int, last_error: Exception):
        self.label = label
        self.error_type = error_type
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"'{label}' failed after {attempts} attempt(s) ({error_type}): {last_error}"
        )


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration for a specific error type."""

    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = True


# Only transient failures are retried; auth and parse errors go straight to fallback.
DEFAULT_RETRY_CONFIGS: dict[str, RetryConfig] = {
    "rate_limit": RetryConfig(max_retries=2, base_delay_s=2.0),
    "timeout": RetryConfig(max_retries=1, base_delay_s=1.0, backoff_factor=1.0),
    "server_error": RetryConfig(max_retries=2, base_delay_s=3.0),
}


def classify_error(error: Exception) -> str:
    """Classify an exception into a retry error type."""
    msg = str(error).lower()
    name = type(error).__name__.lower()

    if "429" in msg or "rate" in msg or "ratelimit" in name:
        return "rate_limit"
    if "timeout" in name or "timeout" in msg or "timed out" in msg:
        return "timeout"
    if "401" in msg or "403" in msg or "auth" in name or "api key" in msg:
        return "auth"
    if any(c in msg for c in ("500", "502", "503", "504", "overloaded", "server")):
        return "server_error"
    if "json" in msg or "parse" in msg or "decode" in msg:
        return "parse_error"
    return "unknown"


def compute_backoff_delay(retry_count: int, base_s: float, max_s: float) -> float:
    """Deterministic delay base * 2^(n-1), capped at max_s (n is 1-based)."""
    if retry_count < 1:
        return 0.0
    return min(base_s * (2 ** (retry_count - 1)), max_s)


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay for a given attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    label: str = "unknown",
    retry_configs: dict[str, RetryConfig] | None = None,
    **kwargs: Any,
) -> Any:
    """Execute an async function with retry logic.

    Raises:
        RetryExhausted: If the error is not retryable or retries are exhausted.
    """
    configs = DEFAULT_RETRY_CONFIGS if retry_configs is None else retry_configs
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            error_type = classify_error(e)
            attempts += 1
            config = configs.get(error_type)

            if config is None or attempts > config.max_retries:
                raise RetryExhausted(label, error_type, attempts, e) from e

            delay = _compute_delay(config, attempts - 1)
            logger.warning(
                "'%s' %s (attempt %d/%d), retrying in %.1fs",
                label, error_type, attempts, config.max_retries, delay,
            )
            await asyncio.sleep(delay)

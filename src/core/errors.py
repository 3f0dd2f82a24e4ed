# src/core/errors.py - v1
"""Error taxonomy for the analysis pipeline.

InputError and ResponseValidationError are fatal for one run.
ProviderError is fallback-eligible inside ProviderRegistry.
SyncError is reported and skipped; stale pricing stays in effect.
"""

from __future__ import annotations


class MediaSeoError(Exception):
    """Base class for all mediaseo errors."""


class InputError(MediaSeoError):
    """Image is missing, not an image, or in an unsupported format."""


class ProviderError(MediaSeoError):
    """A single provider call failed (auth, timeout, malformed response, rate limit)."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(message)


class AllProvidersFailedError(MediaSeoError):
    """Every configured provider failed, or none was configured."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        if errors:
            detail = "; ".join(f"{name}: {msg}" for name, msg in errors.items())
            message = f"All providers failed ({detail})"
        else:
            message = "No provider available."
        super().__init__(message)


class ResponseValidationError(MediaSeoError):
    """Model output is missing a required field or has a non-numeric score."""


class PersistenceError(MediaSeoError):
    """Job ledger or metadata store write failed."""


class SyncError(MediaSeoError):
    """Remote pricing source unreachable or unparseable after all attempts."""

    def __init__(self, source: str, message: str, attempts: int = 1) -> None:
        self.source = source
        self.attempts = attempts
        super().__init__(f"{source}: {message} (after {attempts} attempt(s))")

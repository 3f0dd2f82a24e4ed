# src/logging/context.py - v3
"""Contextual logging support: attach the analysis run, image and step to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set once per analysis run, then per step.
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_image_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "image_id", default=None
)
_language: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "language", default=None
)
_provider: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "provider", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)
# Known only once the run has been scored and recorded.
_decision: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "decision", default=None
)
_job_id: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "job_id", default=None
)


@dataclass
class LogContext:
    """Snapshot of current logging context."""

    run_id: str | None = None
    image_id: str | None = None
    language: str | None = None
    provider: str | None = None
    step: str | None = None
    decision: str | None = None
    job_id: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        image_id=_image_id.get(),
        language=_language.get(),
        provider=_provider.get(),
        step=_step.get(),
        decision=_decision.get(),
        job_id=_job_id.get(),
    )


def set_image_context(image_id: str, language: str, run_id: str | None = None) -> None:
    """Set run-level context (called once per image analysis or approval)."""
    _image_id.set(image_id)
    _language.set(language)
    _run_id.set(run_id)


def set_step_context(step: str | None, provider: str | None = None) -> None:
    """Set step-level context (called per pipeline step)."""
    _step.set(step)
    if provider is not None:
        _provider.set(provider)


def set_outcome_context(decision: str | None = None, job_id: int | None = None) -> None:
    """Record the apply decision and ledger job once they are known."""
    if decision is not None:
        _decision.set(decision)
    if job_id is not None:
        _job_id.set(job_id)


def clear_context() -> None:
    """Reset all context variables."""
    for var in (_run_id, _image_id, _language, _provider, _step, _decision, _job_id):
        var.set(None)

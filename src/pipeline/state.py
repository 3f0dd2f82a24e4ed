# src/pipeline/state.py - v2
"""Mutable state of one single-image analysis run.

Each step reads what earlier steps produced and either fills in its own
fields or appends to ``errors``. A non-empty error list halts the run.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from mediaseo.core.models import (
    AnalysisOptions,
    AnalysisResult,
    ApplyDecision,
    ImageContext,
    Job,
    ValidationOutcome,
)


class AnalysisRun(BaseModel):
    """State accumulated across the steps of one analysis."""

    # === IDENTITY ===
    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    image_id: str
    language: str
    options: AnalysisOptions = Field(default_factory=AnalysisOptions)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # === CONTEXT ===
    context: ImageContext | None = None
    completeness: float = 0.0

    # === PROVIDER ===
    result: AnalysisResult | None = None
    provider_errors: dict[str, str] = Field(default_factory=dict)

    # === SCORING ===
    ai_score: float | None = None
    validation: ValidationOutcome | None = None
    final_score: float | None = None
    decision: ApplyDecision | None = None

    # === PERSISTENCE ===
    job: Job | None = None

    # === DIAGNOSTICS ===
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    timings_ms: dict[str, int] = Field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    def fail(self, message: str) -> None:
        self.errors.append(message)

    def record_timing(self, step: str, elapsed_s: float) -> None:
        self.timings_ms[step] = int(round(elapsed_s * 1000))

# src/scoring/blender.py - v1
"""Blend model confidence, validation and context completeness into one score."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

DEFAULT_WEIGHTS: tuple[float, float, float] = (0.5, 0.3, 0.2)
DEFAULT_THRESHOLD = 0.85


def round_score(value: float, places: int = 2) -> float:
    """Round half away from zero on the decimal representation."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


class ScoreBlender:
    """Weighted final score and the auto-approve decision.

    Args:
        weights: (ai, validation, context) weights summing to 1.0.
        threshold: Inclusive auto-approve threshold.
    """

    def __init__(
        self,
        weights: tuple[float, float, float] = DEFAULT_WEIGHTS,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        self._weights = weights
        self._threshold = threshold

    @property
    def threshold(self) -> float:
        return self._threshold

    def blend(self, ai_score: float, validation_score: float, context_score: float) -> float:
        w_ai, w_validation, w_context = self._weights
        raw = w_ai * ai_score + w_validation * validation_score + w_context * context_score
        return round_score(raw)

    def can_auto_approve(self, final_score: float) -> bool:
        return final_score >= self._threshold

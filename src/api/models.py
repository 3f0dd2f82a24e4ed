# src/api/models.py - v2
"""API-level models returned by MediaSeoService."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from mediaseo.core.models import CompletionStatus, ResolvedValue


class ContextPreview(BaseModel):
    """Aggregated context of an image, without calling any provider."""

    image_id: str
    language: str
    context: dict[str, Any] = Field(default_factory=dict)
    completeness_score: float = 0.0


class PromptPreview(BaseModel):
    """Prompt that would be sent for an image."""

    image_id: str
    language: str
    prompt: str
    used_variant: str
    estimated_tokens: int = 0


class ResolvedMetadata(BaseModel):
    """Every metadata field of an image resolved through language fallback."""

    image_id: str
    language: str
    fields: dict[str, ResolvedValue] = Field(default_factory=dict)

    @property
    def used_fallback(self) -> bool:
        return any(v.used_fallback for v in self.fields.values())


class LanguageReport(BaseModel):
    """Per-image multilingual completion plus the next language to generate."""

    image_id: str
    status: CompletionStatus
    available: list[str] = Field(default_factory=list)
    next_language: str | None = None

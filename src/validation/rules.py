# src/validation/rules.py - v1
"""Quality rules for generated metadata, overridable per field from settings."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

DEFAULT_FORBIDDEN_PHRASES: list[str] = [
    "image of",
    "picture of",
    "photo of",
    "screenshot of",
    "graphic of",
]


class AltRules(BaseModel):
    min_length: int = 10
    max_length: int = 125
    min_words: int = 3
    forbidden_phrases: list[str] = Field(default_factory=lambda: list(DEFAULT_FORBIDDEN_PHRASES))
    penalty_too_short: float = 0.3
    penalty_too_long: float = 0.5
    penalty_forbidden: float = 0.2
    penalty_few_words: float = 0.2


class CaptionRules(BaseModel):
    min_length: int = 20
    max_length: int = 300
    min_words: int = 5
    max_words: int = 30
    penalty_too_short: float = 0.2
    penalty_too_long: float = 0.3
    penalty_few_words: float = 0.2
    penalty_many_words: float = 0.2


class TitleRules(BaseModel):
    min_words: int = 3
    max_words: int = 6
    max_length: int = 60
    penalty_few_words: float = 0.3
    penalty_many_words: float = 0.2
    penalty_too_long: float = 0.3


class KeywordRules(BaseModel):
    min_count: int = 3
    max_count: int = 6
    penalty_too_few: float = 0.3
    penalty_too_many: float = 0.2
    penalty_duplicates: float = 0.1


class QualityRules(BaseModel):
    """All validation rules. Defaults match the documented quality bar."""

    alt: AltRules = Field(default_factory=AltRules)
    caption: CaptionRules = Field(default_factory=CaptionRules)
    title: TitleRules = Field(default_factory=TitleRules)
    keywords: KeywordRules = Field(default_factory=KeywordRules)
    min_acceptable_score: float = 0.7

    @classmethod
    def from_overrides(
        cls,
        overrides: dict[str, dict[str, Any]] | None = None,
        alt_max_length: int | None = None,
    ) -> QualityRules:
        """Defaults with per-field overrides applied key by key."""
        data: dict[str, Any] = cls().model_dump()
        for section, values in (overrides or {}).items():
            if isinstance(data.get(section), dict) and isinstance(values, dict):
                data[section].update(values)
            elif section == "min_acceptable_score":
                data[section] = values
        if alt_max_length and "max_length" not in (overrides or {}).get("alt", {}):
            data["alt"]["max_length"] = alt_max_length
        return cls.model_validate(data)

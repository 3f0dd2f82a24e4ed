# src/core/models.py - v2
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

JobStatus = Literal["pending", "processing", "processed", "approved", "failed", "skipped"]
ApplyDecision = Literal["apply", "draft", "pending"]
Trigger = Literal["manual", "auto"]

METADATA_FIELDS: tuple[str, ...] = ("alt", "caption", "title", "keywords")
LIVE_FIELDS: tuple[str, ...] = ("alt", "caption", "title")

EXIF_FIELDS: tuple[str, ...] = (
    "camera",
    "gps_latitude",
    "gps_longitude",
    "location",
    "photo_date",
    "copyright",
    "exif_title",
    "exif_caption",
)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


# === CONTEXT ===


class ImageContext(BaseModel):
    """Flat record of contextual signals about one image.

    Every optional field is either absent (None) or non-empty; empty values
    are dropped on construction. Instances are frozen.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    attachment_id: str
    language: str
    site_topic: str = ""

    # Linked content
    post_title: str | None = None
    post_excerpt: str | None = None
    post_type: str | None = None
    categories: list[str] | None = None
    tags: list[str] | None = None

    # Filename
    filename_hint: str | None = None

    # Embedded metadata
    camera: str | None = None
    gps_latitude: float | None = None
    gps_longitude: float | None = None
    location: str | None = None
    photo_date: str | None = None
    copyright: str | None = None
    exif_title: str | None = None
    exif_caption: str | None = None

    # Current labels
    current_alt: str | None = None
    attachment_title: str | None = None
    attachment_caption: str | None = None
    attachment_description: str | None = None
    dimensions: str | None = None
    orientation: Literal["landscape", "portrait", "square"] | None = None

    @model_validator(mode="before")
    @classmethod
    def drop_empty_signals(cls, data: Any) -> Any:
        if isinstance(data, dict):
            required = {"attachment_id", "language", "site_topic"}
            return {
                k: v for k, v in data.items()
                if k in required or not _is_empty(v)
            }
        return data

    @property
    def has_exif(self) -> bool:
        """True when any embedded-metadata field is present."""
        return any(getattr(self, name) is not None for name in EXIF_FIELDS)

    def signals(self) -> dict[str, Any]:
        """All present fields as a flat dict (extra override keys included)."""
        return self.model_dump(exclude_none=True)

    def with_overrides(self, overrides: dict[str, Any]) -> ImageContext:
        """Return a new context with caller-supplied fields merged on top."""
        merged = self.signals()
        merged.update(overrides)
        merged["attachment_id"] = self.attachment_id
        merged["language"] = self.language
        return ImageContext.model_validate(merged)


# === PROVIDER OUTPUT ===


class GeneratedFields(BaseModel):
    """Raw metadata fields returned by a vision model.

    ``score`` is kept as returned so the pipeline can reject non-numeric values.
    """

    alt: str | None = None
    caption: str | None = None
    title: str | None = None
    keywords: list[str] | None = None
    score: Any = None

    def metadata(self) -> dict[str, Any]:
        """The four SEO fields that are present, without the score."""
        return {
            name: getattr(self, name)
            for name in METADATA_FIELDS
            if not _is_empty(getattr(self, name))
        }


class TokenUsage(BaseModel):
    """Token counts for one provider call."""

    input_tokens: int = 0
    output_tokens: int = 0
    estimated: bool = False
    estimated_input_tokens: int | None = None


class CostBreakdown(BaseModel):
    """USD cost of one provider call."""

    input_cost: float = 0.0
    output_cost: float = 0.0
    cache_read_cost: float = 0.0
    cache_write_cost: float = 0.0
    total_cost: float = 0.0


class AnalysisResult(BaseModel):
    """Produced once per successful provider call."""

    model_config = ConfigDict(frozen=True)

    provider: str
    model: str
    fields: GeneratedFields
    usage: TokenUsage = Field(default_factory=TokenUsage)
    cost: CostBreakdown = Field(default_factory=CostBreakdown)
    latency_ms: int = 0
    raw_content: str = ""


# === VALIDATION ===


class FieldValidation(BaseModel):
    """Validation result for one metadata field."""

    valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    score: float = 1.0


class ValidationOutcome(BaseModel):
    """Per-field validation plus the overall mean score."""

    valid: bool
    score: float
    fields: dict[str, FieldValidation] = Field(default_factory=dict)

    @property
    def errors(self) -> list[str]:
        return [e for f in self.fields.values() for e in f.errors]

    @property
    def warnings(self) -> list[str]:
        return [w for f in self.fields.values() for w in f.warnings]


# === JOBS ===


class Job(BaseModel):
    """One persisted record of a single analysis attempt."""

    id: int | None = None
    image_id: str
    language: str
    provider: str = ""
    model: str = ""
    prompt_version: str = "1.0"
    context: dict[str, Any] = Field(default_factory=dict)
    response: dict[str, Any] = Field(default_factory=dict)
    input_tokens: int = 0
    output_tokens: int = 0
    estimated_input_tokens: int | None = None
    input_cost: float = 0.0
    output_cost: float = 0.0
    total_cost: float = 0.0
    score: float | None = None
    status: JobStatus = "pending"
    error_message: str | None = None
    retry_count: int = 0
    created_at: datetime | None = None
    processed_at: datetime | None = None
    approved_at: datetime | None = None


class JobStats(BaseModel):
    """Aggregated job counters for a period."""

    period: str
    total: int = 0
    pending: int = 0
    processing: int = 0
    processed: int = 0
    approved: int = 0
    failed: int = 0
    skipped: int = 0
    total_cost: float = 0.0
    avg_score: float = 0.0


# === MULTILINGUAL ===


class ResolvedValue(BaseModel):
    """Value surfaced for a field/language after fallback resolution."""

    value: Any = None
    source_language: str
    used_fallback: bool = False


class CompletionStatus(BaseModel):
    """How many active languages already carry generated metadata."""

    total: int
    completed: int
    missing: list[str] = Field(default_factory=list)
    percentage: float = 0.0


# === PIPELINE I/O ===


class AnalysisOptions(BaseModel):
    """Per-call options for a single analysis run."""

    trigger: Trigger = "manual"
    auto_apply: bool | None = None
    variant: str | None = None
    context_override: dict[str, Any] = Field(default_factory=dict)
    force: bool = False
    retry_count: int = 0


class AnalysisOutcome(BaseModel):
    """User-visible result of analyzing one image."""

    success: bool
    image_id: str
    language: str
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    job: Job | None = None
    decision: ApplyDecision | None = None
    final_score: float | None = None
    provider_errors: dict[str, str] = Field(default_factory=dict)
    timings_ms: dict[str, int] = Field(default_factory=dict)

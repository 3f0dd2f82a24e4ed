# src/llm/models.py - v2
"""Provider-level types: ImageInput, LLMResponse, ModelCapabilities, ProviderInvocation."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from mediaseo.core.models import AnalysisResult


class ImageInput(BaseModel):
    """Image payload for vision-enabled completions."""

    data: bytes
    media_type: str
    source_id: str | None = None
    width: int | None = None
    height: int | None = None


class LLMResponse(BaseModel):
    """Normalized response from any provider.

    Token counts are None when the provider did not report usage.
    """

    content: str
    input_tokens: int | None = None
    output_tokens: int | None = None
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    model: str
    provider: str
    latency_ms: int
    raw_response: Any = None


class ModelCapabilities(BaseModel):
    """Declared capabilities of a provider model."""

    vision: bool = True
    json_mode: bool = False
    max_tokens: int = 4096
    max_image_size: int = 2048
    supported_formats: list[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/gif", "image/webp"]
    )


class ProviderInvocation(BaseModel):
    """Result of ProviderRegistry.invoke_with_fallback."""

    success: bool
    result: AnalysisResult | None = None
    provider: str | None = None
    model: str | None = None
    # provider name -> failure reason, in attempt order
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def error_messages(self) -> list[str]:
        if not self.errors:
            return [] if self.success else ["No provider available."]
        return [f"{name}: {msg}" for name, msg in self.errors.items()]

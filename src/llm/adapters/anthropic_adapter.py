# src/llm/adapters/anthropic_adapter.py - v3
"""Anthropic Claude adapter implementing BaseVisionClient.

Uses the official anthropic SDK with lazy client initialization.
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any

from mediaseo.llm.base_client import BaseVisionClient
from mediaseo.llm.models import ImageInput, LLMResponse, ModelCapabilities

logger = logging.getLogger(__name__)

MODELS: dict[str, str] = {
    "claude-sonnet-4-5-20250929": "Claude Sonnet 4.5 (recommended)",
    "claude-haiku-4-5-20251001": "Claude Haiku 4.5 (cheaper)",
    "claude-opus-4-1-20250805": "Claude Opus 4.1",
    "claude-3-5-haiku-20241022": "Claude 3.5 Haiku (legacy)",
}

CAPABILITIES = ModelCapabilities(
    vision=True,
    json_mode=True,
    max_tokens=4096,
    max_image_size=1600,
    supported_formats=["image/jpeg", "image/png", "image/webp", "image/gif"],
)


class AnthropicAdapter(BaseVisionClient):
    """Adapter for Anthropic Claude vision models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-5-20250929",
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key or ""
        self._model = model
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            import anthropic

            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self.__client

    async def complete_with_vision(
        self,
        prompt: str,
        image: ImageInput,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> LLMResponse:
        """Image block first, then the instruction text."""
        content_blocks: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": image.media_type,
                    "data": base64.b64encode(image.data).decode("ascii"),
                },
            },
            {"type": "text", "text": prompt},
        ]

        start = time.monotonic()
        response = await self._client.messages.create(
            model=self._model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": content_blocks}],
        )
        latency_ms = int((time.monotonic() - start) * 1000)

        usage = getattr(response, "usage", None)
        return LLMResponse(
            content=self._extract_text(response),
            input_tokens=getattr(usage, "input_tokens", None) if usage else None,
            output_tokens=getattr(usage, "output_tokens", None) if usage else None,
            cache_read_tokens=getattr(usage, "cache_read_input_tokens", 0) or 0,
            cache_write_tokens=getattr(usage, "cache_creation_input_tokens", 0) or 0,
            model=getattr(response, "model", None) or self._model,
            provider="anthropic",
            latency_ms=latency_ms,
            raw_response=response,
        )

    def validate_config(self) -> bool:
        return bool(self._api_key) and bool(self._model)

    async def test_connection(self) -> bool:
        await self._client.messages.create(
            model=self._model,
            max_tokens=10,
            messages=[{"role": "user", "content": "ping"}],
        )
        return True

    @property
    def capabilities(self) -> ModelCapabilities:
        return CAPABILITIES

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def model(self) -> str:
        return self._model

    @staticmethod
    def _extract_text(response: Any) -> str:
        """Concatenate text blocks from a Messages API response."""
        return "".join(
            block.text for block in getattr(response, "content", []) or []
            if getattr(block, "type", None) == "text"
        )

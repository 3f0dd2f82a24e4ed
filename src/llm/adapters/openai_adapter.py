# src/llm/adapters/openai_adapter.py - v2
"""OpenAI GPT adapter implementing BaseVisionClient.

Uses the official openai SDK. JSON mode is requested for vision replies.
"""

from __future__ import annotations

import base64
import time
from typing import Any

from mediaseo.llm.base_client import BaseVisionClient
from mediaseo.llm.models import ImageInput, LLMResponse, ModelCapabilities

MODELS: dict[str, str] = {
    "gpt-4o": "GPT-4o (recommended)",
    "gpt-4o-mini": "GPT-4o Mini (cheaper)",
    "gpt-4-turbo": "GPT-4 Turbo",
}

CAPABILITIES = ModelCapabilities(
    vision=True,
    json_mode=True,
    max_tokens=4096,
    max_image_size=2048,
    supported_formats=["image/jpeg", "image/png", "image/gif", "image/webp"],
)

_MIN_KEY_LENGTH = 20


class OpenAIAdapter(BaseVisionClient):
    """OpenAI GPT vision adapter."""

    def __init__(self, model: str = "gpt-4o", api_key: str = "", **kwargs: Any):
        self._model = model
        self._api_key = api_key or ""
        self._client_instance = None

    @property
    def _client(self):
        if self._client_instance is None:
            import openai

            self._client_instance = openai.AsyncOpenAI(api_key=self._api_key)
        return self._client_instance

    async def complete_with_vision(
        self,
        prompt: str,
        image: ImageInput,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> LLMResponse:
        b64 = base64.b64encode(image.data).decode()
        content_parts: list[dict[str, Any]] = [
            {"type": "text", "text": prompt},
            {
                "type": "image_url",
                "image_url": {"url": f"data:{image.media_type};base64,{b64}"},
            },
        ]

        t0 = time.monotonic()
        resp = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": content_parts}],
            max_tokens=max_tokens,
            temperature=temperature,
            response_format={"type": "json_object"},
        )
        latency = int((time.monotonic() - t0) * 1000)

        choice = resp.choices[0]
        usage = resp.usage
        return LLMResponse(
            content=choice.message.content or "",
            input_tokens=usage.prompt_tokens if usage else None,
            output_tokens=usage.completion_tokens if usage else None,
            model=self._model,
            provider="openai",
            latency_ms=latency,
            raw_response=resp,
        )

    def validate_config(self) -> bool:
        return len(self._api_key) >= _MIN_KEY_LENGTH and bool(self._model)

    async def test_connection(self) -> bool:
        await self._client.models.list()
        return True

    @property
    def capabilities(self) -> ModelCapabilities:
        return CAPABILITIES

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model(self) -> str:
        return self._model

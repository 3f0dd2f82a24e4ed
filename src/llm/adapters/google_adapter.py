# src/llm/adapters/google_adapter.py - v2
"""Google Gemini adapter implementing BaseVisionClient.

Uses the google-generativeai SDK.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

from mediaseo.llm.base_client import BaseVisionClient
from mediaseo.llm.models import ImageInput, LLMResponse, ModelCapabilities

MODELS: dict[str, str] = {
    "gemini-1.5-flash-8b": "Gemini 1.5 Flash-8B (lowest cost)",
    "gemini-1.5-flash": "Gemini 1.5 Flash (recommended)",
    "gemini-2.0-flash": "Gemini 2.0 Flash",
    "gemini-2.5-flash": "Gemini 2.5 Flash",
    "gemini-2.5-pro": "Gemini 2.5 Pro",
}

CAPABILITIES = ModelCapabilities(
    vision=True,
    json_mode=True,
    max_tokens=8192,
    max_image_size=2048,
    supported_formats=["image/jpeg", "image/png", "image/webp", "image/gif"],
)


class GoogleAdapter(BaseVisionClient):
    """Google Gemini vision adapter."""

    def __init__(self, model: str = "gemini-1.5-flash", api_key: str = "", **kwargs: Any):
        self._model = model
        self._api_key = api_key or ""

    def _generative_model(self):
        import google.generativeai as genai

        genai.configure(api_key=self._api_key)
        return genai.GenerativeModel(self._model)

    async def complete_with_vision(
        self,
        prompt: str,
        image: ImageInput,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> LLMResponse:
        model = self._generative_model()
        parts: list[dict[str, Any]] = [
            {"inline_data": {"mime_type": image.media_type, "data": image.data}},
            {"text": prompt},
        ]

        t0 = time.monotonic()
        resp = await model.generate_content_async(
            parts,
            generation_config={
                "max_output_tokens": max_tokens,
                "temperature": temperature,
                "response_mime_type": "application/json",
            },
        )
        latency = int((time.monotonic() - t0) * 1000)

        usage = getattr(resp, "usage_metadata", None)
        return LLMResponse(
            content=resp.text or "",
            input_tokens=getattr(usage, "prompt_token_count", None) if usage else None,
            output_tokens=getattr(usage, "candidates_token_count", None) if usage else None,
            model=self._model,
            provider="google",
            latency_ms=latency,
            raw_response=resp,
        )

    def validate_config(self) -> bool:
        return bool(self._api_key) and bool(self._model)

    async def test_connection(self) -> bool:
        import google.generativeai as genai

        genai.configure(api_key=self._api_key)
        models = await asyncio.to_thread(lambda: list(genai.list_models()))
        return len(models) > 0

    @property
    def capabilities(self) -> ModelCapabilities:
        return CAPABILITIES

    @property
    def provider_name(self) -> str:
        return "google"

    @property
    def model(self) -> str:
        return self._model

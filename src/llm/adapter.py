# src/llm/adapter.py - v1
"""ProviderAdapter: one configured provider bound to prompt, image and pricing.

Turns a vision client into the uniform ``analyze(image_id, language, context)``
contract. Every failure of the provider itself surfaces as ProviderError so
the registry can fall back to the next provider.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from mediaseo.core.errors import InputError, ProviderError
from mediaseo.core.models import AnalysisResult, TokenUsage
from mediaseo.llm.response_parser import ResponseParseError, parse_fields
from mediaseo.tracking.cost_calculator import PricingTable, calculate_cost
from mediaseo.tracking.token_estimator import estimate_request_tokens, estimate_text_tokens

if TYPE_CHECKING:
    from mediaseo.core.models import ImageContext
    from mediaseo.images.source import BaseImageSource
    from mediaseo.llm.base_client import BaseVisionClient
    from mediaseo.llm.models import ModelCapabilities
    from mediaseo.prompts.composer import PromptComposer

logger = logging.getLogger(__name__)


class ProviderAdapter:
    """Uniform analysis contract over one vision client.

    Args:
        client: SDK-backed vision client.
        composer: Prompt composer.
        images: Image-bytes provider.
        pricing: Pricing table for cost tracking.
        timeout_s: Hard bound on one provider call.
        max_tokens: Completion token cap.
        temperature: Sampling temperature.
    """

    def __init__(
        self,
        client: BaseVisionClient,
        composer: PromptComposer,
        images: BaseImageSource,
        pricing: PricingTable | None = None,
        timeout_s: float = 30.0,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> None:
        self._client = client
        self._composer = composer
        self._images = images
        self._pricing = pricing or PricingTable()
        self._timeout_s = timeout_s
        self._max_tokens = max_tokens
        self._temperature = temperature

    @property
    def name(self) -> str:
        return self._client.provider_name

    @property
    def model(self) -> str:
        return self._client.model

    def validate_config(self) -> bool:
        return self._client.validate_config()

    def model_capabilities(self) -> ModelCapabilities:
        return self._client.capabilities

    async def test_connection(self) -> bool:
        try:
            return await asyncio.wait_for(self._client.test_connection(), self._timeout_s)
        except asyncio.TimeoutError as e:
            raise ProviderError(self.name, f"timeout after {self._timeout_s}s") from e
        except Exception as e:
            raise ProviderError(self.name, f"{type(e).__name__}: {e}") from e

    async def analyze(
        self,
        image_id: str,
        language: str,
        context: ImageContext,
        variant: str | None = None,
    ) -> AnalysisResult:
        """Compose, call, parse and price one analysis.

        Raises:
            ProviderError: Any provider-side failure (fallback-eligible).
            InputError: The image cannot be read, or the prompt variant is unknown.
        """
        try:
            prompt = self._composer.compose(variant, language, context)
        except KeyError as e:
            raise InputError(e.args[0] if e.args else f"Unknown prompt variant: {variant}") from e
        image = await self._images.load(image_id)

        capabilities = self._client.capabilities
        if image.media_type not in capabilities.supported_formats:
            raise ProviderError(self.name, f"Unsupported image format: {image.media_type}")

        try:
            response = await asyncio.wait_for(
                self._client.complete_with_vision(
                    prompt,
                    image,
                    max_tokens=min(self._max_tokens, capabilities.max_tokens),
                    temperature=self._temperature,
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(self.name, f"timeout after {self._timeout_s}s") from e
        except (ProviderError, InputError):
            raise
        except Exception as e:
            raise ProviderError(self.name, f"{type(e).__name__}: {e}") from e

        try:
            fields = parse_fields(response.content)
        except ResponseParseError as e:
            raise ProviderError(self.name, f"Malformed response: {e}") from e

        usage = self._usage(response.input_tokens, response.output_tokens, prompt, image, response.content)
        cost = calculate_cost(
            response.model,
            usage.input_tokens,
            usage.output_tokens,
            response.cache_read_tokens,
            response.cache_write_tokens,
            pricing=self._pricing,
        )
        logger.info(
            "%s/%s analyzed image %s in %dms (%d in / %d out tokens%s)",
            self.name, response.model, image_id, response.latency_ms,
            usage.input_tokens, usage.output_tokens,
            ", estimated" if usage.estimated else "",
        )
        return AnalysisResult(
            provider=self.name,
            model=response.model,
            fields=fields,
            usage=usage,
            cost=cost,
            latency_ms=response.latency_ms,
            raw_content=response.content,
        )

    def _usage(self, input_tokens, output_tokens, prompt, image, content) -> TokenUsage:
        if input_tokens is not None:
            return TokenUsage(
                input_tokens=input_tokens,
                output_tokens=output_tokens if output_tokens is not None else estimate_text_tokens(content),
            )
        estimated = estimate_request_tokens(self.name, prompt, image.width, image.height)
        return TokenUsage(
            input_tokens=estimated,
            output_tokens=output_tokens if output_tokens is not None else estimate_text_tokens(content),
            estimated=True,
            estimated_input_tokens=estimated,
        )

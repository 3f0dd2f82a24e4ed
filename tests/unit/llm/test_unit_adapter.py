# tests/unit/llm/test_unit_adapter.py - v2
"""Tests for llm/adapter.py."""

from __future__ import annotations

import pytest

from mediaseo.config.settings import Settings
from mediaseo.core.errors import InputError, ProviderError
from mediaseo.core.models import ImageContext
from mediaseo.images.source import LocalImageSource
from mediaseo.llm.adapter import ProviderAdapter
from mediaseo.prompts.composer import PromptComposer
from mediaseo.tracking.cost_calculator import PricingTable
from mediaseo.tracking.token_estimator import estimate_request_tokens
from tests.conftest import FakeVisionClient


@pytest.fixture
def context() -> ImageContext:
    return ImageContext(attachment_id="100", language="en", filename_hint="sunset beach 2024")


def _adapter(client, library, uploads, timeout_s=30.0) -> ProviderAdapter:
    return ProviderAdapter(
        client,
        PromptComposer(Settings(_env_file=None)),
        LocalImageSource(library, uploads),
        pricing=PricingTable(),
        timeout_s=timeout_s,
    )


class TestProviderAdapter:
    @pytest.mark.asyncio
    async def test_success(self, library, uploads, context):
        client = FakeVisionClient()
        result = await _adapter(client, library, uploads).analyze("100", "en", context)
        assert result.provider == "openai"
        assert result.model == "gpt-4o"
        assert result.fields.alt.startswith("Golden sunset")
        assert result.usage.input_tokens == 1200
        assert result.usage.estimated is False
        assert result.cost.total_cost == pytest.approx(0.0038)
        assert "sunset beach 2024" in client.calls[0]

    @pytest.mark.asyncio
    async def test_estimated_usage(self, library, uploads, context):
        client = FakeVisionClient(report_usage=False)
        result = await _adapter(client, library, uploads).analyze("100", "en", context)
        expected = estimate_request_tokens("openai", client.calls[0], 1600, 900)
        assert result.usage.estimated is True
        assert result.usage.input_tokens == expected
        assert result.usage.estimated_input_tokens == expected

    @pytest.mark.asyncio
    async def test_timeout(self, library, uploads, context):
        client = FakeVisionClient(delay_s=1.0)
        with pytest.raises(ProviderError, match="timeout after 0.05s"):
            await _adapter(client, library, uploads, timeout_s=0.05).analyze("100", "en", context)

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self, library, uploads, context):
        client = FakeVisionClient(error=RuntimeError("401 invalid api key"))
        with pytest.raises(ProviderError) as exc:
            await _adapter(client, library, uploads).analyze("100", "en", context)
        assert exc.value.provider == "openai"
        assert "RuntimeError: 401 invalid api key" in str(exc.value)

    @pytest.mark.asyncio
    async def test_malformed_reply(self, library, uploads, context):
        client = FakeVisionClient(reply="Sorry, I cannot help with that.")
        with pytest.raises(ProviderError, match="Malformed response"):
            await _adapter(client, library, uploads).analyze("100", "en", context)

    @pytest.mark.asyncio
    async def test_missing_image_is_input_error(self, library, uploads, context):
        client = FakeVisionClient()
        with pytest.raises(InputError):
            await _adapter(client, library, uploads).analyze("999", "en", context)
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_unknown_variant_is_input_error(self, library, uploads, context):
        client = FakeVisionClient()
        with pytest.raises(InputError, match="Unknown prompt variant 'bogus'"):
            await _adapter(client, library, uploads).analyze("100", "en", context, "bogus")
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_connection(self, library, uploads):
        adapter = _adapter(FakeVisionClient(error=RuntimeError("down")), library, uploads)
        with pytest.raises(ProviderError, match="RuntimeError: down"):
            await adapter.test_connection()

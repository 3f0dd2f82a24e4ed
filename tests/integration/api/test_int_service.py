# tests/integration/api/test_int_service.py - v1
"""Integration: MediaSeoService built with its default sqlite stack.

Only the vision provider is faked; database, metadata store, ledger and
audit log live in one sqlite file under tmp_path.
"""

from __future__ import annotations

import pytest

from mediaseo.api.facade import build_service
from mediaseo.config.settings import Settings
from mediaseo.images.source import LocalImageSource
from mediaseo.llm.adapter import ProviderAdapter
from mediaseo.llm.registry import ProviderRegistry
from mediaseo.prompts.composer import PromptComposer
from mediaseo.storage.database import open_database
from tests.conftest import FakeVisionClient, make_reply


@pytest.fixture
def make_service(tmp_path, library, uploads):
    conns = []

    def _make(*clients, **overrides):
        settings = Settings(
            _env_file=None,
            site_topic="Travel photography",
            fallback_order=",".join(c.provider_name for c in clients),
            active_languages="en,cs",
            database_path=tmp_path / "mediaseo.db",
            pricing_file=tmp_path / "pricing.json",
            **overrides,
        )
        images = LocalImageSource(library, uploads)
        composer = PromptComposer(settings)
        registry = ProviderRegistry(
            {c.provider_name: ProviderAdapter(c, composer, images) for c in clients},
            settings.fallback_order_list,
        )
        conn = open_database(settings.database_path)
        conns.append(conn)
        return build_service(settings, repository=library, images=images, registry=registry, conn=conn)

    yield _make
    for conn in conns:
        conn.close()


class TestServiceIntegration:
    @pytest.mark.asyncio
    async def test_multilingual_flow(self, make_service):
        service = make_service(FakeVisionClient(reply=make_reply(score=1.0)), auto_apply=True)

        english = await service.analyze("100", "en")
        assert english.decision == "apply"

        resolved = await service.resolve_metadata("100", "cs")
        assert resolved.used_fallback
        assert resolved.fields["title"].value == "Golden Sunset Over Sandy Beach"

        czech = await service.analyze("100", "cs")
        assert czech.success
        report = await service.completion_status("100")
        assert report.status.completed == 2
        assert report.next_language is None

        resolved = await service.resolve_metadata("100", "cs")
        assert not resolved.used_fallback

    @pytest.mark.asyncio
    async def test_fallback_provider_and_stats(self, make_service):
        service = make_service(
            FakeVisionClient(provider="anthropic", model="claude-3-5-sonnet-20241022",
                             error=RuntimeError("overloaded")),
            FakeVisionClient(),
        )
        outcome = await service.analyze("100", "en")
        assert outcome.job.provider == "openai"
        assert "anthropic" in outcome.provider_errors

        stats = service.get_stats("today")
        assert stats.total == 1
        assert stats.processed == 1
        assert stats.total_cost > 0

        assert await service.test_providers() == {
            "anthropic": "RuntimeError: overloaded",
            "openai": "ok",
        }

    @pytest.mark.asyncio
    async def test_state_survives_rebuild(self, make_service):
        first = make_service(FakeVisionClient())
        outcome = await first.analyze("100", "en")

        second = make_service(FakeVisionClient())
        assert await second.approve(outcome.job.id, {"alt": "Sunset on the Algarve beach"})
        resolved = await second.resolve_metadata("100", "en")
        assert resolved.fields["alt"].value == "Sunset on the Algarve beach"
        assert second.get_stats().approved == 1

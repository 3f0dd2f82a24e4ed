# tests/unit/pipeline/test_unit_batch.py - v2
"""Tests for pipeline/batch.py."""

from __future__ import annotations

import pytest

from mediaseo.core.models import AnalysisOptions, AnalysisOutcome
from mediaseo.pipeline.batch import BatchProcessor, is_retryable
from tests.conftest import FakeVisionClient, make_reply


class FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _processor(h, sleep=None, delay_provider=None) -> BatchProcessor:
    return BatchProcessor(
        h.orchestrator, h.aggregator, h.settings,
        store=h.store, delay_provider=delay_provider,
        event_bus=h.bus, audit=h.audit, sleep=sleep or FakeSleep(),
    )


class TestIsRetryable:
    def test_provider_failure_without_job(self):
        outcome = AnalysisOutcome(
            success=False, image_id="1", language="en",
            errors=["All providers failed (openai: boom)"], provider_errors={"openai": "boom"},
        )
        assert is_retryable(outcome)

    def test_input_error_not_retryable(self):
        outcome = AnalysisOutcome(
            success=False, image_id="1", language="en", errors=["Attachment 1 not found."]
        )
        assert not is_retryable(outcome)

    def test_success_not_retryable(self):
        assert not is_retryable(AnalysisOutcome(success=True, image_id="1", language="en"))


class TestBatchProcessor:
    @pytest.mark.asyncio
    async def test_mixed_batch(self, harness):
        h = harness([FakeVisionClient()])
        result = await _processor(h).run(["100", "102", "100", "103"], "en")

        assert result.total == 3
        assert [i.image_id for i in result.items] == ["100", "102", "103"]
        assert [i.status for i in result.items] == ["success", "failed", "success"]
        assert result.succeeded == 2
        assert result.failed == 1
        assert result.items[1].reason == "Attachment 102 is not an image."
        assert result.items[1].attempts == 1
        assert result.total_cost == pytest.approx(0.0076)
        assert not result.cancelled

        names = [name for name, _ in h.events]
        assert names[0] == "batch_started"
        assert names[-1] == "batch_completed"
        assert h.events[-1][1]["succeeded"] == 2
        assert h.audit.get_audit_trail(event_type="batch_completed")[0]["metadata"]["failed"] == 1

    @pytest.mark.asyncio
    async def test_default_trigger_is_auto(self, harness):
        h = harness([FakeVisionClient()], auto_apply=True)
        result = await _processor(h).run(["103"])
        assert result.language == "en"
        assert result.items[0].outcome.decision == "draft"

    @pytest.mark.asyncio
    async def test_retries_provider_failures(self, harness):
        h = harness([FakeVisionClient(error=RuntimeError("overloaded"))], batch_max_retries=2)
        sleep = FakeSleep()
        result = await _processor(h, sleep=sleep).run(["100"], "en")

        item = result.items[0]
        assert item.status == "failed"
        assert item.attempts == 3
        assert item.reason == "All providers failed (openai: RuntimeError: overloaded)"
        assert sleep.delays == [5.0, 10.0]
        retries = [e["metadata"]["retry_count"]
                   for e in h.audit.get_audit_trail("100", event_type="analysis_started")]
        assert sorted(retries) == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_validation_failure_not_retried(self, harness):
        h = harness([FakeVisionClient(reply=make_reply(score="high"))])
        sleep = FakeSleep()
        result = await _processor(h, sleep=sleep).run(["100"], "en")
        assert result.items[0].attempts == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_skips_existing_metadata(self, harness):
        h = harness([FakeVisionClient()])
        await h.store.set("100", "alt", "en", "Existing alt text")
        client = h.clients[0]

        result = await _processor(h).run(["100"], "en")
        assert result.items[0].status == "skipped"
        assert result.items[0].reason == "metadata already present"
        assert client.calls == []

        forced = await _processor(h).run(["100"], "en", AnalysisOptions(trigger="auto", force=True))
        assert forced.items[0].status == "success"

    @pytest.mark.asyncio
    async def test_other_language_not_skipped(self, harness):
        h = harness([FakeVisionClient()], active_languages="en,cs")
        await h.store.set("100", "alt", "en", "Existing alt text")
        result = await _processor(h).run(["100"], "cs")
        assert result.items[0].status == "success"

    @pytest.mark.asyncio
    async def test_cancel_skips_remaining(self, harness):
        h = harness([FakeVisionClient()])
        processor = _processor(h)

        def _stop(event, payload):
            processor.cancel()

        h.bus.subscribe("after_analyze", _stop)
        result = await processor.run(["100", "101", "103"], "en")

        assert result.cancelled
        assert processor.cancelled
        assert [i.status for i in result.items] == ["success", "skipped", "skipped"]
        assert {i.reason for i in result.items[1:]} == {"cancelled"}
        assert h.audit.get_audit_trail(event_type="batch_cancelled")
        assert h.events[-1][1]["cancelled"] is True

    @pytest.mark.asyncio
    async def test_delay_provider_honored(self, harness):
        h = harness([FakeVisionClient()])
        sleep = FakeSleep()
        await _processor(h, sleep=sleep, delay_provider=lambda: 1.5).run(["100", "103"], "en")
        assert sleep.delays == [1.5, 1.5]

    @pytest.mark.asyncio
    async def test_empty_batch(self, harness):
        h = harness([FakeVisionClient()])
        result = await _processor(h).run([], "en")
        assert result.total == 0
        assert result.items == []

    @pytest.mark.asyncio
    async def test_prefetch_failure_isolated_per_image(self, harness, library, monkeypatch):
        h = harness([FakeVisionClient()])
        original = library.bulk_get_meta

        async def _broken_meta(ids):
            if "100" in ids:
                raise RuntimeError("corrupt meta row")
            return await original(ids)

        monkeypatch.setattr(library, "bulk_get_meta", _broken_meta)
        sleep = FakeSleep()
        result = await _processor(h, sleep=sleep).run(["101", "100", "103"], "en")

        assert [i.status for i in result.items] == ["success", "failed", "success"]
        assert result.items[1].reason == "Context aggregation failed: corrupt meta row"
        assert result.items[1].attempts == 1
        assert sleep.delays == []
        assert h.events[-1][0] == "batch_completed"

    @pytest.mark.asyncio
    async def test_unknown_variant_not_retried(self, harness):
        client = FakeVisionClient()
        h = harness([client], batch_max_retries=3)
        sleep = FakeSleep()
        result = await _processor(h, sleep=sleep).run(
            ["100"], "en", AnalysisOptions(trigger="auto", variant="bogus"),
        )
        item = result.items[0]
        assert item.status == "failed"
        assert item.attempts == 1
        assert item.reason.startswith("Unknown prompt variant")
        assert sleep.delays == []
        assert client.calls == []

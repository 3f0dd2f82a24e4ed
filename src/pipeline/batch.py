# src/pipeline/batch.py - v1
"""Best-effort batch analysis over many images.

Contexts are prefetched with one grouped read, then images run one after
another. A failure never stops the batch. Items not yet started when
``cancel()`` is called are recorded as skipped; the item in flight runs to
completion.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Awaitable, Callable, Literal, Sequence

from pydantic import BaseModel, Field

from mediaseo.core.models import AnalysisOptions, AnalysisOutcome
from mediaseo.events import bus as events
from mediaseo.events.bus import EventBus
from mediaseo.llm.retry import compute_backoff_delay
from mediaseo.storage.audit import NullAuditSink

if TYPE_CHECKING:
    from mediaseo.config.settings import Settings
    from mediaseo.context.aggregator import ContextAggregator
    from mediaseo.pipeline.orchestrator import AnalysisOrchestrator
    from mediaseo.storage.audit import BaseAuditSink
    from mediaseo.storage.metadata_store import BaseMetadataStore

logger = logging.getLogger(__name__)

DelayProvider = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]

ItemStatus = Literal["success", "failed", "skipped"]


class BatchItemResult(BaseModel):
    """Outcome of one image within a batch."""

    image_id: str
    status: ItemStatus
    attempts: int = 0
    reason: str | None = None
    outcome: AnalysisOutcome | None = None


class BatchResult(BaseModel):
    """Summary of a batch run."""

    language: str
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False
    duration_ms: int = 0
    total_cost: float = 0.0
    items: list[BatchItemResult] = Field(default_factory=list)

    def add(self, item: BatchItemResult) -> None:
        self.items.append(item)
        if item.status == "success":
            self.succeeded += 1
        elif item.status == "failed":
            self.failed += 1
        else:
            self.skipped += 1
        if item.outcome is not None and item.outcome.job is not None:
            self.total_cost += item.outcome.job.total_cost


def is_retryable(outcome: AnalysisOutcome) -> bool:
    """Only provider-side failures with no job recorded are worth retrying."""
    return not outcome.success and bool(outcome.provider_errors) and outcome.job is None


class BatchProcessor:
    """Run the orchestrator over a list of images.

    Args:
        orchestrator: Single-image pipeline.
        aggregator: Used for the grouped context prefetch.
        settings: Retry count and backoff bounds.
        store: Metadata store used to skip images that already have metadata.
        delay_provider: Returns the seconds to wait before each provider call.
        event_bus: Lifecycle event bus.
        audit: Audit sink.
        sleep: Awaitable sleep (injectable for tests).
    """

    def __init__(
        self,
        orchestrator: AnalysisOrchestrator,
        aggregator: ContextAggregator,
        settings: Settings,
        store: BaseMetadataStore | None = None,
        delay_provider: DelayProvider | None = None,
        event_bus: EventBus | None = None,
        audit: BaseAuditSink | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._orchestrator = orchestrator
        self._aggregator = aggregator
        self._settings = settings
        self._store = store
        self._delay_provider = delay_provider
        self._events = event_bus or EventBus()
        self._audit = audit or NullAuditSink()
        self._sleep = sleep
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop before the next item; the current one finishes."""
        if not self._cancelled:
            logger.info("Batch cancellation requested")
        self._cancelled = True

    async def run(
        self,
        image_ids: Sequence[str],
        language: str | None = None,
        options: AnalysisOptions | None = None,
    ) -> BatchResult:
        language = language or self._settings.default_language
        options = options or AnalysisOptions(trigger="auto")
        ids = list(dict.fromkeys(str(i) for i in image_ids))
        self._cancelled = False

        started = time.monotonic()
        result = BatchResult(language=language, total=len(ids))
        await self._events.publish(events.BATCH_STARTED, {"language": language, "total": len(ids)})
        await self._audit.record("batch_started", None, {"language": language, "total": len(ids)})
        logger.info("Batch started: %d images (%s)", len(ids), language)

        try:
            contexts = await self._aggregator.bulk_build(ids, language)
        except Exception as exc:
            # Each item then builds its own context and fails on its own.
            logger.warning("Context prefetch failed, building per image: %s", exc)
            contexts = {}

        for image_id in ids:
            if self._cancelled:
                result.add(BatchItemResult(image_id=image_id, status="skipped", reason="cancelled"))
                continue
            if not options.force and await self._has_metadata(image_id, language):
                result.add(BatchItemResult(
                    image_id=image_id, status="skipped", reason="metadata already present"
                ))
                continue
            result.add(await self._process(image_id, language, options, contexts.get(image_id)))

        result.cancelled = self._cancelled
        result.duration_ms = int((time.monotonic() - started) * 1000)
        result.total_cost = round(result.total_cost, 8)

        summary = {
            "language": language,
            "total": result.total,
            "succeeded": result.succeeded,
            "failed": result.failed,
            "skipped": result.skipped,
        }
        await self._audit.record(
            "batch_cancelled" if result.cancelled else "batch_completed", None, summary
        )
        await self._events.publish(events.BATCH_COMPLETED, {**summary, "cancelled": result.cancelled})
        logger.info(
            "Batch finished: %d ok, %d failed, %d skipped in %dms",
            result.succeeded, result.failed, result.skipped, result.duration_ms,
        )
        return result

    async def _process(self, image_id, language, options, context) -> BatchItemResult:
        max_retries = self._settings.batch_max_retries
        retries = 0
        while True:
            await self._wait_for_slot()
            outcome = await self._orchestrator.analyze(
                image_id,
                language,
                options.model_copy(update={"retry_count": retries}),
                context=context,
            )
            if outcome.success:
                return BatchItemResult(
                    image_id=image_id, status="success", attempts=retries + 1, outcome=outcome
                )
            if retries >= max_retries or not is_retryable(outcome) or self._cancelled:
                return BatchItemResult(
                    image_id=image_id,
                    status="failed",
                    attempts=retries + 1,
                    reason="; ".join(outcome.errors),
                    outcome=outcome,
                )
            retries += 1
            delay = compute_backoff_delay(
                retries, self._settings.backoff_base_s, self._settings.backoff_max_s
            )
            logger.info("Retrying image %s in %.1fs (retry %d/%d)", image_id, delay, retries, max_retries)
            await self._sleep(delay)

    async def _wait_for_slot(self) -> None:
        if self._delay_provider is None:
            return
        delay = self._delay_provider()
        if delay > 0:
            logger.debug("Waiting %.2fs before next provider call", delay)
            await self._sleep(delay)

    async def _has_metadata(self, image_id: str, language: str) -> bool:
        if self._store is None:
            return False
        return bool(await self._store.get(image_id, "alt", language))

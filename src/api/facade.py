# src/api/facade.py - v2
"""Public API facade: single entry point for image SEO metadata.

Usage:
    from mediaseo.api.facade import build_service
    service = build_service(settings, repository=repo, images=images)
    outcome = await service.analyze("42", "en")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Sequence

from mediaseo.api.models import ContextPreview, LanguageReport, PromptPreview, ResolvedMetadata
from mediaseo.config.settings import Settings
from mediaseo.context.aggregator import ContextAggregator, calculate_completeness_score
from mediaseo.core.models import AnalysisOptions, AnalysisOutcome, JobStats
from mediaseo.events import bus as events
from mediaseo.events.bus import EventBus
from mediaseo.llm.registry import ProviderRegistry
from mediaseo.multilingual.fallback import LanguageFallbackResolver
from mediaseo.pipeline.batch import BatchProcessor, BatchResult
from mediaseo.pipeline.orchestrator import AnalysisOrchestrator
from mediaseo.pipeline.rate_limiter import RateLimiter
from mediaseo.prompts.composer import PromptComposer, estimate_tokens
from mediaseo.storage.audit import SqliteAuditLog
from mediaseo.storage.database import open_database
from mediaseo.storage.job_ledger import SqliteJobLedger
from mediaseo.storage.locks import SqliteLock
from mediaseo.storage.metadata_store import SqliteMetadataStore
from mediaseo.tracking.cost_calculator import PricingTable
from mediaseo.tracking.pricing_sync import PricingSynchronizer

if TYPE_CHECKING:
    import sqlite3

    from mediaseo.context.repository import BaseContentRepository
    from mediaseo.images.source import BaseImageSource
    from mediaseo.storage.metadata_store import BaseMetadataStore
    from mediaseo.tracking.models import SyncResult

logger = logging.getLogger(__name__)

PRICING_LOCK = "pricing_sync"


class MediaSeoService:
    """Operations exposed to external callers (CLI, REST layer).

    Build it with ``build_service``; the constructor only stores collaborators.
    """

    def __init__(
        self,
        settings: Settings,
        aggregator: ContextAggregator,
        composer: PromptComposer,
        registry: ProviderRegistry,
        orchestrator: AnalysisOrchestrator,
        batch: BatchProcessor,
        ledger: SqliteJobLedger,
        resolver: LanguageFallbackResolver,
        pricing_sync: PricingSynchronizer | None = None,
        audit: SqliteAuditLog | None = None,
    ) -> None:
        self.settings = settings
        self.aggregator = aggregator
        self.composer = composer
        self.registry = registry
        self.orchestrator = orchestrator
        self.batch = batch
        self.ledger = ledger
        self.resolver = resolver
        self.pricing_sync = pricing_sync
        self.audit = audit

    @property
    def events(self) -> EventBus:
        return self.orchestrator.events

    def _language(self, language: str | None) -> str:
        return language or self.settings.default_language

    async def preview_context(self, image_id: str, language: str | None = None) -> ContextPreview:
        language = self._language(language)
        context = await self.aggregator.build(image_id, language)
        return ContextPreview(
            image_id=image_id,
            language=language,
            context=context.signals(),
            completeness_score=round(calculate_completeness_score(context), 4),
        )

    async def preview_prompt(
        self,
        image_id: str,
        language: str | None = None,
        variant: str | None = None,
    ) -> PromptPreview:
        """Render the prompt for an image without calling a provider.

        Raises:
            KeyError: If ``variant`` is not a known prompt variant.
        """
        language = self._language(language)
        used_variant = variant or self.settings.prompt_variant
        context = await self.aggregator.build(image_id, language)
        prompt = self.composer.compose(used_variant, language, context)
        return PromptPreview(
            image_id=image_id,
            language=language,
            prompt=prompt,
            used_variant=used_variant,
            estimated_tokens=estimate_tokens(prompt),
        )

    async def analyze(
        self,
        image_id: str,
        language: str | None = None,
        options: AnalysisOptions | None = None,
    ) -> AnalysisOutcome:
        return await self.orchestrator.analyze(image_id, self._language(language), options)

    async def analyze_batch(
        self,
        image_ids: Sequence[str],
        language: str | None = None,
        options: AnalysisOptions | None = None,
    ) -> BatchResult:
        return await self.batch.run(image_ids, self._language(language), options)

    def cancel_batch(self) -> int:
        """Stop the running batch and skip every pending job. Returns jobs cancelled."""
        self.batch.cancel()
        return self.ledger.cancel_pending()

    async def approve(self, job_id: int, fields: dict[str, Any] | None = None) -> bool:
        return await self.orchestrator.approve(job_id, fields)

    async def reject(self, job_id: int, reason: str = "") -> bool:
        return await self.orchestrator.reject(job_id, reason)

    def get_stats(self, period: str = "all") -> JobStats:
        return self.ledger.get_stats(period)

    async def resolve_metadata(self, image_id: str, language: str | None = None) -> ResolvedMetadata:
        language = self._language(language)
        return ResolvedMetadata(
            image_id=image_id,
            language=language,
            fields=await self.resolver.resolve_all(image_id, language),
        )

    async def completion_status(self, image_id: str) -> LanguageReport:
        return LanguageReport(
            image_id=image_id,
            status=await self.resolver.get_completion_status(image_id),
            available=await self.resolver.get_available_languages(image_id),
            next_language=await self.resolver.suggest_next_language(image_id),
        )

    async def sync_pricing(self) -> SyncResult:
        if self.pricing_sync is None:
            raise RuntimeError("Pricing synchronization is not configured")
        return await self.pricing_sync.sync()

    async def test_providers(self) -> dict[str, str]:
        return await self.registry.test_connections()

    def clean_audit(self, days: int | None = None) -> int:
        if self.audit is None:
            return 0
        return self.audit.clean_old_events(days or self.settings.audit_retention_days)


def build_service(
    settings: Settings | None = None,
    repository: BaseContentRepository | None = None,
    images: BaseImageSource | None = None,
    store: BaseMetadataStore | None = None,
    registry: ProviderRegistry | None = None,
    conn: sqlite3.Connection | None = None,
    event_bus: EventBus | None = None,
) -> MediaSeoService:
    """Wire the default stack: sqlite ledger/audit/metadata, SDK providers.

    Args:
        settings: Settings snapshot. Loaded from .env if None.
        repository: Content repository (required).
        images: Image-bytes provider. Local files under the cwd if None.
        store: Metadata store. SQLite in the same database if None.
        registry: Provider registry. Built from settings if None.
        conn: Open sqlite connection. Opened at ``settings.database_path`` if None.
        event_bus: Lifecycle bus. A fresh one if None.
    """
    settings = settings or Settings()
    if repository is None:
        raise ValueError("A content repository is required")
    if images is None:
        from mediaseo.images.source import LocalImageSource

        images = LocalImageSource(repository)

    conn = conn or open_database(settings.database_path)
    ledger = SqliteJobLedger(conn)
    audit = SqliteAuditLog(conn)
    store = store or SqliteMetadataStore(conn)
    pricing = PricingTable.load(settings.pricing_file)
    event_bus = event_bus or EventBus()

    aggregator = ContextAggregator(repository, settings)
    composer = PromptComposer(settings)
    if registry is None:
        registry = ProviderRegistry.from_settings(
            settings, composer, images, pricing, event_bus=event_bus,
        )
    else:
        registry.attach_events(event_bus)

    orchestrator = AnalysisOrchestrator(
        settings,
        aggregator,
        registry,
        images,
        ledger,
        store,
        event_bus=event_bus,
        audit=audit,
    )

    limiter = RateLimiter(settings.rate_limit_rpm)

    def _count_request(event: str, payload: dict[str, Any]) -> None:
        if payload.get("provider"):
            limiter.record_request(payload["provider"])

    event_bus.subscribe(events.PROVIDER_REQUEST, _count_request)

    def _next_delay() -> float:
        # A run may fall through to any configured provider.
        return max(
            (limiter.get_delay(name) for name in registry.configured_providers()),
            default=0.0,
        )

    batch = BatchProcessor(
        orchestrator,
        aggregator,
        settings,
        store=store,
        delay_provider=_next_delay,
        event_bus=event_bus,
        audit=audit,
    )

    pricing_sync = PricingSynchronizer(
        pricing,
        SqliteLock(conn, PRICING_LOCK, ttl_s=settings.pricing_sync_lock_ttl_s),
        settings,
        save_path=settings.pricing_file,
    )

    logger.debug(
        "Service ready: providers=%s, database=%s",
        registry.configured_providers(), settings.database_path,
    )
    return MediaSeoService(
        settings,
        aggregator,
        composer,
        registry,
        orchestrator,
        batch,
        ledger,
        LanguageFallbackResolver(store, settings),
        pricing_sync=pricing_sync,
        audit=audit,
    )

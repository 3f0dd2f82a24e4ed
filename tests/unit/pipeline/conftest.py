# tests/unit/pipeline/conftest.py - v1
"""Pipeline fixtures: an orchestrator wired to fake vision clients and in-memory storage."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from mediaseo.config.settings import Settings
from mediaseo.context.aggregator import ContextAggregator
from mediaseo.events.bus import EventBus
from mediaseo.images.source import LocalImageSource
from mediaseo.llm.adapter import ProviderAdapter
from mediaseo.llm.registry import ProviderRegistry
from mediaseo.pipeline.orchestrator import AnalysisOrchestrator
from mediaseo.prompts.composer import PromptComposer
from mediaseo.storage.audit import SqliteAuditLog
from mediaseo.storage.job_ledger import SqliteJobLedger
from mediaseo.storage.metadata_store import InMemoryMetadataStore


@dataclass
class Harness:
    settings: Settings
    orchestrator: AnalysisOrchestrator
    aggregator: ContextAggregator
    ledger: SqliteJobLedger
    store: InMemoryMetadataStore
    audit: SqliteAuditLog
    bus: EventBus
    clients: list[Any]
    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)


@pytest.fixture
def harness(library, uploads, db):
    """Factory: ``harness(clients, **settings)`` -> Harness.

    Each client becomes a configured provider, in list order. A client of
    ``None`` registers an unconfigured ``openai`` slot.
    """

    def _make(clients=None, **overrides) -> Harness:
        params = dict(_env_file=None, site_topic="Travel photography", fallback_order="openai")
        params.update(overrides)
        settings = Settings(**params)
        images = LocalImageSource(library, uploads)
        composer = PromptComposer(settings)
        clients = list(clients or [])

        adapters: dict[str, ProviderAdapter | None] = {}
        for client in clients:
            if client is None:
                adapters["openai"] = None
            else:
                adapters[client.provider_name] = ProviderAdapter(client, composer, images, timeout_s=5.0)
        registry = ProviderRegistry(adapters, list(adapters))

        aggregator = ContextAggregator(library, settings)
        ledger = SqliteJobLedger(db)
        store = InMemoryMetadataStore()
        audit = SqliteAuditLog(db)
        bus = EventBus()
        orchestrator = AnalysisOrchestrator(
            settings, aggregator, registry, images, ledger, store,
            event_bus=bus, audit=audit,
        )
        h = Harness(settings, orchestrator, aggregator, ledger, store, audit, bus, clients)

        def _record(event, payload):
            h.events.append((event, payload))

        for name in ("before_analyze", "after_analyze", "analysis_failed",
                     "before_apply_metadata", "after_apply_metadata", "after_draft_metadata",
                     "batch_started", "batch_completed"):
            bus.subscribe(name, _record)
        return h

    return _make

# src/tracking/pricing_sync.py - v1
"""Synchronize model pricing from remote sources.

Sources, tried in order:
  1. models.dev JSON catalogue (vision-capable anthropic/openai/google models)
  2. CSV price sheet (display name, input price, output price)

Each source is fetched with bounded timeouts and retried with backoff.
When every source fails the current pricing table stays in effect.
A time-boxed global lock guarantees at most one sync at a time.
"""

from __future__ import annotations

import asyncio
import csv
import io
import json
import logging
import urllib.error
import urllib.request
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from mediaseo.core.errors import SyncError
from mediaseo.tracking.models import ModelPricing, SyncResult

if TYPE_CHECKING:
    from mediaseo.config.settings import Settings
    from mediaseo.storage.locks import SqliteLock
    from mediaseo.tracking.cost_calculator import PricingTable

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("anthropic", "openai", "google")

# CSV display name -> model id
CSV_MODEL_MAP: dict[str, str] = {
    "ChatGPT 4o": "gpt-4o",
    "ChatGPT 4o-mini": "gpt-4o-mini",
    "ChatGPT 4.1": "gpt-4.1",
    "Claude Sonnet 4.5": "claude-sonnet-4-5-20250929",
    "Claude Haiku 4.5": "claude-haiku-4-5-20251001",
    "Claude Opus 4.1": "claude-opus-4-1-20250805",
    "Claude 3.5 Haiku": "claude-3-5-haiku-20241022",
    "Gemini 1.5 Flash-8B": "gemini-1.5-flash-8b",
    "Gemini 1.5 Flash": "gemini-1.5-flash",
    "Gemini 2.0 Flash": "gemini-2.0-flash",
    "Gemini 2.5 Flash": "gemini-2.5-flash",
    "Gemini 2.5 Pro": "gemini-2.5-pro",
}

Fetcher = Callable[[str, float], Awaitable[str]]


async def http_get(url: str, timeout: float) -> str:
    """GET a URL in a worker thread with a hard timeout."""

    def _get() -> str:
        req = urllib.request.Request(url, headers={"User-Agent": "mediaseo-pricing-sync"})
        with urllib.request.urlopen(req, timeout=timeout) as resp:  # noqa: S310
            return resp.read().decode("utf-8")

    return await asyncio.to_thread(_get)


def parse_models_dev(payload: dict[str, Any]) -> dict[str, ModelPricing]:
    """Extract vision-capable model prices from a models.dev catalogue."""
    pricing: dict[str, ModelPricing] = {}
    for provider in SUPPORTED_PROVIDERS:
        section = payload.get(provider)
        models = section.get("models") if isinstance(section, dict) else None
        if not isinstance(models, dict):
            continue
        for model_id, model_data in models.items():
            if not isinstance(model_data, dict):
                continue
            cost = model_data.get("cost")
            if not isinstance(cost, dict) or "input" not in cost:
                continue
            modalities = (model_data.get("modalities") or {}).get("input") or []
            if "image" not in modalities:
                continue
            try:
                pricing[model_id] = ModelPricing(
                    model=model_id,
                    provider=provider,
                    input_price_per_1m=float(cost.get("input") or 0),
                    output_price_per_1m=float(cost.get("output") or 0),
                    cache_read_per_1m=_optional_price(cost.get("cache_read")),
                    cache_write_per_1m=_optional_price(cost.get("cache_write")),
                    source="models.dev",
                )
            except (TypeError, ValueError):
                logger.debug("Skipping %s/%s with unparseable cost: %r", provider, model_id, cost)
    return pricing


def _optional_price(value: Any) -> float | None:
    return float(value) if value is not None else None


def _parse_price(raw: str) -> float:
    # "$3,00" -> 3.0
    return float(raw.strip().replace("$", "").replace(",", "."))


def parse_pricing_csv(text: str) -> dict[str, ModelPricing]:
    """Parse a "name,input,output" price sheet; unmapped names are skipped."""
    pricing: dict[str, ModelPricing] = {}
    rows = list(csv.reader(io.StringIO(text)))
    for row in rows[1:]:
        if len(row) < 3:
            continue
        model_id = CSV_MODEL_MAP.get(row[0].strip())
        if model_id is None:
            continue
        try:
            input_price = _parse_price(row[1])
            output_price = _parse_price(row[2])
        except ValueError:
            logger.debug("Skipping CSV row with unparseable price: %s", row)
            continue
        pricing[model_id] = ModelPricing(
            model=model_id,
            input_price_per_1m=input_price,
            output_price_per_1m=output_price,
            source="csv",
        )
    return pricing


class PricingSynchronizer:
    """Refresh a PricingTable from remote sources under a global lock.

    Args:
        table: Pricing table to update in place.
        lock: Time-boxed lock shared across processes.
        settings: Source URLs, timeout, attempt cap and backoff.
        fetch: Async ``(url, timeout) -> body`` callable (defaults to http_get).
        save_path: Where to persist the table after a successful sync.
        sleep: Awaitable sleep between attempts (injectable for tests).
    """

    def __init__(
        self,
        table: PricingTable,
        lock: SqliteLock,
        settings: Settings,
        fetch: Fetcher | None = None,
        save_path: Path | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._table = table
        self._lock = lock
        self._settings = settings
        self._fetch = fetch or http_get
        self._save_path = save_path
        self._sleep = sleep

    async def sync(self) -> SyncResult:
        """Run one synchronization. Never raises for remote failures."""
        result = SyncResult(success=False, timestamp=datetime.now(timezone.utc))

        if not self._lock.acquire():
            result.errors.append("Sync already in progress.")
            return result

        try:
            sources: list[tuple[str, str, Callable[[str], dict[str, ModelPricing]]]] = [
                ("models.dev", self._settings.pricing_api_url, self._parse_json),
            ]
            if self._settings.pricing_csv_url:
                sources.append(("csv", self._settings.pricing_csv_url, parse_pricing_csv))

            for source, url, parser in sources:
                if not url:
                    continue
                try:
                    body = await self._fetch_with_retry(source, url)
                    pricing = parser(body)
                except SyncError as e:
                    logger.warning("Pricing source failed: %s", e)
                    result.errors.append(str(e))
                    continue
                if not pricing:
                    result.errors.append(f"{source}: no models found")
                    continue

                result.models_synced = self._table.update(pricing)
                result.source = source
                result.success = True
                if self._save_path is not None:
                    self._table.save(self._save_path)
                logger.info("Synced %d model prices from %s", result.models_synced, source)
                break
            else:
                logger.warning("Pricing sync failed; keeping existing pricing table")
        finally:
            self._lock.release()

        return result

    async def _fetch_with_retry(self, source: str, url: str) -> str:
        attempts = max(self._settings.pricing_sync_max_attempts, 1)
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                return await self._fetch(url, self._settings.pricing_sync_timeout_s)
            except (urllib.error.URLError, TimeoutError, OSError, ValueError) as e:
                last_error = e
                if attempt < attempts:
                    delay = self._settings.pricing_sync_backoff_s * 2 ** (attempt - 1)
                    logger.warning(
                        "%s fetch failed (attempt %d/%d), retrying in %.1fs: %s",
                        source, attempt, attempts, delay, e,
                    )
                    await self._sleep(delay)
        raise SyncError(source, str(last_error), attempts)

    @staticmethod
    def _parse_json(body: str) -> dict[str, ModelPricing]:
        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise SyncError("models.dev", f"invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise SyncError("models.dev", "unexpected payload shape")
        return parse_models_dev(payload)

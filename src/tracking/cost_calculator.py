# src/tracking/cost_calculator.py - v2
"""Cost calculation for provider calls.

Costs are tokens * price_per_1M / 1e6, rounded to 8 decimals. Unknown
models cost 0.0 rather than failing the call.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from mediaseo.core.models import CostBreakdown
from mediaseo.tracking.models import ModelPricing

logger = logging.getLogger(__name__)

_PRECISION = 8

# Default pricing per 1M tokens, replaced by PricingSynchronizer when it succeeds
DEFAULT_PRICING: dict[str, ModelPricing] = {
    "claude-sonnet-4-5-20250929": ModelPricing(
        model="claude-sonnet-4-5-20250929", provider="anthropic",
        input_price_per_1m=3.0, output_price_per_1m=15.0,
        cache_read_per_1m=0.3, cache_write_per_1m=3.75,
    ),
    "claude-haiku-4-5-20251001": ModelPricing(
        model="claude-haiku-4-5-20251001", provider="anthropic",
        input_price_per_1m=1.0, output_price_per_1m=5.0,
        cache_read_per_1m=0.1, cache_write_per_1m=1.25,
    ),
    "gpt-4o": ModelPricing(
        model="gpt-4o", provider="openai",
        input_price_per_1m=2.50, output_price_per_1m=10.0,
        cache_read_per_1m=1.25,
    ),
    "gpt-4o-mini": ModelPricing(
        model="gpt-4o-mini", provider="openai",
        input_price_per_1m=0.15, output_price_per_1m=0.60,
        cache_read_per_1m=0.075,
    ),
    "gemini-1.5-flash": ModelPricing(
        model="gemini-1.5-flash", provider="google",
        input_price_per_1m=0.075, output_price_per_1m=0.30,
    ),
    "gemini-1.5-pro": ModelPricing(
        model="gemini-1.5-pro", provider="google",
        input_price_per_1m=1.25, output_price_per_1m=5.0,
    ),
}


class PricingTable:
    """In-memory pricing cache keyed by model id, optionally backed by a JSON file."""

    def __init__(self, pricing: dict[str, ModelPricing] | None = None) -> None:
        self._pricing: dict[str, ModelPricing] = dict(
            DEFAULT_PRICING if pricing is None else pricing
        )

    def get(self, model: str) -> ModelPricing | None:
        return self._pricing.get(model)

    def update(self, pricing: dict[str, ModelPricing]) -> int:
        """Merge new prices over the current table. Returns the number merged."""
        self._pricing.update(pricing)
        return len(pricing)

    @property
    def models(self) -> list[str]:
        return sorted(self._pricing)

    def save(self, path: Path) -> None:
        """Write the table to a JSON file."""
        path = Path(path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {k: v.model_dump() for k, v in sorted(self._pricing.items())}
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> PricingTable:
        """Load a table saved by save(); defaults are kept for missing models."""
        table = cls()
        path = Path(path).expanduser()
        if not path.exists():
            return table
        raw = json.loads(path.read_text(encoding="utf-8"))
        table.update({k: ModelPricing(**v) for k, v in raw.items()})
        logger.debug("Loaded %d model prices from %s", len(raw), path)
        return table


def calculate_cost(
    model: str,
    input_tokens: int,
    output_tokens: int,
    cache_read_tokens: int = 0,
    cache_write_tokens: int = 0,
    pricing: PricingTable | None = None,
) -> CostBreakdown:
    """Compute the USD cost breakdown of a single provider call."""
    table = pricing or PricingTable()
    p = table.get(model)
    if p is None:
        logger.debug("No pricing for model %s, cost recorded as 0", model)
        return CostBreakdown()

    input_cost = round(input_tokens * p.input_price_per_1m / 1_000_000, _PRECISION)
    output_cost = round(output_tokens * p.output_price_per_1m / 1_000_000, _PRECISION)
    cache_read_cost = 0.0
    cache_write_cost = 0.0
    if cache_read_tokens and p.cache_read_per_1m is not None:
        cache_read_cost = round(cache_read_tokens * p.cache_read_per_1m / 1_000_000, _PRECISION)
    if cache_write_tokens and p.cache_write_per_1m is not None:
        cache_write_cost = round(cache_write_tokens * p.cache_write_per_1m / 1_000_000, _PRECISION)

    total = round(input_cost + output_cost + cache_read_cost + cache_write_cost, _PRECISION)
    return CostBreakdown(
        input_cost=input_cost,
        output_cost=output_cost,
        cache_read_cost=cache_read_cost,
        cache_write_cost=cache_write_cost,
        total_cost=total,
    )

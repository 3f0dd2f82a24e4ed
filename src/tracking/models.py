# src/tracking/models.py - v2
"""Tracking domain models: ModelPricing, SyncResult."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ModelPricing(BaseModel):
    """Vision model pricing in USD per 1M tokens."""

    model: str
    provider: str = ""
    input_price_per_1m: float
    output_price_per_1m: float
    cache_read_per_1m: float | None = None
    cache_write_per_1m: float | None = None
    source: str = "default"


class SyncResult(BaseModel):
    """Outcome of one pricing synchronization attempt."""

    success: bool
    models_synced: int = 0
    errors: list[str] = Field(default_factory=list)
    timestamp: datetime
    source: str | None = None

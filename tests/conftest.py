# tests/conftest.py - v2
"""Shared test fixtures for all unit and integration tests.

Provides settings, a small in-memory content library, a fake vision client
and an in-memory sqlite database. No network or SDK calls.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from mediaseo.config.settings import Settings
from mediaseo.context.repository import ContentRecord, InMemoryContentRepository
from mediaseo.llm.base_client import BaseVisionClient
from mediaseo.llm.models import ImageInput, LLMResponse, ModelCapabilities
from mediaseo.storage.database import open_database

GOOD_FIELDS: dict[str, Any] = {
    "alt": "Golden sunset over a sandy beach with gentle ocean waves",
    "caption": "A warm golden sunset lights up the sandy beach as waves roll gently onto the shore.",
    "title": "Golden Sunset Over Sandy Beach",
    "keywords": ["sunset", "beach", "ocean", "golden hour"],
    "score": 0.95,
}


def make_reply(**overrides: Any) -> str:
    """JSON reply as a vision model would send it."""
    fields = {**GOOD_FIELDS, **overrides}
    return json.dumps({k: v for k, v in fields.items() if v is not None})


class FakeVisionClient(BaseVisionClient):
    """Scripted vision client: returns ``reply``, raises ``error`` or stalls ``delay_s``."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "gpt-4o",
        reply: str | None = None,
        error: Exception | None = None,
        delay_s: float = 0.0,
        report_usage: bool = True,
        valid: bool = True,
    ) -> None:
        self._provider = provider
        self._model = model
        self._reply = reply if reply is not None else make_reply()
        self._error = error
        self._delay_s = delay_s
        self._report_usage = report_usage
        self._valid = valid
        self.calls: list[str] = []

    async def complete_with_vision(
        self,
        prompt: str,
        image: ImageInput,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> LLMResponse:
        self.calls.append(prompt)
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        if self._error is not None:
            raise self._error
        return LLMResponse(
            content=self._reply,
            input_tokens=1200 if self._report_usage else None,
            output_tokens=80 if self._report_usage else None,
            model=self._model,
            provider=self._provider,
            latency_ms=12,
        )

    def validate_config(self) -> bool:
        return self._valid

    async def test_connection(self) -> bool:
        if self._error is not None:
            raise self._error
        return True

    @property
    def capabilities(self) -> ModelCapabilities:
        return ModelCapabilities(json_mode=True)

    @property
    def provider_name(self) -> str:
        return self._provider

    @property
    def model(self) -> str:
        return self._model


# === FIXTURES: Settings ===


@pytest.fixture
def settings() -> Settings:
    """Settings with one configured provider and a site topic."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test-000000000000000000000000",
        fallback_order="openai",
        site_topic="Travel photography",
        database_path=":memory:",
    )


# === FIXTURES: Content library ===


def build_library() -> InMemoryContentRepository:
    records = [
        ContentRecord(
            id="100", type="attachment", title="sunset-beach-2024",
            mime_type="image/jpeg", file="2024/07/sunset-beach-2024.jpg",
            width=1600, height=900, parent_id="5",
        ),
        ContentRecord(
            id="5", type="post", title="Summer on the Algarve coast",
            excerpt="Two weeks of beaches, cliffs and seafood.",
            translations={"en": "5", "cs": "6"},
        ),
        ContentRecord(
            id="6", type="post", title="Léto na pobřeží Algarve",
            language="cs", translations={"en": "5", "cs": "6"},
        ),
        ContentRecord(
            id="101", type="attachment", mime_type="image/png",
            file="2024/07/hero-banner.png", width=800, height=800,
        ),
        ContentRecord(id="7", type="page", title="About our travels"),
        ContentRecord(id="102", type="attachment", mime_type="application/pdf", file="menu.pdf"),
        ContentRecord(
            id="103", type="attachment", mime_type="image/jpeg", file="x1.jpg",
        ),
        ContentRecord(
            id="104", type="attachment", mime_type="image/tiff", file="scan-archive.tiff",
        ),
    ]
    meta = {
        "100": {
            "alt_text": "Beach at sunset",
            "exif": {
                "camera": "Canon EOS R5",
                "latitude": 37.1,
                "longitude": -8.5,
                "created_timestamp": 1719835200,
                "copyright": "Jane Doe",
            },
        },
        "7": {"thumbnail_id": "101"},
    }
    terms = {
        "category": {"5": ["Travel"], "6": ["Cestování"]},
        "post_tag": {"5": ["beach", "sunset"]},
    }
    return InMemoryContentRepository(records=records, meta=meta, terms=terms)


@pytest.fixture
def library() -> InMemoryContentRepository:
    return build_library()


@pytest.fixture
def uploads(tmp_path):
    """Uploads root holding the image files referenced by the library."""
    for rel in ("2024/07/sunset-beach-2024.jpg", "2024/07/hero-banner.png", "x1.jpg"):
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\xff\xd8\xff\xe0fake-image-bytes")
    return tmp_path


# === FIXTURES: Storage and providers ===


@pytest.fixture
def db():
    conn = open_database(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def make_client():
    """Factory for scripted vision clients."""
    return FakeVisionClient

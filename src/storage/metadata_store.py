# src/storage/metadata_store.py - v1
"""Per-image key/value metadata: generated values, live fields and draft slots.

Generated values are keyed ``{field}_{language}``. Live fields are what the
site shows (alt, caption, title). Draft slots hold metadata awaiting review
without touching the live fields.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from mediaseo.core.errors import PersistenceError
from mediaseo.storage.database import open_database

logger = logging.getLogger(__name__)

SLOT_LANGUAGE = "lang"
SLOT_LIVE = "live"
SLOT_DRAFT = "draft"


def metadata_key(field: str, language: str) -> str:
    return f"{field}_{language}"


class BaseMetadataStore(ABC):
    """Eventually-consistent metadata store; no transactions required."""

    @abstractmethod
    async def get(self, image_id: str, field: str, language: str) -> Any | None:
        """Generated value for a field in one language."""

    @abstractmethod
    async def set(self, image_id: str, field: str, language: str, value: Any) -> None:
        """Store a generated value for a field in one language."""

    @abstractmethod
    async def get_all(self, image_id: str) -> dict[str, Any]:
        """Every generated value of an image keyed ``{field}_{language}``."""

    @abstractmethod
    async def get_live(self, image_id: str, field: str) -> Any | None:
        """Value currently shown on the site."""

    @abstractmethod
    async def set_live(self, image_id: str, field: str, value: Any) -> None:
        """Replace the value shown on the site."""

    @abstractmethod
    async def get_drafts(self, image_id: str) -> dict[str, Any]:
        """Staged values awaiting review, keyed by field (or ``keywords_{lang}``)."""

    @abstractmethod
    async def set_draft(self, image_id: str, key: str, value: Any) -> None:
        """Stage a value for review."""

    @abstractmethod
    async def clear_drafts(self, image_id: str) -> None:
        """Drop every staged value of an image."""


class InMemoryMetadataStore(BaseMetadataStore):
    """Dict-backed store for tests and dry runs."""

    def __init__(self) -> None:
        self._data: dict[tuple[str, str], dict[str, Any]] = {}

    def _slot(self, image_id: str, slot: str) -> dict[str, Any]:
        return self._data.setdefault((image_id, slot), {})

    async def get(self, image_id: str, field: str, language: str) -> Any | None:
        return self._slot(image_id, SLOT_LANGUAGE).get(metadata_key(field, language))

    async def set(self, image_id: str, field: str, language: str, value: Any) -> None:
        self._slot(image_id, SLOT_LANGUAGE)[metadata_key(field, language)] = value

    async def get_all(self, image_id: str) -> dict[str, Any]:
        return dict(self._slot(image_id, SLOT_LANGUAGE))

    async def get_live(self, image_id: str, field: str) -> Any | None:
        return self._slot(image_id, SLOT_LIVE).get(field)

    async def set_live(self, image_id: str, field: str, value: Any) -> None:
        self._slot(image_id, SLOT_LIVE)[field] = value

    async def get_drafts(self, image_id: str) -> dict[str, Any]:
        return dict(self._slot(image_id, SLOT_DRAFT))

    async def set_draft(self, image_id: str, key: str, value: Any) -> None:
        self._slot(image_id, SLOT_DRAFT)[key] = value

    async def clear_drafts(self, image_id: str) -> None:
        self._data.pop((image_id, SLOT_DRAFT), None)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS image_metadata (
    image_id TEXT NOT NULL,
    slot TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (image_id, slot, key)
);
"""


class SqliteMetadataStore(BaseMetadataStore):
    """SQLite-backed metadata store; values are stored as JSON."""

    def __init__(self, db: Path | str | sqlite3.Connection) -> None:
        self._conn = db if isinstance(db, sqlite3.Connection) else open_database(db)
        self._conn.executescript(_SCHEMA)

    def _read(self, image_id: str, slot: str, key: str) -> Any | None:
        row = self._conn.execute(
            "SELECT value FROM image_metadata WHERE image_id = ? AND slot = ? AND key = ?",
            (image_id, slot, key),
        ).fetchone()
        return None if row is None else json.loads(row[0])

    def _read_slot(self, image_id: str, slot: str) -> dict[str, Any]:
        rows = self._conn.execute(
            "SELECT key, value FROM image_metadata WHERE image_id = ? AND slot = ? ORDER BY key",
            (image_id, slot),
        ).fetchall()
        return {row[0]: json.loads(row[1]) for row in rows}

    def _write(self, image_id: str, slot: str, key: str, value: Any) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    """INSERT OR REPLACE INTO image_metadata
                       (image_id, slot, key, value, updated_at) VALUES (?, ?, ?, ?, ?)""",
                    (
                        image_id, slot, key,
                        json.dumps(value, ensure_ascii=False),
                        datetime.now(timezone.utc).isoformat(),
                    ),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write metadata {slot}/{key} for {image_id}: {e}") from e

    async def get(self, image_id: str, field: str, language: str) -> Any | None:
        return self._read(image_id, SLOT_LANGUAGE, metadata_key(field, language))

    async def set(self, image_id: str, field: str, language: str, value: Any) -> None:
        self._write(image_id, SLOT_LANGUAGE, metadata_key(field, language), value)

    async def get_all(self, image_id: str) -> dict[str, Any]:
        return self._read_slot(image_id, SLOT_LANGUAGE)

    async def get_live(self, image_id: str, field: str) -> Any | None:
        return self._read(image_id, SLOT_LIVE, field)

    async def set_live(self, image_id: str, field: str, value: Any) -> None:
        self._write(image_id, SLOT_LIVE, field, value)

    async def get_drafts(self, image_id: str) -> dict[str, Any]:
        return self._read_slot(image_id, SLOT_DRAFT)

    async def set_draft(self, image_id: str, key: str, value: Any) -> None:
        self._write(image_id, SLOT_DRAFT, key, value)

    async def clear_drafts(self, image_id: str) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    "DELETE FROM image_metadata WHERE image_id = ? AND slot = ?",
                    (image_id, SLOT_DRAFT),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to clear drafts for {image_id}: {e}") from e

# src/storage/audit.py - v1
"""Audit trail of analysis and approval events.

Recording is fire-and-forget: a failed write is logged and never reaches
the pipeline.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from mediaseo.storage.database import open_database

logger = logging.getLogger(__name__)

EVENT_TYPES: tuple[str, ...] = (
    "analysis_started",
    "analysis_completed",
    "analysis_failed",
    "metadata_applied",
    "metadata_drafted",
    "metadata_approved",
    "metadata_rejected",
    "batch_started",
    "batch_completed",
    "batch_cancelled",
    "provider_error",
)


class BaseAuditSink(ABC):
    """Destination for audit events."""

    @abstractmethod
    async def record(
        self,
        event_type: str,
        image_id: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record one event. Must not raise."""


class NullAuditSink(BaseAuditSink):
    """Discards events."""

    async def record(
        self,
        event_type: str,
        image_id: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        return None


_SCHEMA = """
CREATE TABLE IF NOT EXISTS audit_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    image_id TEXT,
    metadata TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_audit_image ON audit_events(image_id);
CREATE INDEX IF NOT EXISTS idx_audit_created ON audit_events(created_at);
"""


class SqliteAuditLog(BaseAuditSink):
    """SQLite-backed audit log."""

    def __init__(self, db: Path | str | sqlite3.Connection) -> None:
        self._conn = db if isinstance(db, sqlite3.Connection) else open_database(db)
        self._conn.executescript(_SCHEMA)

    async def record(
        self,
        event_type: str,
        image_id: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if event_type not in EVENT_TYPES:
            logger.warning("Recording unknown audit event type %r", event_type)
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO audit_events (event_type, image_id, metadata, created_at) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        event_type,
                        image_id,
                        json.dumps(metadata or {}, default=str, ensure_ascii=False),
                        datetime.now(timezone.utc).isoformat(),
                    ),
                )
        except sqlite3.Error as e:
            logger.warning("Audit write failed for %s/%s: %s", event_type, image_id, e)

    def get_audit_trail(
        self,
        image_id: str | None = None,
        event_type: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Most recent events first."""
        clauses: list[str] = []
        params: list[Any] = []
        if image_id is not None:
            clauses.append("image_id = ?")
            params.append(image_id)
        if event_type is not None:
            clauses.append("event_type = ?")
            params.append(event_type)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._conn.execute(
            f"SELECT id, event_type, image_id, metadata, created_at FROM audit_events "  # noqa: S608
            f"{where} ORDER BY id DESC LIMIT ?",
            (*params, limit),
        ).fetchall()
        return [
            {
                "id": row["id"],
                "event_type": row["event_type"],
                "image_id": row["image_id"],
                "metadata": json.loads(row["metadata"]),
                "created_at": row["created_at"],
            }
            for row in rows
        ]

    def clean_old_events(self, days: int = 90) -> int:
        """Delete events older than ``days``. Returns the number removed."""
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM audit_events WHERE created_at < ?", (cutoff,)
            )
        removed = cursor.rowcount
        if removed:
            logger.info("Removed %d audit events older than %d days", removed, days)
        return removed

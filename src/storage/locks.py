# src/storage/locks.py - v1
"""Time-boxed named lock shared by every process using the same database.

An expired lock is treated as free, so a crashed holder blocks others for
at most ``ttl_s`` seconds.
"""

from __future__ import annotations

import logging
import sqlite3
import time
import uuid

from mediaseo.core.errors import PersistenceError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS locks (
    name TEXT PRIMARY KEY,
    owner TEXT NOT NULL,
    expires_at REAL NOT NULL
);
"""


class SqliteLock:
    """Named lock with expiry, stored in a sqlite table."""

    def __init__(self, conn: sqlite3.Connection, name: str, ttl_s: float = 300.0) -> None:
        self._conn = conn
        self._name = name
        self._ttl_s = ttl_s
        self._owner = uuid.uuid4().hex
        self._conn.executescript(_SCHEMA)

    @property
    def name(self) -> str:
        return self._name

    def acquire(self) -> bool:
        """Take the lock. Returns False when another live holder owns it."""
        now = time.time()
        try:
            with self._conn:
                self._conn.execute(
                    "DELETE FROM locks WHERE name = ? AND expires_at <= ?",
                    (self._name, now),
                )
                cursor = self._conn.execute(
                    "INSERT OR IGNORE INTO locks (name, owner, expires_at) VALUES (?, ?, ?)",
                    (self._name, self._owner, now + self._ttl_s),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to acquire lock {self._name}: {e}") from e
        acquired = cursor.rowcount == 1
        if not acquired:
            logger.debug("Lock %s is held by another owner", self._name)
        return acquired

    def release(self) -> None:
        """Release the lock if this instance holds it."""
        try:
            with self._conn:
                self._conn.execute(
                    "DELETE FROM locks WHERE name = ? AND owner = ?",
                    (self._name, self._owner),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to release lock {self._name}: {e}") from e

    def is_locked(self) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM locks WHERE name = ? AND expires_at > ?",
            (self._name, time.time()),
        ).fetchone()
        return row is not None

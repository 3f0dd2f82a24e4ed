# src/storage/database.py - v1
"""Shared sqlite3 connection helper for the ledger, audit log, metadata and locks.

Uses stdlib sqlite3, no external dependency.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

MEMORY = ":memory:"


def open_database(db_path: Path | str) -> sqlite3.Connection:
    """Open (and create) a sqlite database with row access by column name."""
    if str(db_path) == MEMORY:
        conn = sqlite3.connect(MEMORY)
    else:
        path = Path(db_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(path))
        conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    return conn

# src/storage/job_ledger.py - v1
"""Persistent ledger of analysis jobs, with status transitions and cost reports.

A job is created once per analysis attempt; later updates only move its
status and fill in timestamps. Writes fail loudly with PersistenceError.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from mediaseo.core.errors import PersistenceError
from mediaseo.core.models import Job, JobStats

logger = logging.getLogger(__name__)

STATS_PERIODS = ("today", "week", "month", "all")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS jobs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    image_id TEXT NOT NULL,
    language TEXT NOT NULL,
    provider TEXT NOT NULL DEFAULT '',
    model TEXT NOT NULL DEFAULT '',
    prompt_version TEXT NOT NULL DEFAULT '1.0',
    context TEXT NOT NULL DEFAULT '{}',
    response TEXT NOT NULL DEFAULT '{}',
    input_tokens INTEGER NOT NULL DEFAULT 0,
    output_tokens INTEGER NOT NULL DEFAULT 0,
    estimated_input_tokens INTEGER,
    input_cost REAL NOT NULL DEFAULT 0,
    output_cost REAL NOT NULL DEFAULT 0,
    total_cost REAL NOT NULL DEFAULT 0,
    score REAL,
    status TEXT NOT NULL DEFAULT 'pending',
    error_message TEXT,
    retry_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    processed_at TEXT,
    approved_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_jobs_image ON jobs(image_id, language);
CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);
CREATE INDEX IF NOT EXISTS idx_jobs_created ON jobs(created_at);
"""

_UPDATABLE = frozenset({
    "provider", "model", "response", "input_tokens", "output_tokens",
    "estimated_input_tokens", "input_cost", "output_cost", "total_cost",
    "score", "error_message", "retry_count", "processed_at", "approved_at",
})


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _period_start(period: str, now: datetime | None = None) -> datetime | None:
    """Lower bound of a stats period (None for ``all``)."""
    now = now or _now()
    if period == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now - timedelta(days=30)
    if period == "all":
        return None
    raise ValueError(f"Unknown stats period {period!r}. Expected one of {STATS_PERIODS}")


class SqliteJobLedger:
    """Job persistence on SQLite.

    Args:
        conn: Open connection (see ``open_database``) with ``sqlite3.Row`` rows.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._conn.executescript(_SCHEMA)

    @classmethod
    def open(cls, db_path: Path | str) -> SqliteJobLedger:
        from mediaseo.storage.database import open_database

        return cls(open_database(db_path))

    # --- Writes ---

    def record(self, job: Job) -> Job:
        """Insert a new job and return it with ``id`` and ``created_at`` set."""
        created_at = job.created_at or _now()
        try:
            with self._conn:
                cursor = self._conn.execute(
                    """INSERT INTO jobs (
                        image_id, language, provider, model, prompt_version,
                        context, response, input_tokens, output_tokens,
                        estimated_input_tokens, input_cost, output_cost, total_cost,
                        score, status, error_message, retry_count,
                        created_at, processed_at, approved_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        job.image_id, job.language, job.provider, job.model,
                        job.prompt_version,
                        json.dumps(job.context, default=str, ensure_ascii=False),
                        json.dumps(job.response, default=str, ensure_ascii=False),
                        job.input_tokens, job.output_tokens, job.estimated_input_tokens,
                        job.input_cost, job.output_cost, job.total_cost,
                        job.score, job.status, job.error_message, job.retry_count,
                        _ts(created_at), _ts(job.processed_at), _ts(job.approved_at),
                    ),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to record job for image {job.image_id}: {e}") from e

        saved = job.model_copy(update={"id": cursor.lastrowid, "created_at": created_at})
        logger.debug("Recorded job %s (%s) for image %s", saved.id, saved.status, saved.image_id)
        return saved

    def update_status(self, job_id: int, status: str, **fields: Any) -> Job:
        """Move a job to ``status`` and update any of the mutable columns."""
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update job columns: {sorted(unknown)}")

        assignments = ["status = ?"]
        params: list[Any] = [status]
        for column, value in fields.items():
            if isinstance(value, datetime):
                value = _ts(value)
            elif column == "response":
                value = json.dumps(value, default=str, ensure_ascii=False)
            assignments.append(f"{column} = ?")
            params.append(value)
        params.append(job_id)

        try:
            with self._conn:
                cursor = self._conn.execute(
                    f"UPDATE jobs SET {', '.join(assignments)} WHERE id = ?",  # noqa: S608
                    params,
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to update job {job_id}: {e}") from e
        if cursor.rowcount == 0:
            raise PersistenceError(f"Job {job_id} not found.")

        job = self.get_job(job_id)
        assert job is not None
        return job

    def approve(self, job_id: int) -> Job:
        return self.update_status(job_id, "approved", approved_at=_now())

    def reject(self, job_id: int, reason: str = "") -> Job:
        """Mark a job as skipped by a reviewer."""
        return self.update_status(job_id, "skipped", error_message=reason or "Rejected")

    def cancel_pending(self, image_ids: list[str] | None = None) -> int:
        """Move pending jobs to ``skipped``. Returns the number cancelled."""
        sql = "UPDATE jobs SET status = 'skipped' WHERE status = 'pending'"
        params: list[Any] = []
        if image_ids:
            sql += f" AND image_id IN ({', '.join('?' * len(image_ids))})"
            params.extend(image_ids)
        try:
            with self._conn:
                cursor = self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to cancel pending jobs: {e}") from e
        return cursor.rowcount

    # --- Reads ---

    def get_job(self, job_id: int) -> Job | None:
        row = self._conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return self._row_to_job(row) if row is not None else None

    def get_jobs_for_image(
        self,
        image_id: str,
        language: str | None = None,
        status: str | None = None,
    ) -> list[Job]:
        """Jobs of one image, newest first."""
        sql = "SELECT * FROM jobs WHERE image_id = ?"
        params: list[Any] = [image_id]
        if language is not None:
            sql += " AND language = ?"
            params.append(language)
        if status is not None:
            sql += " AND status = ?"
            params.append(status)
        sql += " ORDER BY id DESC"
        return [self._row_to_job(r) for r in self._conn.execute(sql, params).fetchall()]

    def get_latest_job(self, image_id: str, language: str | None = None) -> Job | None:
        jobs = self.get_jobs_for_image(image_id, language)
        return jobs[0] if jobs else None

    def get_pending_jobs(self, limit: int = 50) -> list[Job]:
        """Jobs awaiting review, oldest first."""
        rows = self._conn.execute(
            "SELECT * FROM jobs WHERE status = 'pending' ORDER BY id ASC LIMIT ?",
            (limit,),
        ).fetchall()
        return [self._row_to_job(r) for r in rows]

    def get_stats(self, period: str = "all") -> JobStats:
        start = _period_start(period)
        where, params = ("WHERE created_at >= ?", [_ts(start)]) if start else ("", [])

        counts = {
            row["status"]: row["n"]
            for row in self._conn.execute(
                f"SELECT status, COUNT(*) AS n FROM jobs {where} GROUP BY status",  # noqa: S608
                params,
            ).fetchall()
        }
        totals = self._conn.execute(
            f"SELECT COALESCE(SUM(total_cost), 0) AS cost FROM jobs {where}",  # noqa: S608
            params,
        ).fetchone()
        score_filter = "AND" if where else "WHERE"
        avg = self._conn.execute(
            f"SELECT AVG(score) AS avg_score FROM jobs {where} {score_filter} "  # noqa: S608
            "score IS NOT NULL AND status IN ('processed', 'approved')",
            params,
        ).fetchone()

        return JobStats(
            period=period,
            total=sum(counts.values()),
            pending=counts.get("pending", 0),
            processing=counts.get("processing", 0),
            processed=counts.get("processed", 0),
            approved=counts.get("approved", 0),
            failed=counts.get("failed", 0),
            skipped=counts.get("skipped", 0),
            total_cost=round(totals["cost"], 6),
            avg_score=round(avg["avg_score"] or 0.0, 4),
        )

    def get_total_cost(self, since: datetime | None = None) -> float:
        if since is None:
            row = self._conn.execute(
                "SELECT COALESCE(SUM(total_cost), 0) AS cost FROM jobs"
            ).fetchone()
        else:
            row = self._conn.execute(
                "SELECT COALESCE(SUM(total_cost), 0) AS cost FROM jobs WHERE created_at >= ?",
                (_ts(since),),
            ).fetchone()
        return round(row["cost"], 6)

    def get_cost_by_model(self) -> dict[str, dict[str, Any]]:
        """model -> {provider, jobs, input_tokens, output_tokens, total_cost}."""
        rows = self._conn.execute(
            """SELECT model, provider, COUNT(*) AS jobs,
                      SUM(input_tokens) AS input_tokens,
                      SUM(output_tokens) AS output_tokens,
                      SUM(total_cost) AS total_cost
               FROM jobs WHERE model != ''
               GROUP BY model, provider ORDER BY total_cost DESC"""
        ).fetchall()
        return {
            row["model"]: {
                "provider": row["provider"],
                "jobs": row["jobs"],
                "input_tokens": row["input_tokens"] or 0,
                "output_tokens": row["output_tokens"] or 0,
                "total_cost": round(row["total_cost"] or 0.0, 6),
            }
            for row in rows
        }

    def get_cost_by_date_range(self, start: datetime, end: datetime) -> list[dict[str, Any]]:
        """Daily cost rows ``{date, jobs, total_cost}`` with ``start <= created_at < end``."""
        rows = self._conn.execute(
            """SELECT substr(created_at, 1, 10) AS day, COUNT(*) AS jobs,
                      SUM(total_cost) AS total_cost
               FROM jobs WHERE created_at >= ? AND created_at < ?
               GROUP BY day ORDER BY day""",
            (_ts(start), _ts(end)),
        ).fetchall()
        return [
            {"date": row["day"], "jobs": row["jobs"], "total_cost": round(row["total_cost"] or 0.0, 6)}
            for row in rows
        ]

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> Job:
        data = dict(row)
        data["context"] = json.loads(data["context"] or "{}")
        data["response"] = json.loads(data["response"] or "{}")
        for key in ("created_at", "processed_at", "approved_at"):
            if data[key]:
                data[key] = datetime.fromisoformat(data[key])
        return Job.model_validate(data)

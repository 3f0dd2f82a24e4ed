# tests/unit/storage/test_unit_job_ledger.py - v1
"""Tests for storage/job_ledger.py."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from mediaseo.core.errors import PersistenceError
from mediaseo.core.models import Job
from mediaseo.storage.job_ledger import SqliteJobLedger, _period_start


def _job(**kwargs) -> Job:
    defaults = dict(
        image_id="100", language="en", provider="openai", model="gpt-4o",
        input_tokens=1200, output_tokens=80, total_cost=0.0038,
        score=0.9, status="processed", context={"post_title": "Beach"},
        response={"fields": {"alt": "A beach"}},
    )
    defaults.update(kwargs)
    return Job(**defaults)


@pytest.fixture
def ledger(db) -> SqliteJobLedger:
    return SqliteJobLedger(db)


class TestRecord:
    def test_assigns_id_and_created_at(self, ledger):
        job = ledger.record(_job())
        assert job.id == 1
        assert job.created_at is not None

    def test_round_trip_json_columns(self, ledger):
        job = ledger.record(_job())
        loaded = ledger.get_job(job.id)
        assert loaded.context == {"post_title": "Beach"}
        assert loaded.response["fields"]["alt"] == "A beach"
        assert loaded.status == "processed"

    def test_unknown_job(self, ledger):
        assert ledger.get_job(42) is None


class TestStatusTransitions:
    def test_update_status(self, ledger):
        job = ledger.record(_job(status="pending"))
        updated = ledger.update_status(job.id, "failed", error_message="boom")
        assert updated.status == "failed"
        assert updated.error_message == "boom"

    def test_update_rejects_unknown_column(self, ledger):
        job = ledger.record(_job())
        with pytest.raises(ValueError, match="Cannot update"):
            ledger.update_status(job.id, "processed", image_id="x")

    def test_update_missing_job(self, ledger):
        with pytest.raises(PersistenceError, match="not found"):
            ledger.update_status(99, "approved")

    def test_approve(self, ledger):
        job = ledger.record(_job(status="pending"))
        approved = ledger.approve(job.id)
        assert approved.status == "approved"
        assert approved.approved_at is not None

    def test_reject(self, ledger):
        job = ledger.record(_job(status="pending"))
        assert ledger.reject(job.id, "Off-topic").error_message == "Off-topic"
        assert ledger.get_job(job.id).status == "skipped"
        other = ledger.record(_job(status="pending"))
        assert ledger.reject(other.id).error_message == "Rejected"

    def test_cancel_pending(self, ledger):
        ledger.record(_job(status="pending"))
        ledger.record(_job(image_id="101", status="pending"))
        ledger.record(_job(status="processed"))
        assert ledger.cancel_pending(["101"]) == 1
        assert ledger.cancel_pending() == 1
        assert ledger.get_pending_jobs() == []


class TestReads:
    def test_jobs_for_image_newest_first(self, ledger):
        first = ledger.record(_job())
        second = ledger.record(_job(status="failed", score=None))
        ledger.record(_job(language="cs"))
        jobs = ledger.get_jobs_for_image("100", "en")
        assert [j.id for j in jobs] == [second.id, first.id]
        assert [j.id for j in ledger.get_jobs_for_image("100", status="failed")] == [second.id]
        assert ledger.get_latest_job("100", "en").id == second.id
        assert ledger.get_latest_job("404") is None

    def test_pending_oldest_first(self, ledger):
        a = ledger.record(_job(status="pending"))
        b = ledger.record(_job(status="pending"))
        assert [j.id for j in ledger.get_pending_jobs()] == [a.id, b.id]
        assert len(ledger.get_pending_jobs(limit=1)) == 1


class TestStats:
    def test_counts_and_average(self, ledger):
        ledger.record(_job(score=0.9))
        ledger.record(_job(status="approved", score=0.7))
        ledger.record(_job(status="failed", score=0.1, total_cost=0.001))
        ledger.record(_job(status="pending", score=0.2))
        stats = ledger.get_stats("all")
        assert stats.total == 4
        assert stats.processed == 1
        assert stats.approved == 1
        assert stats.failed == 1
        assert stats.pending == 1
        assert stats.avg_score == pytest.approx(0.8)
        assert stats.total_cost == pytest.approx(0.0124)

    def test_period_excludes_old_jobs(self, ledger):
        ledger.record(_job(created_at=datetime(2020, 1, 1, tzinfo=timezone.utc)))
        ledger.record(_job())
        assert ledger.get_stats("today").total == 1
        assert ledger.get_stats("all").total == 2

    def test_empty(self, ledger):
        stats = ledger.get_stats("week")
        assert stats.total == 0
        assert stats.avg_score == 0.0

    def test_unknown_period(self, ledger):
        with pytest.raises(ValueError, match="Unknown stats period"):
            ledger.get_stats("year")

    def test_period_start(self):
        now = datetime(2024, 7, 15, 13, 30, tzinfo=timezone.utc)
        assert _period_start("today", now) == datetime(2024, 7, 15, tzinfo=timezone.utc)
        assert _period_start("week", now) == now - timedelta(days=7)
        assert _period_start("all", now) is None


class TestCostReports:
    def test_total_cost(self, ledger):
        ledger.record(_job(created_at=datetime(2020, 1, 1, tzinfo=timezone.utc)))
        ledger.record(_job())
        assert ledger.get_total_cost() == pytest.approx(0.0076)
        since = datetime.now(timezone.utc) - timedelta(days=1)
        assert ledger.get_total_cost(since) == pytest.approx(0.0038)

    def test_cost_by_model(self, ledger):
        ledger.record(_job())
        ledger.record(_job())
        ledger.record(_job(provider="google", model="gemini-1.5-flash", total_cost=0.0001))
        ledger.record(_job(provider="", model="", status="failed", total_cost=0.0))
        report = ledger.get_cost_by_model()
        assert list(report) == ["gpt-4o", "gemini-1.5-flash"]
        assert report["gpt-4o"]["jobs"] == 2
        assert report["gpt-4o"]["input_tokens"] == 2400
        assert report["gpt-4o"]["total_cost"] == pytest.approx(0.0076)

    def test_cost_by_date_range(self, ledger):
        ledger.record(_job(created_at=datetime(2024, 7, 1, 9, tzinfo=timezone.utc)))
        ledger.record(_job(created_at=datetime(2024, 7, 1, 18, tzinfo=timezone.utc)))
        ledger.record(_job(created_at=datetime(2024, 7, 3, 9, tzinfo=timezone.utc)))
        ledger.record(_job(created_at=datetime(2024, 8, 1, tzinfo=timezone.utc)))
        rows = ledger.get_cost_by_date_range(
            datetime(2024, 7, 1, tzinfo=timezone.utc), datetime(2024, 8, 1, tzinfo=timezone.utc)
        )
        assert [r["date"] for r in rows] == ["2024-07-01", "2024-07-03"]
        assert rows[0]["jobs"] == 2
        assert rows[0]["total_cost"] == pytest.approx(0.0076)

# tests/unit/test_unit_main.py - v1
"""Tests for main.py (CLI parsing and command dispatch)."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from mediaseo import main as cli
from mediaseo.core.models import AnalysisOutcome, Job


@pytest.fixture
def service(monkeypatch):
    fake = MagicMock()
    monkeypatch.setattr(cli, "_build_service", lambda args: fake)
    return fake


class TestParser:
    def test_no_command_prints_help(self, capsys):
        assert cli.main([]) == 1
        assert "usage: mediaseo" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(["--version"])
        assert exc.value.code == 0

    def test_analyze_options(self):
        args = cli._build_parser().parse_args(["analyze", "42", "--trigger", "auto", "--no-auto-apply"])
        assert args.image_id == "42"
        assert args.trigger == "auto"
        assert args.auto_apply is False


class TestCommands:
    def test_approve_with_edits(self, service, capsys):
        service.approve = AsyncMock(return_value=True)
        code = cli.main(["approve", "7", "--alt", "Sunset over the bay", "--keywords", "sunset, bay,"])
        assert code == 0
        service.approve.assert_awaited_once_with(
            7, {"alt": "Sunset over the bay", "keywords": ["sunset", "bay"]}
        )
        assert "Job 7: approved" in capsys.readouterr().out

    def test_reject_unknown(self, service, capsys):
        service.reject = AsyncMock(return_value=False)
        assert cli.main(["reject", "9"]) == 1
        assert "not found" in capsys.readouterr().out

    def test_analyze_failure_exit_code(self, service, capsys):
        service.analyze = AsyncMock(return_value=AnalysisOutcome(
            success=False, image_id="42", language="en",
            errors=["Attachment 42 not found."],
        ))
        assert cli.main(["analyze", "42"]) == 1
        out = capsys.readouterr().out
        assert "failed" in out
        assert "Attachment 42 not found." in out
        options = service.analyze.await_args.args[2]
        assert options.trigger == "manual"
        assert options.auto_apply is None

    def test_analyze_success_prints_fields(self, service, capsys):
        job = Job(
            id=3, image_id="42", language="en", provider="openai", model="gpt-4o",
            status="processed", response={"fields": {"alt": "Sunset", "keywords": ["sun", "sea"]}},
        )
        service.analyze = AsyncMock(return_value=AnalysisOutcome(
            success=True, image_id="42", language="en", job=job,
            final_score=0.81, decision="pending",
        ))
        assert cli.main(["analyze", "42"]) == 0
        out = capsys.readouterr().out
        assert "openai/gpt-4o" in out
        assert "sun, sea" in out
        assert "0.81 -> pending" in out

    def test_batch_requires_ids(self, service):
        assert cli.main(["batch"]) == 1

    def test_batch_all_reads_library(self, service, tmp_path):
        library = tmp_path / "library.json"
        library.write_text(json.dumps({"records": [
            {"id": 1, "type": "attachment", "mime_type": "image/jpeg"},
            {"id": 2, "type": "attachment", "mime_type": "application/pdf"},
            {"id": 3, "type": "post"},
        ]}), encoding="utf-8")
        service.analyze_batch = AsyncMock(return_value=SimpleNamespace(
            total=1, succeeded=1, failed=0, skipped=0, total_cost=0.0038,
            duration_ms=1200, items=[],
        ))
        assert cli.main(["--library", str(library), "batch", "--all", "--force"]) == 0
        ids, language, options = service.analyze_batch.await_args.args
        assert ids == ["1"]
        assert options.trigger == "auto"
        assert options.force is True

    def test_preview_prompt_unknown_variant(self, service):
        service.preview_prompt = AsyncMock(side_effect=KeyError("Unknown prompt variant: verbose"))
        assert cli.main(["preview-prompt", "42", "--variant", "verbose"]) == 1

    def test_fatal_error(self, service):
        service.analyze = AsyncMock(side_effect=RuntimeError("database locked"))
        assert cli.main(["analyze", "42"]) == 1

    def test_test_providers(self, service, capsys):
        service.test_providers = AsyncMock(return_value={"openai": "ok", "google": "not configured"})
        assert cli.main(["test-providers"]) == 0
        assert "not configured" in capsys.readouterr().out

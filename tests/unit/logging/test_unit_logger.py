# tests/unit/logging/test_unit_logger.py - v3
"""Tests for logging/logger.py."""

from __future__ import annotations

import json
import logging

import pytest

from mediaseo.logging.context import (
    clear_context,
    set_image_context,
    set_outcome_context,
    set_step_context,
)
from mediaseo.logging.logger import (
    ROOT_LOGGER,
    JsonFormatter,
    TextFormatter,
    get_logger,
    setup_logging,
)


def _record(msg: str = "hello", level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("mediaseo.test", level, __file__, 1, msg, None, None)


@pytest.fixture(autouse=True)
def _reset():
    clear_context()
    yield
    clear_context()
    for handler in logging.getLogger(ROOT_LOGGER).handlers:
        handler.close()
    logging.getLogger(ROOT_LOGGER).handlers.clear()
    logging.getLogger(ROOT_LOGGER).setLevel(logging.NOTSET)


class TestJsonFormatter:
    def test_basic(self):
        entry = json.loads(JsonFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["message"] == "hello"
        assert "context" not in entry

    def test_context_injected(self):
        set_image_context("100", "en")
        set_step_context("validate")
        entry = json.loads(JsonFormatter().format(_record()))
        assert entry["context"] == {"image_id": "100", "language": "en", "step": "validate"}

    def test_run_and_decision(self):
        set_image_context("100", "en", run_id="f00dbabe12345678")
        set_outcome_context(decision="apply", job_id=12)
        entry = json.loads(JsonFormatter().format(_record()))
        assert entry["context"]["run_id"] == "f00dbabe12345678"
        assert entry["context"]["decision"] == "apply"
        assert entry["context"]["job_id"] == 12

    def test_run_extras_from_call_site(self):
        record = _record()
        record.final_score = 0.82
        record.total_cost = 0.0038
        record.unrelated = "ignored"
        entry = json.loads(JsonFormatter().format(record))
        assert entry["context"] == {"final_score": 0.82, "total_cost": 0.0038}

    def test_extra_data(self):
        record = _record()
        record.data = {"score": 0.9}
        assert json.loads(JsonFormatter().format(record))["data"] == {"score": 0.9}


class TestTextFormatter:
    def test_context_in_line(self):
        set_image_context("100", "cs")
        set_step_context("blend_score")
        line = TextFormatter().format(_record("done"))
        assert "[image 100/cs]" in line
        assert "(blend_score)" in line
        assert line.endswith("- done")

    def test_run_and_decision_in_line(self):
        set_image_context("100", "en", run_id="f00dbabe12345678")
        set_outcome_context(decision="draft")
        line = TextFormatter().format(_record("scored"))
        assert "[image 100/en run f00dbabe]" in line
        assert "<draft>" in line


class TestSetupLogging:
    def test_handlers(self, tmp_path):
        setup_logging("DEBUG", "text", log_file=str(tmp_path / "logs" / "app.log"))
        root = logging.getLogger(ROOT_LOGGER)
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        assert isinstance(root.handlers[0].formatter, TextFormatter)
        assert (tmp_path / "logs").is_dir()

    def test_reinit_no_duplicates(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger(ROOT_LOGGER).handlers) == 1

    def test_get_logger(self):
        assert get_logger("pipeline").name == "mediaseo.pipeline"

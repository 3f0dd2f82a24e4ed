# tests/unit/pipeline/test_unit_state.py - v1
"""Tests for pipeline/state.py."""

from __future__ import annotations

from mediaseo.pipeline.state import AnalysisRun


class TestAnalysisRun:
    def test_defaults(self):
        run = AnalysisRun(image_id="100", language="en")
        assert not run.failed
        assert run.options.trigger == "manual"
        assert len(run.run_id) == 32

    def test_fail(self):
        run = AnalysisRun(image_id="100", language="en")
        run.fail("Missing required field: alt")
        run.fail("Missing required field: score")
        assert run.failed
        assert run.errors == ["Missing required field: alt", "Missing required field: score"]

    def test_record_timing(self):
        run = AnalysisRun(image_id="100", language="en")
        run.record_timing("build_context", 0.0123)
        assert run.timings_ms == {"build_context": 12}

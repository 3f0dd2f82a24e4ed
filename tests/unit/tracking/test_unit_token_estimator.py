# tests/unit/tracking/test_unit_token_estimator.py - v1
"""Tests for tracking/token_estimator.py."""

from __future__ import annotations

from mediaseo.tracking.token_estimator import (
    estimate_image_tokens,
    estimate_request_tokens,
    estimate_text_tokens,
)


class TestEstimates:
    def test_text(self):
        assert estimate_text_tokens("") == 0
        assert estimate_text_tokens("abcde") == 2

    def test_openai_tiles(self):
        # 1024x1024 -> 768x768 -> 2x2 tiles
        assert estimate_image_tokens("openai", 1024, 1024) == 85 + 170 * 4

    def test_anthropic_capped(self):
        assert estimate_image_tokens("anthropic", 4000, 4000) == 1600
        assert estimate_image_tokens("anthropic", 750, 100) == 100

    def test_google(self):
        assert estimate_image_tokens("google", 800, 600) == 258 * 2

    def test_unknown_dimensions(self):
        assert estimate_image_tokens("openai", None, None) == estimate_image_tokens("openai", 1024, 1024)

    def test_request(self):
        assert estimate_request_tokens("google", "a" * 40, 700, 700) == 10 + 258

# src/tracking/token_estimator.py - v1
"""Token estimates for providers that do not report exact usage.

Image token formulas follow each vendor's published vision accounting.
"""

from __future__ import annotations

import math


def estimate_text_tokens(text: str) -> int:
    """Roughly 4 characters per token."""
    return math.ceil(len(text) / 4)


def _scale_to_fit(width: int, height: int, max_side: int) -> tuple[int, int]:
    longest = max(width, height)
    if longest <= max_side:
        return width, height
    ratio = max_side / longest
    return int(width * ratio), int(height * ratio)


def _openai_image_tokens(width: int, height: int) -> int:
    width, height = _scale_to_fit(width, height, 2048)
    shortest = min(width, height)
    if shortest > 768:
        ratio = 768 / shortest
        width, height = int(width * ratio), int(height * ratio)
    tiles = math.ceil(width / 512) * math.ceil(height / 512)
    return 85 + 170 * tiles


def _anthropic_image_tokens(width: int, height: int) -> int:
    width, height = _scale_to_fit(width, height, 1568)
    return min(math.ceil(width * height / 750), 1600)


def _google_image_tokens(width: int, height: int) -> int:
    tiles = math.ceil(width / 768) * math.ceil(height / 768)
    return 258 * max(tiles, 1)


_IMAGE_ESTIMATORS = {
    "openai": _openai_image_tokens,
    "anthropic": _anthropic_image_tokens,
    "google": _google_image_tokens,
}


def estimate_image_tokens(provider: str, width: int | None, height: int | None) -> int:
    """Estimate image input tokens; unknown dimensions assume 1024x1024."""
    width = width or 1024
    height = height or 1024
    estimator = _IMAGE_ESTIMATORS.get(provider, _anthropic_image_tokens)
    return estimator(width, height)


def estimate_request_tokens(
    provider: str,
    prompt: str,
    width: int | None = None,
    height: int | None = None,
) -> int:
    """Estimated input tokens for a prompt plus one image."""
    return estimate_text_tokens(prompt) + estimate_image_tokens(provider, width, height)

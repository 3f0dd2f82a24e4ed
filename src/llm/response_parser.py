# src/llm/response_parser.py - v1
"""Parse model replies into GeneratedFields.

Only structural problems raise here (no JSON object at all). Whether the
required fields are present is decided by the pipeline.
"""

from __future__ import annotations

import json
import re
from typing import Any

from mediaseo.core.models import GeneratedFields

_FENCED = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)
_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class ResponseParseError(ValueError):
    """Reply does not contain a JSON object."""


def extract_json(content: str) -> dict[str, Any]:
    """Find the JSON object in a reply: fenced block first, then outermost braces."""
    candidates: list[str] = []
    fenced = _FENCED.search(content)
    if fenced:
        candidates.append(fenced.group(1))
    bare = _OBJECT.search(content)
    if bare:
        candidates.append(bare.group(0))

    for candidate in candidates:
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            return payload

    raise ResponseParseError(f"No JSON object found in response: {content[:200]!r}")


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    return text.strip()


def normalize_keywords(value: Any) -> list[str] | None:
    """Accept a list or a comma-separated string; drop blanks."""
    if value is None:
        return None
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        return None
    return [item.strip() for item in items if item.strip()]


def parse_fields(content: str) -> GeneratedFields:
    """Parse a reply into raw fields; ``score`` is passed through unconverted."""
    payload = extract_json(content)
    return GeneratedFields(
        alt=_text(payload.get("alt")),
        caption=_text(payload.get("caption")),
        title=_text(payload.get("title")),
        keywords=normalize_keywords(payload.get("keywords")),
        score=payload.get("score"),
    )

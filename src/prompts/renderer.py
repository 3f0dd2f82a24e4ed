# src/prompts/renderer.py - v1
"""Pure template rendering for ``{{key}}`` and ``{{#if key}}...{{/if}}``.

Conditionals are evaluated before substitution so list and boolean values
inside a block are formatted by the substitution pass, not by the test.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

_CONDITIONAL = re.compile(r"\{\{#if\s+(\w+)\}\}(.*?)\{\{/if\}\}", re.DOTALL)
_TOKEN = re.compile(r"\{\{(\w+)\}\}")


def is_truthy(value: Any) -> bool:
    """Present and non-empty; numeric zero and False are falsy."""
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value != "" and value != "0"
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return True


def format_value(value: Any) -> str | None:
    """Inline form of a value, or None when it cannot be substituted."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return None


def render_template(template: str, data: Mapping[str, Any]) -> str:
    """Render a template. Unresolved tokens are left verbatim."""

    def _conditional(match: re.Match[str]) -> str:
        return match.group(2) if is_truthy(data.get(match.group(1))) else ""

    rendered = _CONDITIONAL.sub(_conditional, template)

    def _substitute(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in data:
            return match.group(0)
        formatted = format_value(data[key])
        return match.group(0) if formatted is None else formatted

    return _TOKEN.sub(_substitute, rendered)

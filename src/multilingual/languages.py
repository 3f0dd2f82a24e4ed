# src/multilingual/languages.py - v1
"""Language code -> prompt language name lookup."""

from __future__ import annotations

LANGUAGE_NAMES: dict[str, str] = {
    "en": "ENGLISH",
    "cs": "CZECH",
    "sk": "SLOVAK",
    "de": "GERMAN",
    "fr": "FRENCH",
    "es": "SPANISH",
    "it": "ITALIAN",
    "pt": "PORTUGUESE",
    "pl": "POLISH",
    "ru": "RUSSIAN",
    "nl": "DUTCH",
    "sv": "SWEDISH",
    "da": "DANISH",
    "fi": "FINNISH",
    "no": "NORWEGIAN",
}


def language_name(code: str) -> str:
    """Upper-case language name; unknown codes are returned upper-cased."""
    return LANGUAGE_NAMES.get(code.lower(), code.upper())

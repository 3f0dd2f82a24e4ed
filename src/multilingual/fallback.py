# src/multilingual/fallback.py - v1
"""Language fallback resolution for generated metadata.

When a field is missing in the requested language, the value of the first
language in that language's fallback chain that has one is surfaced
instead. Chains are walked with a visited set, so a misconfigured cycle
ends instead of looping.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from mediaseo.core.models import METADATA_FIELDS, CompletionStatus, ResolvedValue

if TYPE_CHECKING:
    from mediaseo.config.settings import Settings
    from mediaseo.storage.metadata_store import BaseMetadataStore

logger = logging.getLogger(__name__)

DEFAULT_CHAINS: dict[str, list[str]] = {
    "cs": ["sk", "en"],
    "sk": ["cs", "en"],
    "de": ["en"],
    "fr": ["en"],
    "es": ["en"],
    "it": ["en"],
    "pl": ["en"],
    "ru": ["en"],
}


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


class LanguageFallbackResolver:
    """Resolve per-language metadata through fallback chains.

    Args:
        store: Metadata store holding ``{field}_{language}`` values.
        settings: Supplies default/hub language, active languages and chain overrides.
    """

    def __init__(self, store: BaseMetadataStore, settings: Settings) -> None:
        self._store = store
        self._default_language = settings.default_language
        self._hub_language = settings.hub_language
        self._active_languages = settings.active_languages_list
        self._overrides = dict(settings.fallback_chains)

    def get_chain(self, language: str) -> list[str]:
        """Fallback languages for ``language``, never containing it."""
        if language in self._overrides:
            chain = self._overrides[language]
        elif language in DEFAULT_CHAINS:
            chain = DEFAULT_CHAINS[language]
        else:
            chain = [self._default_language, self._hub_language]

        result: list[str] = []
        for code in chain:
            if code != language and code not in result:
                result.append(code)
        return result

    async def resolve(self, image_id: str, field: str, language: str) -> ResolvedValue:
        value = await self._store.get(image_id, field, language)
        if _present(value):
            return ResolvedValue(value=value, source_language=language)

        visited = {language}
        pending = list(self.get_chain(language))
        while pending:
            candidate = pending.pop(0)
            if candidate in visited:
                logger.debug("Fallback cycle at %s while resolving %s@%s", candidate, field, language)
                continue
            visited.add(candidate)
            value = await self._store.get(image_id, field, candidate)
            if _present(value):
                logger.debug(
                    "Resolved %s@%s for image %s from %s", field, language, image_id, candidate
                )
                return ResolvedValue(value=value, source_language=candidate, used_fallback=True)

        return ResolvedValue(value=None, source_language=language)

    async def resolve_all(self, image_id: str, language: str) -> dict[str, ResolvedValue]:
        return {
            field: await self.resolve(image_id, field, language)
            for field in METADATA_FIELDS
        }

    async def has_metadata(self, image_id: str, language: str) -> bool:
        """True when any field is stored for ``language`` itself (no fallback)."""
        for field in METADATA_FIELDS:
            if _present(await self._store.get(image_id, field, language)):
                return True
        return False

    async def get_available_languages(self, image_id: str) -> list[str]:
        return [
            code for code in self._active_languages
            if await self.has_metadata(image_id, code)
        ]

    async def get_missing_languages(self, image_id: str) -> list[str]:
        return [
            code for code in self._active_languages
            if not await self.has_metadata(image_id, code)
        ]

    async def get_completion_status(self, image_id: str) -> CompletionStatus:
        total = len(self._active_languages)
        missing = await self.get_missing_languages(image_id)
        completed = total - len(missing)
        percentage = round(completed / total * 100, 1) if total else 100.0
        return CompletionStatus(
            total=total,
            completed=completed,
            missing=missing,
            percentage=percentage,
        )

    async def suggest_next_language(self, image_id: str) -> str | None:
        """Highest-priority active language still missing all fields."""
        missing = await self.get_missing_languages(image_id)
        if not missing:
            return None
        for preferred in (self._default_language, self._hub_language):
            if preferred in missing:
                return preferred
        return missing[0]

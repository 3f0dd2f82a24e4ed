# src/context/aggregator.py - v1
"""Context aggregation: gather weighted signals about images into ImageContext.

``build`` is ``bulk_build`` over a single id, so both paths share every
lookup and always agree.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Sequence

from mediaseo.context.sources import DEFAULT_SOURCES, ContextPrefetch, SignalSource
from mediaseo.core.models import ImageContext

if TYPE_CHECKING:
    from mediaseo.config.settings import Settings
    from mediaseo.context.repository import BaseContentRepository

logger = logging.getLogger(__name__)

# Weights sum to 1.0; "exif_data" counts when any embedded-metadata field is present.
COMPLETENESS_WEIGHTS: dict[str, float] = {
    "post_title": 0.25,
    "categories": 0.15,
    "tags": 0.10,
    "filename_hint": 0.10,
    "exif_data": 0.15,
    "current_alt": 0.10,
    "site_topic": 0.15,
}


def calculate_completeness_score(
    context: ImageContext,
    weights: dict[str, float] | None = None,
) -> float:
    """Weighted share of signals present, in [0, 1]. Never raises."""
    weights = weights or COMPLETENESS_WEIGHTS
    total = sum(weights.values())
    if total <= 0:
        return 0.0

    present = 0.0
    for name, weight in weights.items():
        if name == "exif_data":
            found = context.has_exif
        else:
            value = getattr(context, name, None)
            found = bool(value.strip()) if isinstance(value, str) else bool(value)
        if found:
            present += weight

    return min(max(present / total, 0.0), 1.0)


class ContextAggregator:
    """Build ImageContext records from the content repository.

    Args:
        repository: Bulk-read content repository.
        settings: Provides the site topic.
        sources: Signal sources in priority order.
    """

    def __init__(
        self,
        repository: BaseContentRepository,
        settings: Settings,
        sources: Sequence[SignalSource] = DEFAULT_SOURCES,
    ) -> None:
        self._repository = repository
        self._site_topic = settings.site_topic or settings.site_context
        self._sources = tuple(sources)

    async def build(self, image_id: str, language: str) -> ImageContext:
        """Context for a single image."""
        contexts = await self.bulk_build([image_id], language)
        return contexts[image_id]

    async def bulk_build(
        self, image_ids: Sequence[str], language: str
    ) -> dict[str, ImageContext]:
        """Contexts for many images using shared, batched lookups."""
        ids = list(dict.fromkeys(str(i) for i in image_ids))
        prefetch = ContextPrefetch(language=language)
        if ids:
            prefetch.attachments = await self._repository.bulk_get_records(ids)
            prefetch.attachment_meta = await self._repository.bulk_get_meta(ids)

        for source in self._sources:
            await source.prepare(self._repository, prefetch)

        contexts: dict[str, ImageContext] = {}
        for image_id in ids:
            fields = self._collect(image_id, prefetch)
            contexts[image_id] = ImageContext(
                attachment_id=image_id,
                language=language,
                site_topic=self._site_topic,
                **fields,
            )

        logger.debug("Built %d contexts for language %s", len(contexts), language)
        return contexts

    def _collect(self, image_id: str, prefetch: ContextPrefetch) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        for source in self._sources:
            for key, value in source.collect(image_id, prefetch).items():
                if key in fields or _empty(value):
                    continue
                fields[key] = value
        return fields

    calculate_completeness_score = staticmethod(calculate_completeness_score)


def _empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return not value
    return False

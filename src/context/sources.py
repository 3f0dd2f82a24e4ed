# src/context/sources.py - v1
"""Signal sources feeding ImageContext, in fixed priority order.

Each source does its bulk lookups in ``prepare`` (once per batch) and then
extracts fields for one image in ``collect`` from the shared prefetch.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any

from mediaseo.context.repository import BaseContentRepository, ContentRecord

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9\s]")
_MIN_HINT_LENGTH = 4


@dataclass
class ContextPrefetch:
    """Lookups shared across all images of one aggregation call."""

    language: str
    attachments: dict[str, ContentRecord] = field(default_factory=dict)
    attachment_meta: dict[str, dict[str, Any]] = field(default_factory=dict)
    # attachment id -> linked content id
    linked_ids: dict[str, str] = field(default_factory=dict)
    linked: dict[str, ContentRecord] = field(default_factory=dict)
    categories: dict[str, list[str]] = field(default_factory=dict)
    tags: dict[str, list[str]] = field(default_factory=dict)


class SignalSource(ABC):
    """One contributor of context fields."""

    name: str = ""

    async def prepare(
        self, repository: BaseContentRepository, prefetch: ContextPrefetch
    ) -> None:
        """Batched lookups for every attachment in the prefetch. Default: none."""

    @abstractmethod
    def collect(self, attachment_id: str, prefetch: ContextPrefetch) -> dict[str, Any]:
        """Fields this source can contribute for one image."""


class LinkedContentSource(SignalSource):
    """Title, excerpt and taxonomy of the content an image belongs to.

    Association order: direct parent, parent of any translation, another
    attachment sharing the same file, then usage search. The result is
    switched to its translation in the target language when one exists.
    """

    name = "linked_content"

    async def prepare(
        self, repository: BaseContentRepository, prefetch: ContextPrefetch
    ) -> None:
        unresolved: list[str] = []
        for attachment_id, record in prefetch.attachments.items():
            if record.parent_id:
                prefetch.linked_ids[attachment_id] = record.parent_id
            else:
                unresolved.append(attachment_id)

        if unresolved:
            await self._resolve_via_translations(repository, prefetch, unresolved)
        for attachment_id in unresolved:
            if attachment_id not in prefetch.linked_ids:
                linked = await self._resolve_via_file(repository, prefetch, attachment_id)
                if linked:
                    prefetch.linked_ids[attachment_id] = linked

        linked_ids = sorted(set(prefetch.linked_ids.values()))
        if not linked_ids:
            return

        records = await repository.bulk_get_records(linked_ids)
        await self._switch_to_language(repository, prefetch, records)

        final_ids = sorted({r.id for r in prefetch.linked.values()})
        prefetch.categories = await repository.bulk_get_relationships(final_ids, "category")
        prefetch.tags = await repository.bulk_get_relationships(final_ids, "post_tag")

    async def _resolve_via_translations(
        self,
        repository: BaseContentRepository,
        prefetch: ContextPrefetch,
        attachment_ids: list[str],
    ) -> None:
        translation_ids = sorted({
            tid
            for aid in attachment_ids
            for tid in prefetch.attachments[aid].translations.values()
            if tid != aid
        })
        if not translation_ids:
            return
        translations = await repository.bulk_get_records(translation_ids)
        for aid in attachment_ids:
            for tid in prefetch.attachments[aid].translations.values():
                other = translations.get(tid)
                if other is not None and other.parent_id:
                    prefetch.linked_ids[aid] = other.parent_id
                    break

    async def _resolve_via_file(
        self,
        repository: BaseContentRepository,
        prefetch: ContextPrefetch,
        attachment_id: str,
    ) -> str | None:
        record = prefetch.attachments[attachment_id]
        if record.file:
            siblings = await repository.find_records_by_file(record.file, attachment_id)
            if siblings:
                sibling_records = await repository.bulk_get_records(siblings)
                for sid in siblings:
                    sibling = sibling_records.get(sid)
                    if sibling is not None and sibling.parent_id:
                        return sibling.parent_id

        basename = PurePosixPath(record.file).name if record.file else ""
        usages = await repository.find_usages(attachment_id, basename)
        return usages[0] if usages else None

    async def _switch_to_language(
        self,
        repository: BaseContentRepository,
        prefetch: ContextPrefetch,
        records: dict[str, ContentRecord],
    ) -> None:
        translated_ids = {
            rid: r.translations[prefetch.language]
            for rid, r in records.items()
            if r.translations.get(prefetch.language) not in (None, rid)
        }
        translated = (
            await repository.bulk_get_records(sorted(set(translated_ids.values())))
            if translated_ids else {}
        )
        for aid, rid in prefetch.linked_ids.items():
            record = records.get(rid)
            if record is None:
                continue
            alt_id = translated_ids.get(rid)
            if alt_id and alt_id in translated:
                record = translated[alt_id]
            prefetch.linked[aid] = record

    def collect(self, attachment_id: str, prefetch: ContextPrefetch) -> dict[str, Any]:
        record = prefetch.linked.get(attachment_id)
        if record is None:
            return {}
        return {
            "post_title": record.title,
            "post_excerpt": record.excerpt,
            "post_type": record.type,
            "categories": prefetch.categories.get(record.id, []),
            "tags": prefetch.tags.get(record.id, []),
        }


class FilenameSource(SignalSource):
    """Readable hint from the stored file name ("sunset-beach.jpg" -> "sunset beach")."""

    name = "filename"

    def collect(self, attachment_id: str, prefetch: ContextPrefetch) -> dict[str, Any]:
        record = prefetch.attachments.get(attachment_id)
        if record is None or not record.file:
            return {}
        hint = filename_hint(record.file)
        return {"filename_hint": hint} if hint else {}


def filename_hint(file: str) -> str | None:
    """Basename without extension, separators to spaces, symbols stripped."""
    stem = PurePosixPath(file).stem
    hint = _NON_ALNUM.sub("", stem.replace("-", " ").replace("_", " "))
    hint = " ".join(hint.split())
    return hint if len(hint) >= _MIN_HINT_LENGTH else None


class ExifSource(SignalSource):
    """Camera, GPS, capture date and rights from embedded image metadata."""

    name = "exif"

    def collect(self, attachment_id: str, prefetch: ContextPrefetch) -> dict[str, Any]:
        exif = prefetch.attachment_meta.get(attachment_id, {}).get("exif") or {}
        if not exif:
            return {}

        fields: dict[str, Any] = {
            "camera": exif.get("camera"),
            "copyright": exif.get("copyright"),
            "exif_title": exif.get("title"),
            "exif_caption": exif.get("caption"),
        }

        lat, lon = exif.get("latitude"), exif.get("longitude")
        if lat not in (None, "") and lon not in (None, ""):
            try:
                latitude, longitude = float(lat), float(lon)
            except (TypeError, ValueError):
                logger.debug("Ignoring invalid EXIF GPS %r, %r", lat, lon)
            else:
                fields["gps_latitude"] = latitude
                fields["gps_longitude"] = longitude
                fields["location"] = f"GPS: {latitude}, {longitude}"

        timestamp = exif.get("created_timestamp")
        if timestamp:
            try:
                taken = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
                fields["photo_date"] = taken.strftime("%Y-%m-%d")
            except (TypeError, ValueError, OverflowError, OSError):
                logger.debug("Ignoring invalid EXIF timestamp %r", timestamp)

        return {k: v for k, v in fields.items() if v not in (None, "")}


class ImageLabelSource(SignalSource):
    """Labels already attached to the image: alt, title, caption, size."""

    name = "image_labels"

    def collect(self, attachment_id: str, prefetch: ContextPrefetch) -> dict[str, Any]:
        record = prefetch.attachments.get(attachment_id)
        if record is None:
            return {}
        meta = prefetch.attachment_meta.get(attachment_id, {})
        fields: dict[str, Any] = {
            "current_alt": meta.get("alt_text"),
            "attachment_title": record.title,
            "attachment_caption": record.excerpt,
            "attachment_description": record.content,
        }
        if record.width and record.height:
            fields["dimensions"] = f"{record.width}x{record.height}"
            fields["orientation"] = orientation(record.width, record.height)
        return fields


def orientation(width: int, height: int) -> str:
    if width > height:
        return "landscape"
    if width < height:
        return "portrait"
    return "square"


# Fixed priority order: earlier sources win on conflicting fields.
DEFAULT_SOURCES: tuple[SignalSource, ...] = (
    LinkedContentSource(),
    FilenameSource(),
    ExifSource(),
    ImageLabelSource(),
)

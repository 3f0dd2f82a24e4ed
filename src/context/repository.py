# src/context/repository.py - v1
"""Abstract content repository consumed by context aggregation.

The aggregator only ever talks to this interface through bulk reads, so a
batch of N images costs a fixed number of lookups rather than N of each.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

PUBLISHED = "publish"


class ContentRecord(BaseModel):
    """One stored item: an image attachment or a piece of content (post, page)."""

    id: str
    type: str = "attachment"
    title: str = ""
    excerpt: str = ""
    content: str = ""
    status: str = PUBLISHED
    parent_id: str | None = None
    language: str | None = None
    # language code -> record id of the translated counterpart
    translations: dict[str, str] = Field(default_factory=dict)
    mime_type: str | None = None
    file: str | None = None
    width: int | None = None
    height: int | None = None

    @property
    def is_image(self) -> bool:
        return self.type == "attachment" and (self.mime_type or "").startswith("image/")


class BaseContentRepository(ABC):
    """Read-side contract of the host content repository."""

    @abstractmethod
    async def bulk_get_records(self, ids: list[str]) -> dict[str, ContentRecord]:
        """Records for the given ids; unknown ids are omitted."""

    @abstractmethod
    async def bulk_get_relationships(
        self, ids: list[str], taxonomy: str
    ) -> dict[str, list[str]]:
        """Term names per record id for one taxonomy (category, post_tag)."""

    @abstractmethod
    async def bulk_get_meta(self, ids: list[str]) -> dict[str, dict[str, Any]]:
        """Key/value metadata per record id."""

    @abstractmethod
    async def find_records_by_file(self, file: str, exclude_id: str) -> list[str]:
        """Ids of other attachments pointing at the same stored file."""

    @abstractmethod
    async def find_usages(self, attachment_id: str, basename: str) -> list[str]:
        """Ids of published content using an image.

        Featured-image references come first, then content whose body
        mentions the file basename.
        """


class InMemoryContentRepository(BaseContentRepository):
    """Dict-backed repository, loadable from a JSON library export.

    Export layout::

        {
          "records": [{"id": "10", "type": "attachment", ...}, ...],
          "meta": {"10": {"alt_text": "...", "exif": {...}}, "5": {"thumbnail_id": "10"}},
          "terms": {"category": {"5": ["Travel"]}, "post_tag": {"5": ["beach"]}}
        }
    """

    def __init__(
        self,
        records: list[ContentRecord] | None = None,
        meta: dict[str, dict[str, Any]] | None = None,
        terms: dict[str, dict[str, list[str]]] | None = None,
    ) -> None:
        self._records: dict[str, ContentRecord] = {r.id: r for r in records or []}
        self._meta = {k: dict(v) for k, v in (meta or {}).items()}
        self._terms = {tax: dict(v) for tax, v in (terms or {}).items()}
        self.calls: list[str] = []

    @classmethod
    def from_json(cls, path: Path) -> InMemoryContentRepository:
        raw = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
        records = [ContentRecord(**{**r, "id": str(r["id"])}) for r in raw.get("records", [])]
        logger.info("Loaded %d records from %s", len(records), path)
        return cls(
            records=records,
            meta={str(k): v for k, v in raw.get("meta", {}).items()},
            terms=raw.get("terms", {}),
        )

    def get_record(self, record_id: str) -> ContentRecord | None:
        return self._records.get(record_id)

    async def bulk_get_records(self, ids: list[str]) -> dict[str, ContentRecord]:
        self.calls.append("bulk_get_records")
        return {i: self._records[i] for i in ids if i in self._records}

    async def bulk_get_relationships(
        self, ids: list[str], taxonomy: str
    ) -> dict[str, list[str]]:
        self.calls.append(f"bulk_get_relationships:{taxonomy}")
        by_id = self._terms.get(taxonomy, {})
        return {i: list(by_id[i]) for i in ids if by_id.get(i)}

    async def bulk_get_meta(self, ids: list[str]) -> dict[str, dict[str, Any]]:
        self.calls.append("bulk_get_meta")
        return {i: dict(self._meta[i]) for i in ids if i in self._meta}

    async def find_records_by_file(self, file: str, exclude_id: str) -> list[str]:
        self.calls.append("find_records_by_file")
        return [
            r.id for r in self._records.values()
            if r.type == "attachment" and r.file == file and r.id != exclude_id
        ]

    async def find_usages(self, attachment_id: str, basename: str) -> list[str]:
        self.calls.append("find_usages")
        published = [
            r for r in self._records.values()
            if r.type in ("post", "page") and r.status == PUBLISHED
        ]
        featured = [
            r.id for r in published
            if str(self._meta.get(r.id, {}).get("thumbnail_id", "")) == attachment_id
        ]
        if featured:
            return featured
        if not basename:
            return []
        return [r.id for r in published if basename in r.content]

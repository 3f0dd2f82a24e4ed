# src/images/source.py - v1
"""Image-bytes providers.

Format conversion of exotic formats happens upstream; this layer only
checks that an image is present and in a format every provider accepts.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel

from mediaseo.core.errors import InputError
from mediaseo.llm.models import ImageInput

if TYPE_CHECKING:
    from mediaseo.context.repository import BaseContentRepository

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES: tuple[str, ...] = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
)


class ImageDescriptor(BaseModel):
    """What is known about an image before its bytes are read."""

    image_id: str
    media_type: str
    location: str
    width: int | None = None
    height: int | None = None


class BaseImageSource(ABC):
    """Resolve image ids to compatible raster bytes."""

    @abstractmethod
    async def describe(self, image_id: str) -> ImageDescriptor:
        """Check the image exists and is supported.

        Raises:
            InputError: Not an image, unsupported format, or missing file.
        """

    @abstractmethod
    async def load(self, image_id: str) -> ImageInput:
        """Read the image bytes.

        Raises:
            InputError: If the image cannot be read.
        """


def normalize_media_type(media_type: str) -> str:
    return "image/jpeg" if media_type == "image/jpg" else media_type


class LocalImageSource(BaseImageSource):
    """Images stored as files under an uploads root, indexed by the content repository."""

    def __init__(self, repository: BaseContentRepository, root: Path | str = ".") -> None:
        self._repository = repository
        self._root = Path(root).expanduser()

    async def describe(self, image_id: str) -> ImageDescriptor:
        records = await self._repository.bulk_get_records([image_id])
        record = records.get(image_id)
        if record is None or record.type != "attachment":
            raise InputError(f"Attachment {image_id} not found.")
        if not record.is_image:
            raise InputError(f"Attachment {image_id} is not an image.")
        if record.mime_type not in SUPPORTED_MIME_TYPES:
            raise InputError(f"Unsupported image format: {record.mime_type}")
        if not record.file:
            raise InputError(f"Image file not found for attachment {image_id}.")

        path = self._root / record.file
        if not path.is_file():
            raise InputError(f"Image file not found: {path}")

        return ImageDescriptor(
            image_id=image_id,
            media_type=normalize_media_type(record.mime_type),
            location=str(path),
            width=record.width,
            height=record.height,
        )

    async def load(self, image_id: str) -> ImageInput:
        descriptor = await self.describe(image_id)
        try:
            data = await asyncio.to_thread(Path(descriptor.location).read_bytes)
        except OSError as e:
            raise InputError(f"Cannot read image {descriptor.location}: {e}") from e
        logger.debug("Loaded %d bytes for image %s", len(data), image_id)
        return ImageInput(
            data=data,
            media_type=descriptor.media_type,
            source_id=image_id,
            width=descriptor.width,
            height=descriptor.height,
        )

"""Texture import with content deduplication, plus external URL registration."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from .assets import UDONARIUM_BASE_URL, external_url_for
from .model import SourceObject, iter_image_refs

LOG = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

__all__ = [
    "ImageFile",
    "AssetImportResult",
    "TextureUploader",
    "AssetImporter",
    "collect_external_sources",
    "register_external_urls",
]


@dataclass(frozen=True, slots=True)
class ImageFile:
    """A local image that scene objects refer to by ``identifier``."""

    identifier: str
    path: Path


@dataclass(slots=True)
class AssetImportResult:
    identifier: str
    texture_value: str
    success: bool
    error: Optional[str] = None
    reused: bool = False


class TextureUploader(Protocol):
    async def import_texture(self, path: Path) -> str:
        """Upload ``path`` and return the texture URL the remote world stores it under."""


class AssetImporter:
    """Uploads each distinct image once.

    Two identifiers whose files have identical bytes share one uploaded
    texture; re-importing an identifier returns the earlier result.
    """

    def __init__(self, uploader: TextureUploader) -> None:
        self._uploader = uploader
        self._by_identifier: Dict[str, str] = {}
        self._by_digest: Dict[str, str] = {}

    async def import_image(self, image: ImageFile) -> AssetImportResult:
        existing = self._by_identifier.get(image.identifier)
        if existing is not None:
            return AssetImportResult(image.identifier, existing, True, reused=True)
        try:
            data = await asyncio.to_thread(image.path.read_bytes)
            digest = hashlib.sha256(data).hexdigest()
            texture_value = self._by_digest.get(digest)
            reused = texture_value is not None
            if texture_value is None:
                texture_value = await self._uploader.import_texture(image.path)
                self._by_digest[digest] = texture_value
            else:
                LOG.debug("Reusing texture %s for duplicate image %s", texture_value, image.identifier)
        except Exception as exc:
            LOG.warning("Failed to import image %s: %s", image.identifier, exc)
            return AssetImportResult(image.identifier, "", False, error=str(exc) or type(exc).__name__)
        self._by_identifier[image.identifier] = texture_value
        return AssetImportResult(image.identifier, texture_value, True, reused=reused)

    async def import_images(
        self,
        images: Iterable[ImageFile],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[AssetImportResult]:
        pending = list(images)
        results: List[AssetImportResult] = []
        for index, image in enumerate(pending, start=1):
            results.append(await self.import_image(image))
            if on_progress is not None:
                on_progress(index, len(pending))
        ok = sum(1 for r in results if r.success)
        LOG.info("Imported %d/%d image(s) as %d distinct texture(s)", ok, len(results), len(self._by_digest))
        return results

    def register_external_url(self, identifier: str, url: str) -> None:
        self._by_identifier[identifier] = url

    def texture_id(self, identifier: str) -> Optional[str]:
        return self._by_identifier.get(identifier)

    def texture_values(self) -> Dict[str, str]:
        return dict(self._by_identifier)


def collect_external_sources(
    objects: Iterable[SourceObject],
    base_url: str = UDONARIUM_BASE_URL,
) -> Dict[str, str]:
    """identifier -> public URL for every ``./``-relative built-in asset reference."""
    sources: Dict[str, str] = {}
    for obj in objects:
        for ref in iter_image_refs(obj):
            url = external_url_for(ref.identifier, base_url)
            if url is not None:
                sources.setdefault(ref.identifier, url)
    return sources


def register_external_urls(objects: Iterable[SourceObject], importer: AssetImporter) -> int:
    sources = collect_external_sources(objects)
    for identifier, url in sources.items():
        importer.register_external_url(identifier, url)
    return len(sources)

"""Image asset resolution: aspect ratio, blend mode, filter mode and texture identity.

The same image is referenced inconsistently across a scene document, the
archive that carried it and the public asset server, so every lookup expands
an identifier into several candidate keys before consulting each tier.
Tiers, highest precedence first: caller overrides, curated known identifiers,
per-file probes, prefix rules, then the call-site default.
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, Literal, Mapping, Optional, Tuple, Union
from urllib.parse import urlsplit

import httpx
from PIL import Image

from .components import (
    BlendMode,
    TEXTURE_REFERENCE_PREFIX,
    is_gif_texture,
    to_texture_reference,
)

LOG = logging.getLogger(__name__)

FilterMode = Literal["Default", "Point"]
SourceKind = Literal[
    "zip-image",
    "zip-svg",
    "known-id",
    "udonarium-asset-url",
    "external-url",
    "external-svg",
    "unknown",
]
ImageSource = Union[bytes, Path, str]

UDONARIUM_BASE_URL = "https://udonarium.app/"
_SVG_PATTERN = re.compile(r"\.svg(?:$|[?#])", re.IGNORECASE)

__all__ = [
    "FilterMode",
    "SourceKind",
    "ImageSource",
    "ImageAssetInfo",
    "KnownImage",
    "PrefixRule",
    "KNOWN_IMAGES",
    "PREFIX_RULES",
    "UDONARIUM_BASE_URL",
    "normalize_identifier",
    "lookup_keys",
    "infer_source_kind",
    "external_url_for",
    "probe_image_bytes",
    "probe_images",
    "ImageAssetContext",
]


@dataclass(frozen=True, slots=True)
class ImageAssetInfo:
    identifier: str
    texture_value: Optional[str] = None
    aspect_ratio: Optional[float] = None
    blend_mode: Optional[BlendMode] = None
    filter_mode: Optional[FilterMode] = None
    source_kind: Optional[SourceKind] = None


@dataclass(frozen=True, slots=True)
class KnownImage:
    url: str
    aspect_ratio: Optional[float] = None
    blend_mode: Optional[BlendMode] = None


@dataclass(frozen=True, slots=True)
class PrefixRule:
    prefix: str
    aspect_ratio: Optional[float] = None
    blend_mode: Optional[BlendMode] = None


# Built-in images referenced by the default tabletop save data.
KNOWN_IMAGES: Mapping[str, KnownImage] = {
    "testTableBackgroundImage_image": KnownImage(f"{UDONARIUM_BASE_URL}assets/images/BG10a_80.jpg", 0.75, "Opaque"),
    "testCharacter_1_image": KnownImage(f"{UDONARIUM_BASE_URL}assets/images/mon_052.gif", None, "Cutout"),
    "testCharacter_3_image": KnownImage(f"{UDONARIUM_BASE_URL}assets/images/mon_128.gif", None, "Cutout"),
    "testCharacter_4_image": KnownImage(f"{UDONARIUM_BASE_URL}assets/images/mon_150.gif", None, "Cutout"),
    "testCharacter_5_image": KnownImage(f"{UDONARIUM_BASE_URL}assets/images/mon_211.gif", None, "Cutout"),
    "testCharacter_6_image": KnownImage(f"{UDONARIUM_BASE_URL}assets/images/mon_135.gif", None, "Cutout"),
    "none_icon": KnownImage(f"{UDONARIUM_BASE_URL}assets/images/none_icon.png", 1.0, "Cutout"),
}

PREFIX_RULES: Tuple[PrefixRule, ...] = (
    PrefixRule("./assets/images/trump/", 1.5, "Opaque"),
)


# ---------------- Key expansion ----------------

def normalize_identifier(identifier: str) -> str:
    normalized = identifier.replace("\\", "/")
    return re.sub(r"^(?:\./+)+", "", normalized)


def _path_keys(identifier: str) -> list[str]:
    normalized = normalize_identifier(identifier)
    keys = [identifier, normalized, f"./{normalized}"]
    basename = normalized.rsplit("/", 1)[-1]
    if basename:
        keys.append(basename)
        stem = re.sub(r"\.[^.]+$", "", basename)
        if stem:
            keys.append(stem)
    return keys


@lru_cache(maxsize=4096)
def lookup_keys(identifier: str) -> Tuple[str, ...]:
    """Candidate keys for ``identifier``, most specific first."""
    keys = _path_keys(identifier)
    lowered = identifier.lower()
    if lowered.startswith(("http://", "https://")):
        path = urlsplit(identifier).path.lstrip("/")
        if path:
            keys.extend(_path_keys(path))
    seen: Dict[str, None] = {}
    for key in keys:
        if key:
            seen.setdefault(key, None)
    return tuple(seen)


def _is_remote(value: str) -> bool:
    return value.lower().startswith(("http://", "https://"))


def external_url_for(identifier: str, base_url: str = UDONARIUM_BASE_URL) -> Optional[str]:
    """Public URL for a ``./``-relative built-in asset identifier."""
    if identifier.startswith("./"):
        return base_url + identifier[2:]
    return None


def infer_source_kind(identifier: str, texture_value: Optional[str] = None) -> SourceKind:
    normalized = identifier.replace("\\", "/").lower()
    texture = (texture_value or "").lower()
    if normalized.startswith(("./assets/", "assets/")):
        return "udonarium-asset-url"
    if _is_remote(normalized):
        return "external-svg" if _SVG_PATTERN.search(normalized) else "external-url"
    if texture.startswith("resdb://"):
        return "zip-svg" if normalized.endswith(".svg") else "zip-image"
    if _is_remote(texture):
        return "external-url"
    return "unknown"


# ---------------- Probes ----------------

def probe_image_bytes(identifier: str, data: bytes) -> ImageAssetInfo:
    """Decode ``data`` and report its aspect ratio (height / width) and blend mode.

    Raises whatever Pillow raises for undecodable data; callers treat that as
    "unresolved at this tier".
    """
    with Image.open(io.BytesIO(data)) as img:
        width, height = img.size
        if width <= 0 or height <= 0:
            raise ValueError(f"Image {identifier!r} has empty dimensions {img.size}")
        has_alpha = "A" in img.getbands() or "transparency" in img.info
        translucent = False
        if has_alpha:
            rgba = img.convert("RGBA")
            low, _high = rgba.getchannel("A").getextrema()
            translucent = low < 255
    return ImageAssetInfo(
        identifier=identifier,
        aspect_ratio=height / width,
        blend_mode="Cutout" if translucent else "Opaque",
        filter_mode="Point" if is_gif_texture(identifier) else None,
    )


async def _read_source(
    identifier: str,
    source: ImageSource,
    client: Optional[httpx.AsyncClient],
) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, Path):
        return await asyncio.to_thread(source.read_bytes)
    if client is None:
        raise RuntimeError(f"Remote fetch disabled for {identifier}")
    response = await client.get(source)
    response.raise_for_status()
    return response.content


async def _probe_one(
    identifier: str,
    source: ImageSource,
    client: Optional[httpx.AsyncClient],
) -> ImageAssetInfo:
    data = await _read_source(identifier, source, client)
    return await asyncio.to_thread(probe_image_bytes, identifier, data)


async def probe_images(
    sources: Mapping[str, ImageSource],
    *,
    fetch_remote: bool = True,
    timeout: float = 10.0,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, ImageAssetInfo]:
    """Probe every identifier concurrently; failures are skipped, never raised.

    ``sources`` maps identifier -> raw bytes, a local file path or a URL.
    """
    if not sources:
        return {}
    owns_client = client is None and fetch_remote
    http = client
    if owns_client:
        http = httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    elif not fetch_remote:
        http = None
    try:
        identifiers = list(sources)
        outcomes = await asyncio.gather(
            *(_probe_one(ident, sources[ident], http) for ident in identifiers),
            return_exceptions=True,
        )
    finally:
        if owns_client and http is not None:
            await http.aclose()

    probed: Dict[str, ImageAssetInfo] = {}
    for identifier, outcome in zip(identifiers, outcomes):
        if isinstance(outcome, BaseException):
            LOG.debug("Image probe failed for %s: %s", identifier, outcome)
            continue
        probed[identifier] = outcome
    LOG.info("Probed %d/%d image(s)", len(probed), len(identifiers))
    return probed


# ---------------- Resolution context ----------------

def _index(entries: Mapping[str, object]) -> Dict[str, object]:
    """Index stored identifiers under every key they expand to; exact keys win."""
    index: Dict[str, object] = dict(entries)
    for identifier, value in entries.items():
        for key in lookup_keys(identifier):
            index.setdefault(key, value)
    return index


def _find(index: Mapping[str, object], identifier: str) -> Optional[object]:
    for key in lookup_keys(identifier):
        value = index.get(key)
        if value is not None:
            return value
    return None


class ImageAssetContext:
    """Read-only view over every source of image metadata for one conversion."""

    def __init__(
        self,
        *,
        overrides: Optional[Mapping[str, ImageAssetInfo]] = None,
        probes: Optional[Mapping[str, ImageAssetInfo]] = None,
        texture_values: Optional[Mapping[str, str]] = None,
        texture_references: Optional[Mapping[str, str]] = None,
        known_images: Mapping[str, KnownImage] = KNOWN_IMAGES,
        prefix_rules: Iterable[PrefixRule] = PREFIX_RULES,
        base_url: str = UDONARIUM_BASE_URL,
    ) -> None:
        self._overrides = dict(overrides or {})
        self._probes = dict(probes or {})
        self._texture_values = dict(texture_values or {})
        self._texture_references = dict(texture_references or {})
        self._known_images = known_images
        self._prefix_rules = tuple(prefix_rules)
        self._base_url = base_url

        self._override_index = _index(self._overrides)
        self._probe_index = _index(self._probes)
        self._texture_index = _index(self._texture_values)
        self._reference_index = _index(self._texture_references)
        self._known_index = _index(dict(known_images))

    def with_texture_references(self, references: Mapping[str, str]) -> "ImageAssetContext":
        """Copy of this context whose textures resolve to shared texture components."""
        merged = dict(self._texture_references)
        merged.update(references)
        return ImageAssetContext(
            overrides=self._overrides,
            probes=self._probes,
            texture_values=self._texture_values,
            texture_references=merged,
            known_images=self._known_images,
            prefix_rules=self._prefix_rules,
            base_url=self._base_url,
        )

    def with_texture_values(self, values: Mapping[str, str]) -> "ImageAssetContext":
        merged = dict(self._texture_values)
        merged.update(values)
        return ImageAssetContext(
            overrides=self._overrides,
            probes=self._probes,
            texture_values=merged,
            texture_references=self._texture_references,
            known_images=self._known_images,
            prefix_rules=self._prefix_rules,
            base_url=self._base_url,
        )

    # ----- tier access -----

    def _override(self, identifier: str) -> Optional[ImageAssetInfo]:
        return _find(self._override_index, identifier)  # type: ignore[return-value]

    def _known(self, identifier: str) -> Optional[KnownImage]:
        return _find(self._known_index, identifier)  # type: ignore[return-value]

    def _probe(self, identifier: str) -> Optional[ImageAssetInfo]:
        return _find(self._probe_index, identifier)  # type: ignore[return-value]

    def _prefix(self, identifier: str) -> Optional[PrefixRule]:
        candidates = set()
        for key in lookup_keys(identifier):
            candidates.add(key)
            candidates.add(f"./{normalize_identifier(key)}")
        for rule in self._prefix_rules:
            if any(c.startswith(rule.prefix) for c in candidates):
                return rule
        return None

    # ----- public lookups -----

    def resolve_texture_value(self, identifier: Optional[str]) -> Optional[str]:
        if not identifier:
            return None
        if identifier.startswith(TEXTURE_REFERENCE_PREFIX):
            return identifier
        component_id = _find(self._reference_index, identifier)
        if component_id:
            return to_texture_reference(str(component_id))
        override = self._override(identifier)
        if override is not None and override.texture_value:
            return override.texture_value
        value = _find(self._texture_index, identifier)
        if value:
            return str(value)
        known = self._known(identifier)
        if known is not None:
            return known.url
        external = external_url_for(identifier, self._base_url)
        if external:
            return external
        if _is_remote(identifier):
            return identifier
        return None

    def lookup_aspect_ratio(self, identifier: Optional[str]) -> Optional[float]:
        if not identifier:
            return None
        for candidate in (self._override(identifier), self._known(identifier), self._probe(identifier),
                          self._prefix(identifier)):
            ratio = getattr(candidate, "aspect_ratio", None) if candidate is not None else None
            if ratio is not None and ratio > 0:
                return float(ratio)
        return None

    def lookup_blend_mode(self, identifier: Optional[str], default: BlendMode = "Cutout") -> BlendMode:
        if not identifier or identifier.startswith(TEXTURE_REFERENCE_PREFIX):
            return default
        for candidate in (self._override(identifier), self._known(identifier), self._probe(identifier),
                          self._prefix(identifier)):
            mode = getattr(candidate, "blend_mode", None) if candidate is not None else None
            if mode:
                return mode
        return default

    def use_point_filter(self, identifier: Optional[str], texture_value: Optional[str] = None) -> bool:
        if identifier:
            for candidate in (self._override(identifier), self._probe(identifier)):
                if candidate is not None and candidate.filter_mode:
                    return candidate.filter_mode == "Point"
            if is_gif_texture(identifier):
                return True
        return is_gif_texture(texture_value)

    def source_kind(self, identifier: str) -> SourceKind:
        override = self._override(identifier)
        if override is not None and override.source_kind:
            return override.source_kind
        if self._known(identifier) is not None:
            return "known-id"
        texture_value = _find(self._texture_index, identifier)
        return infer_source_kind(identifier, str(texture_value) if texture_value else None)

    def asset_info(self, identifier: str) -> ImageAssetInfo:
        texture_value = self.resolve_texture_value(identifier)
        return ImageAssetInfo(
            identifier=identifier,
            texture_value=texture_value,
            aspect_ratio=self.lookup_aspect_ratio(identifier),
            blend_mode=self.lookup_blend_mode(identifier, default="Opaque"),
            filter_mode="Point" if self.use_point_filter(identifier, texture_value) else "Default",
            source_kind=self.source_kind(identifier),
        )

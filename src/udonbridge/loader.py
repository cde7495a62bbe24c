"""Read a scene document (save archive, YAML or JSON) into source objects."""

from __future__ import annotations

import logging
import re
import tempfile
from dataclasses import dataclass, field, fields as dataclass_fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from .archive import read_save_archive
from .config.settings import as_bool, read_mapping_file
from .errors import ConfigError
from .importer import ImageFile
from .model import (
    Card,
    ImageRef,
    SOURCE_KINDS,
    SlopeDirection,
    SourceObject,
    SourcePosition,
    Table,
    Terrain,
    TerrainExtensionTable,
    TerrainSlopeExtension,
    terrain_extension_key,
)

LOG = logging.getLogger(__name__)

PathLike = Union[str, Path]
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
_IMAGE_FIELDS = {"front_image", "back_image", "wall_image", "floor_image"}
_IMAGE_LIST_FIELDS = {"images", "face_images"}
_KIND_ALIASES = {
    "card_stack": "card-stack",
    "cardstack": "card-stack",
    "dice_symbol": "dice-symbol",
    "dicesymbol": "dice-symbol",
    "table_mask": "table-mask",
    "tablemask": "table-mask",
    "text_note": "text-note",
    "textnote": "text-note",
    "game_table": "table",
    "gametable": "table",
}

__all__ = ["SceneDocument", "load_scene_document", "parse_object", "parse_scene_document"]


@dataclass
class SceneDocument:
    objects: List[SourceObject] = field(default_factory=list)
    terrain_extensions: TerrainExtensionTable = field(default_factory=TerrainExtensionTable)
    images: List[ImageFile] = field(default_factory=list)


def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).replace("-", "_").lower()


def _normalized(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {_snake(str(k)): v for k, v in data.items()}


def _image_ref(value: Any) -> Optional[ImageRef]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return ImageRef(value)
    if isinstance(value, Mapping):
        identifier = value.get("identifier")
        if not identifier:
            raise ConfigError(f"Image reference without identifier: {dict(value)!r}")
        return ImageRef(str(identifier), str(value.get("name", "")))
    raise ConfigError(f"Unsupported image reference {value!r}")


def _position(value: Any) -> SourcePosition:
    if value is None:
        return SourcePosition()
    if isinstance(value, Mapping):
        return SourcePosition(float(value.get("x", 0)), float(value.get("y", 0)), float(value.get("z", 0)))
    if isinstance(value, (list, tuple)) and 2 <= len(value) <= 3:
        return SourcePosition(*(float(v) for v in value))
    raise ConfigError(f"Unsupported position {value!r}")


def _kind(value: Any) -> str:
    raw = str(value or "").strip()
    lowered = _snake(raw)
    return _KIND_ALIASES.get(lowered, lowered.replace("_", "-"))


def parse_object(data: Mapping[str, Any]) -> SourceObject:
    """One object mapping (snake_case or camelCase keys) to its source variant."""
    if not isinstance(data, Mapping):
        raise ConfigError(f"Scene object must be a mapping, got {type(data).__name__}")
    values = _normalized(data)
    kind = _kind(values.pop("type", None))
    cls = SOURCE_KINDS.get(kind)
    if cls is None:
        raise ConfigError(f"Unknown object type {data.get('type')!r}")
    if not values.get("id"):
        raise ConfigError(f"{kind} object without id")

    kwargs: Dict[str, Any] = {}
    allowed = {f.name for f in dataclass_fields(cls)}
    for key, value in values.items():
        if key == "position":
            kwargs[key] = _position(value)
        elif key in _IMAGE_LIST_FIELDS:
            kwargs[key] = [ref for ref in (_image_ref(v) for v in value or []) if ref is not None]
        elif key in _IMAGE_FIELDS:
            kwargs[key] = _image_ref(value)
        elif key == "cards":
            kwargs[key] = [_parse_card(v) for v in value or []]
        elif key == "children":
            kwargs[key] = [parse_object(v) for v in value or []]
        elif key in allowed:
            kwargs[key] = value
        else:
            LOG.debug("Ignoring unknown %s field %r", kind, key)
    kwargs["id"] = str(kwargs["id"])
    kwargs.setdefault("name", kwargs["id"])
    try:
        obj = cls(**kwargs)
    except TypeError as exc:
        raise ConfigError(f"Invalid {kind} object {kwargs['id']!r}: {exc}") from exc
    if isinstance(obj, Table) and any(isinstance(child, Table) for child in obj.children):
        raise ConfigError(f"Table {obj.id!r} cannot contain another table")
    return obj


def _parse_card(data: Mapping[str, Any]) -> Card:
    card = parse_object({"type": "card", **data})
    if not isinstance(card, Card):
        raise ConfigError(f"Card stack entries must be cards, got {card.kind}")
    return card


def _parse_extension(entry: Mapping[str, Any]) -> tuple[str, TerrainSlopeExtension]:
    values = _normalized(entry)
    try:
        direction = SlopeDirection(int(values.get("slope_direction", 0)))
    except ValueError as exc:
        raise ConfigError(f"Invalid slope_direction {values.get('slope_direction')!r}") from exc
    extension = TerrainSlopeExtension(
        altitude=float(values.get("altitude", 0.0)),
        is_slope=as_bool(values.get("is_slope", False), "is_slope"),
        slope_direction=direction,
    )
    key = values.get("key")
    if key:
        return str(key), extension
    terrain = parse_object({**values, "type": "terrain"})
    if not isinstance(terrain, Terrain):
        raise ConfigError(f"Terrain extension does not describe a terrain: {dict(entry)!r}")
    return terrain_extension_key(terrain), extension


def parse_scene_document(data: Any, base_dir: Optional[Path] = None) -> SceneDocument:
    if not isinstance(data, Mapping):
        raise ConfigError("Scene document must be a mapping")
    objects = data.get("objects") or []
    if not isinstance(objects, list):
        raise ConfigError("'objects' must be a list")

    extensions = TerrainExtensionTable()
    for entry in data.get("terrain_extensions") or data.get("terrainExtensions") or []:
        key, extension = _parse_extension(entry)
        extensions.add_key(key, extension)

    images: List[ImageFile] = []
    for entry in data.get("images") or []:
        if isinstance(entry, str):
            identifier, path = entry, entry
        elif isinstance(entry, Mapping) and entry.get("path"):
            path = str(entry["path"])
            identifier = str(entry.get("identifier") or path)
        else:
            raise ConfigError(f"Unsupported image entry {entry!r}")
        resolved = Path(path)
        if base_dir is not None and not resolved.is_absolute():
            resolved = base_dir / resolved
        images.append(ImageFile(identifier, resolved))

    return SceneDocument([parse_object(o) for o in objects], extensions, images)


def load_scene_document(path: PathLike, work_dir: Optional[PathLike] = None) -> SceneDocument:
    """Load a save archive (``.zip``) or a YAML/JSON scene document.

    Archive images are extracted into ``work_dir``; a fresh temporary
    directory is used when none is given.
    """
    document_path = Path(path)
    if document_path.suffix.lower() == ".zip":
        target = Path(work_dir) if work_dir is not None else Path(tempfile.mkdtemp(prefix="udonbridge-"))
        archive = read_save_archive(document_path, target)
        document = SceneDocument(archive.objects, archive.terrain_extensions, archive.images)
    else:
        data = read_mapping_file(document_path)
        document = parse_scene_document(data, document_path.parent)
    LOG.info(
        "Loaded %d object(s), %d terrain extension(s) and %d image(s) from %s",
        len(document.objects),
        len(document.terrain_extensions),
        len(document.images),
        document_path,
    )
    return document

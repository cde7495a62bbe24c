"""Source-object sum type and the scene-node tree produced from it."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Dict, Iterator, List, Optional, Union

from .fields import FieldValue
from .mapping import IDENTITY_ROTATION, Vec3

__all__ = [
    "ImageRef",
    "SourcePosition",
    "SourceBase",
    "Character",
    "Card",
    "CardStack",
    "DiceSymbol",
    "Terrain",
    "Table",
    "TableMask",
    "TextNote",
    "SourceObject",
    "TableChild",
    "SOURCE_KINDS",
    "SlopeDirection",
    "TerrainSlopeExtension",
    "DEFAULT_TERRAIN_EXTENSION",
    "TerrainExtensionTable",
    "terrain_extension_key",
    "Component",
    "SceneNode",
    "IdFactory",
    "make_id_factory",
    "iter_nodes",
    "iter_image_refs",
]


# ---------------- Source objects ----------------

@dataclass(frozen=True, slots=True)
class ImageRef:
    identifier: str
    name: str = ""


@dataclass(frozen=True, slots=True)
class SourcePosition:
    """Edge/corner anchored tabletop position (pixel-like units)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass
class SourceBase:
    id: str
    name: str = ""
    position: SourcePosition = field(default_factory=SourcePosition)
    images: List[ImageRef] = field(default_factory=list)

    kind: ClassVar[str] = ""

    def first_image(self, index: int = 0) -> Optional[ImageRef]:
        if 0 <= index < len(self.images):
            return self.images[index]
        return None


@dataclass
class Character(SourceBase):
    kind: ClassVar[str] = "character"

    size: float = 1.0
    rotate: float = 0.0
    roll: float = 0.0
    location_name: str = ""


@dataclass
class Card(SourceBase):
    kind: ClassVar[str] = "card"

    size: Optional[float] = None
    rotate: float = 0.0
    is_face_up: bool = True
    front_image: Optional[ImageRef] = None
    back_image: Optional[ImageRef] = None


@dataclass
class CardStack(SourceBase):
    kind: ClassVar[str] = "card-stack"

    rotate: float = 0.0
    cards: List[Card] = field(default_factory=list)


@dataclass
class DiceSymbol(SourceBase):
    kind: ClassVar[str] = "dice-symbol"

    size: float = 1.0
    rotate: float = 0.0
    face: Optional[str] = None
    face_images: List[ImageRef] = field(default_factory=list)


@dataclass
class Terrain(SourceBase):
    kind: ClassVar[str] = "terrain"

    width: float = 1.0
    height: float = 1.0
    depth: float = 1.0
    rotate: float = 0.0
    mode: int = 0
    is_locked: bool = False
    location_name: str = ""
    wall_image: Optional[ImageRef] = None
    floor_image: Optional[ImageRef] = None


@dataclass
class TableMask(SourceBase):
    kind: ClassVar[str] = "table-mask"

    width: float = 4.0
    height: float = 4.0
    opacity: float = 100.0
    is_lock: bool = False


@dataclass
class TextNote(SourceBase):
    kind: ClassVar[str] = "text-note"

    text: str = ""
    font_size: float = 16.0


TableChild = Union[Character, Card, CardStack, DiceSymbol, Terrain, TableMask, TextNote]


@dataclass
class Table(SourceBase):
    kind: ClassVar[str] = "table"

    width: float = 20.0
    height: float = 15.0
    grid_type: str = "SQUARE"
    grid_color: str = "#000000e6"
    selected: bool = False
    children: List[TableChild] = field(default_factory=list)


SourceObject = Union[Character, Card, CardStack, DiceSymbol, Terrain, Table, TableMask, TextNote]

SOURCE_KINDS: Dict[str, type] = {
    cls.kind: cls
    for cls in (Character, Card, CardStack, DiceSymbol, Terrain, Table, TableMask, TextNote)
}


def iter_image_refs(obj: SourceObject) -> Iterator[ImageRef]:
    """Every image reference an object (and its nested objects) may render."""
    yield from obj.images
    if isinstance(obj, Card):
        for ref in (obj.front_image, obj.back_image):
            if ref is not None:
                yield ref
    elif isinstance(obj, Terrain):
        for ref in (obj.wall_image, obj.floor_image):
            if ref is not None:
                yield ref
    elif isinstance(obj, DiceSymbol):
        yield from obj.face_images
    elif isinstance(obj, CardStack):
        for card in obj.cards:
            yield from iter_image_refs(card)
    elif isinstance(obj, Table):
        for child in obj.children:
            yield from iter_image_refs(child)


# ---------------- Terrain slope extension ----------------

class SlopeDirection(enum.IntEnum):
    NONE = 0
    TOP = 1
    BOTTOM = 2
    LEFT = 3
    RIGHT = 4


@dataclass(frozen=True, slots=True)
class TerrainSlopeExtension:
    altitude: float = 0.0
    is_slope: bool = False
    slope_direction: SlopeDirection = SlopeDirection.NONE

    @property
    def active_slope(self) -> Optional[SlopeDirection]:
        if self.is_slope and self.slope_direction != SlopeDirection.NONE:
            return self.slope_direction
        return None


DEFAULT_TERRAIN_EXTENSION = TerrainSlopeExtension()


def _key_number(value: float) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def terrain_extension_key(terrain: Terrain) -> str:
    """Composite identity joining a terrain to its out-of-band extension record."""
    parts = [
        terrain.id,
        terrain.name,
        _key_number(terrain.position.x),
        _key_number(terrain.position.y),
        _key_number(terrain.position.z),
        _key_number(terrain.width),
        _key_number(terrain.height),
        _key_number(terrain.depth),
        str(int(terrain.mode)),
        _key_number(terrain.rotate),
    ]
    return "|".join(parts)


class TerrainExtensionTable:
    def __init__(self, records: Optional[Dict[str, TerrainSlopeExtension]] = None) -> None:
        self._records: Dict[str, TerrainSlopeExtension] = dict(records or {})

    def __len__(self) -> int:
        return len(self._records)

    def add(self, terrain: Terrain, extension: TerrainSlopeExtension) -> None:
        self._records[terrain_extension_key(terrain)] = extension

    def add_key(self, key: str, extension: TerrainSlopeExtension) -> None:
        self._records[key] = extension

    def merge(self, other: "TerrainExtensionTable") -> None:
        self._records.update(other._records)

    def lookup(self, terrain: Terrain) -> TerrainSlopeExtension:
        return self._records.get(terrain_extension_key(terrain), DEFAULT_TERRAIN_EXTENSION)


# ---------------- Scene tree ----------------

@dataclass
class Component:
    id: str
    type: str
    fields: Dict[str, FieldValue] = field(default_factory=dict)


@dataclass
class SceneNode:
    id: str
    name: str
    position: Vec3 = (0.0, 0.0, 0.0)
    rotation: Vec3 = IDENTITY_ROTATION
    scale: Optional[Vec3] = None
    is_active: bool = True
    source_kind: Optional[str] = None
    location: Optional[str] = None
    tag: Optional[str] = None
    components: List[Component] = field(default_factory=list)
    children: List["SceneNode"] = field(default_factory=list)

    def child(self, suffix: str) -> Optional["SceneNode"]:
        for node in self.children:
            if node.id.endswith(suffix):
                return node
        return None

    def components_of(self, component_type: str) -> List[Component]:
        return [c for c in self.components if c.type == component_type]


IdFactory = Callable[[], str]


def make_id_factory(prefix: str = "udon-obj") -> IdFactory:
    def _next_id() -> str:
        return f"{prefix}-{uuid.uuid4()}"

    return _next_id


def iter_nodes(roots: List[SceneNode]) -> Iterator[SceneNode]:
    stack = list(reversed(roots))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))

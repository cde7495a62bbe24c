"""Read an Udonarium save archive: room XML plus the images it references.

Udonarium stores every object as an element whose attributes hold its
placement (``location.x``, ``posZ``, ``rotate``...) and whose nested
``<data name="...">`` tree holds the rest (``common/name``, ``image/front``...).
Images sit next to the XML, named after their identifier.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, Iterator, List, Optional, Union

from .config.settings import as_bool
from .errors import ConfigError
from .importer import ImageFile
from .model import (
    Card,
    CardStack,
    Character,
    DiceSymbol,
    ImageRef,
    SlopeDirection,
    SourceObject,
    SourcePosition,
    Table,
    TableChild,
    TableMask,
    Terrain,
    TerrainExtensionTable,
    TerrainSlopeExtension,
    TextNote,
)

LOG = logging.getLogger(__name__)

PathLike = Union[str, Path]

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")
_LILY_FIELDS = ("altitude", "isSlope", "slopeDirection")

__all__ = ["IMAGE_SUFFIXES", "SaveArchive", "RoomParser", "read_save_archive"]


@dataclass
class SaveArchive:
    """Objects, terrain extensions and extracted images of one save file."""

    objects: List[SourceObject]
    terrain_extensions: TerrainExtensionTable
    images: List[ImageFile]


# ---------------- <data> tree helpers ----------------

def _find_data(element: Optional[ET.Element], name: str) -> Optional[ET.Element]:
    if element is None:
        return None
    for node in element.iter("data"):
        if node.get("name") == name:
            return node
    return None


def _text(node: Optional[ET.Element]) -> Optional[str]:
    if node is None:
        return None
    if node.text and node.text.strip():
        return node.text.strip()
    for child in node.findall("data"):
        if child.text and child.text.strip():
            return child.text.strip()
    return None


def _number(value: Optional[str], default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        LOG.debug("Ignoring non-numeric value %r", value)
        return default


def _flag(value: Optional[str], default: bool, key: str) -> bool:
    if value is None or value == "":
        return default
    return as_bool(value, key)


def _image(section: Optional[ET.Element], name: str) -> Optional[ImageRef]:
    identifier = _text(_find_data(section, name))
    if not identifier:
        return None
    return ImageRef(identifier, name)


def _position(element: ET.Element) -> SourcePosition:
    x = element.get("location.x") or element.get("posX")
    y = element.get("location.y") or element.get("posY")
    return SourcePosition(_number(x, 0.0), _number(y, 0.0), _number(element.get("posZ"), 0.0))


class RoomParser:
    """Turn room XML into source objects.

    Supported elements are parsed where they are found; anything else is
    descended into. Tables parse their own nested children.
    """

    def __init__(self, extensions: Optional[TerrainExtensionTable] = None) -> None:
        self.extensions = extensions if extensions is not None else TerrainExtensionTable()
        self._file_name = ""
        self._anonymous = 0
        self._parsers: Dict[str, Callable[[ET.Element], SourceObject]] = {
            "character": self._parse_character,
            "card": self._parse_card,
            "card-stack": self._parse_card_stack,
            "dice-symbol": self._parse_dice_symbol,
            "terrain": self._parse_terrain,
            "table-mask": self._parse_table_mask,
            "text-note": self._parse_text_note,
            "game-table": self._parse_table,
            "table": self._parse_table,
        }

    def parse_string(self, content: Union[str, bytes], file_name: str = "data.xml") -> List[SourceObject]:
        try:
            root = ET.fromstring(content)
        except ET.ParseError as exc:
            raise ConfigError(f"Cannot parse {file_name}: {exc}") from exc
        self._file_name = PurePosixPath(file_name).stem
        return list(self._collect(root, allow_tables=True))

    def _collect(self, element: ET.Element, *, allow_tables: bool) -> Iterator[SourceObject]:
        parser = self._parsers.get(element.tag)
        if parser is None:
            for child in element:
                yield from self._collect(child, allow_tables=allow_tables)
            return
        if not allow_tables and parser == self._parse_table:
            LOG.warning("Skipping table %s nested inside another table", element.get("identifier"))
            return
        yield parser(element)

    # ----- common attributes -----

    def _identity(self, element: ET.Element, section: Optional[ET.Element], name_key: str = "name"):
        identifier = element.get("identifier")
        if not identifier:
            self._anonymous += 1
            identifier = f"{self._file_name}-{element.tag}-{self._anonymous}"
        common = _find_data(section, "common")
        name = _text(_find_data(common, name_key)) or element.get("name") or identifier
        return identifier, name, common

    # ----- per-element parsers -----

    def _parse_character(self, element: ET.Element) -> Character:
        section = _find_data(element, "character")
        identifier, name, common = self._identity(element, section)
        image = _image(_find_data(section, "image"), "imageIdentifier")
        return Character(
            id=identifier,
            name=name,
            position=_position(element),
            images=[ImageRef(image.identifier, "main")] if image else [],
            size=_number(_text(_find_data(common, "size")), 1.0),
            rotate=_number(element.get("rotate"), 0.0),
            roll=_number(element.get("roll"), 0.0),
            location_name=element.get("location.name", ""),
        )

    def _parse_card(self, element: ET.Element) -> Card:
        section = _find_data(element, "card")
        identifier, name, common = self._identity(element, section)
        images = _find_data(section, "image")
        front = _image(images, "front")
        back = _image(images, "back")
        size = _text(_find_data(common, "size"))
        return Card(
            id=identifier,
            name=name,
            position=_position(element),
            images=[ref for ref in (front, back) if ref is not None],
            size=_number(size, 1.0) if size is not None else None,
            rotate=_number(element.get("rotate"), 0.0),
            is_face_up=_flag(element.get("isFaceUp"), True, "isFaceUp"),
            front_image=front,
            back_image=back,
        )

    def _parse_card_stack(self, element: ET.Element) -> CardStack:
        section = _find_data(element, "card-stack")
        identifier, name, _common = self._identity(element, section)
        return CardStack(
            id=identifier,
            name=name,
            position=_position(element),
            rotate=_number(element.get("rotate"), 0.0),
            cards=[self._parse_card(card) for card in element.iter("card")],
        )

    def _parse_dice_symbol(self, element: ET.Element) -> DiceSymbol:
        section = _find_data(element, "dice-symbol")
        identifier, name, common = self._identity(element, section)
        image_section = _find_data(section, "image")
        faces: List[ImageRef] = []
        if image_section is not None:
            for entry in image_section.findall("data"):
                face_id = _text(entry)
                if entry.get("type") == "image" and face_id:
                    faces.append(ImageRef(face_id, entry.get("name") or "face"))
        face = element.get("face") or None
        current = next((ref for ref in faces if ref.name == face), faces[0] if faces else None)
        return DiceSymbol(
            id=identifier,
            name=name,
            position=_position(element),
            images=[current, *(ref for ref in faces if ref is not current)] if current else [],
            size=_number(_text(_find_data(common, "size")), 1.0),
            rotate=_number(element.get("rotate"), 0.0),
            face=face,
            face_images=faces,
        )

    def _parse_terrain(self, element: ET.Element) -> Terrain:
        section = _find_data(element, "terrain")
        identifier, name, common = self._identity(element, section)
        images = _find_data(section, "image")
        wall = _image(images, "wall")
        floor = _image(images, "floor")
        terrain = Terrain(
            id=identifier,
            name=name,
            position=_position(element),
            images=[ref for ref in (wall, floor) if ref is not None],
            width=_number(_text(_find_data(common, "width")), 1.0),
            height=_number(_text(_find_data(common, "height")), 1.0),
            depth=_number(_text(_find_data(common, "depth")), 1.0),
            rotate=_number(element.get("rotate"), 0.0),
            mode=int(_number(element.get("mode"), 0.0)),
            is_locked=_flag(element.get("isLocked"), False, "isLocked"),
            location_name=element.get("location.name", ""),
            wall_image=wall,
            floor_image=floor,
        )
        extension = self._lily_extension(element, common)
        if extension is not None:
            self.extensions.add(terrain, extension)
        return terrain

    def _lily_extension(self, element: ET.Element, common: Optional[ET.Element]) -> Optional[TerrainSlopeExtension]:
        """Altitude and slope written by the lily fork, as attributes or common data."""
        raw = {}
        for key in _LILY_FIELDS:
            value = element.get(key)
            if value is None:
                value = _text(_find_data(common, key))
            if value is not None:
                raw[key] = value
        if not raw:
            return None
        try:
            direction = SlopeDirection(int(_number(raw.get("slopeDirection"), 0.0)))
        except ValueError:
            LOG.debug("Unknown slope direction %r", raw.get("slopeDirection"))
            direction = SlopeDirection.NONE
        return TerrainSlopeExtension(
            altitude=_number(raw.get("altitude"), 0.0),
            is_slope=_flag(raw.get("isSlope"), False, "isSlope"),
            slope_direction=direction,
        )

    def _parse_table_mask(self, element: ET.Element) -> TableMask:
        section = _find_data(element, "table-mask")
        identifier, name, common = self._identity(element, section)
        image = _image(_find_data(section, "image"), "imageIdentifier")
        opacity_node = _find_data(common, "opacity")
        opacity = None
        if opacity_node is not None:
            opacity = opacity_node.get("currentValue") or _text(opacity_node)
        return TableMask(
            id=identifier,
            name=name,
            position=_position(element),
            images=[image] if image else [],
            width=_number(_text(_find_data(common, "width")), 4.0),
            height=_number(_text(_find_data(common, "height")), 4.0),
            opacity=_number(opacity, 100.0),
            is_lock=_flag(element.get("isLock"), False, "isLock"),
        )

    def _parse_text_note(self, element: ET.Element) -> TextNote:
        section = _find_data(element, "text-note")
        identifier, name, common = self._identity(element, section, name_key="title")
        text = _text(_find_data(common, "text")) or _text(_find_data(section, "note")) or ""
        font_size = _text(_find_data(common, "fontsize")) or _text(_find_data(section, "fontSize"))
        note = TextNote(id=identifier, name=name, position=_position(element), text=text)
        if font_size is not None:
            note.font_size = _number(font_size, note.font_size)
        return note

    def _parse_table(self, element: ET.Element) -> Table:
        section = _find_data(element, "table")
        identifier, name, common = self._identity(element, section)
        image_id = element.get("imageIdentifier") or _text(_find_data(_find_data(section, "image"), "imageIdentifier"))
        children: List[TableChild] = []
        for child in element:
            if child.tag == "data":
                continue
            children.extend(self._collect(child, allow_tables=False))  # type: ignore[arg-type]
        return Table(
            id=identifier,
            name=name,
            images=[ImageRef(image_id, "surface")] if image_id else [],
            width=_number(element.get("width") or _text(_find_data(common, "width")), 20.0),
            height=_number(element.get("height") or _text(_find_data(common, "height")), 15.0),
            grid_type=element.get("gridType") or _text(_find_data(common, "gridType")) or "SQUARE",
            grid_color=element.get("gridColor") or _text(_find_data(common, "gridColor")) or "#000000e6",
            selected=_flag(element.get("selected"), False, "selected"),
            children=children,
        )


def _extract_image(archive: zipfile.ZipFile, info: zipfile.ZipInfo, target_dir: Path) -> ImageFile:
    member = PurePosixPath(info.filename)
    target = target_dir / member.name
    target.write_bytes(archive.read(info))
    return ImageFile(member.stem, target)


def read_save_archive(path: PathLike, extract_dir: PathLike) -> SaveArchive:
    """Parse every XML entry of a save archive and extract its images into ``extract_dir``.

    Entries that fail to parse are logged and skipped, like unsupported
    elements inside a file.
    """
    archive_path = Path(path)
    target_dir = Path(extract_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    parser = RoomParser()
    objects: List[SourceObject] = []
    images: List[ImageFile] = []
    try:
        with zipfile.ZipFile(archive_path) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                suffix = PurePosixPath(info.filename).suffix.lower()
                if suffix == ".xml":
                    try:
                        objects.extend(parser.parse_string(archive.read(info), info.filename))
                    except ConfigError as exc:
                        LOG.warning("%s", exc)
                elif suffix in IMAGE_SUFFIXES:
                    images.append(_extract_image(archive, info, target_dir))
    except (OSError, zipfile.BadZipFile) as exc:
        raise ConfigError(f"Cannot read save archive {archive_path}: {exc}") from exc
    return SaveArchive(objects, parser.extensions, images)

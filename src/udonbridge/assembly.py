"""Apply the per-type converters across a whole source forest."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, List, Sequence

from .converters import (
    ConversionContext,
    convert_card,
    convert_card_stack,
    convert_character,
    convert_dice_symbol,
    convert_table,
    convert_table_mask,
    convert_terrain,
    convert_text_note,
)
from .mapping import to_center_position
from .model import (
    Card,
    CardStack,
    Character,
    DiceSymbol,
    SceneNode,
    SourceObject,
    Table,
    TableMask,
    Terrain,
    TextNote,
)

LOG = logging.getLogger(__name__)

__all__ = ["convert_object", "convert_forest", "apply_table_visibility"]


def convert_object(obj: SourceObject, context: ConversionContext) -> SceneNode:
    """Convert one source object (and, for tables and stacks, its nested objects)."""
    position = to_center_position(obj.position.x, obj.position.y)
    match obj:
        case Character():
            return convert_character(obj, position, context)
        case Card():
            return convert_card(obj, position, context)
        case CardStack():
            return convert_card_stack(obj, position, context)
        case DiceSymbol():
            return convert_dice_symbol(obj, position, context)
        case Terrain():
            return convert_terrain(obj, position, context)
        case Table():
            return convert_table(obj, position, context, lambda child: convert_object(child, context))
        case TableMask():
            return convert_table_mask(obj, position, context)
        case TextNote():
            return convert_text_note(obj, position, context)
        case _:
            raise TypeError(f"Unsupported source object {type(obj).__name__}")


def apply_table_visibility(nodes: Sequence[SceneNode], objects: Sequence[SourceObject]) -> None:
    """With several tables, only the selected ones stay active."""
    tables = [(node, obj) for node, obj in zip(nodes, objects) if isinstance(obj, Table)]
    if len(tables) <= 1:
        return
    if not any(obj.selected for _, obj in tables):
        return
    for node, obj in tables:
        node.is_active = bool(obj.selected)


def convert_forest(objects: Iterable[SourceObject], context: ConversionContext) -> List[SceneNode]:
    sources = list(objects)
    nodes = [convert_object(obj, context) for obj in sources]
    apply_table_visibility(nodes, sources)
    kinds = Counter(obj.kind for obj in sources)
    LOG.info(
        "Converted %d top-level object(s): %s",
        len(nodes),
        ", ".join(f"{kind}={count}" for kind, count in sorted(kinds.items())) or "none",
    )
    return nodes

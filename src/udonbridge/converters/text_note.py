from __future__ import annotations

from ..components import box_collider, grabbable, text_component
from ..mapping import Vec3, offset
from ..model import SceneNode, TextNote
from .common import ConversionContext, new_root

MIN_FONT_SIZE = 8.0
NOTE_FOOTPRINT = 1.0
NOTE_THICKNESS = 0.02


def convert_text_note(obj: TextNote, base_position: Vec3, context: ConversionContext) -> SceneNode:
    node = new_root(
        context,
        obj,
        offset(base_position, NOTE_FOOTPRINT / 2, 0.0, -NOTE_FOOTPRINT / 2),
    )
    node.components.append(text_component(node.id, obj.text, max(MIN_FONT_SIZE, float(obj.font_size))))
    node.components.append(box_collider(node.id, (NOTE_FOOTPRINT, NOTE_THICKNESS, NOTE_FOOTPRINT)))
    node.components.append(grabbable(node.id))
    return node

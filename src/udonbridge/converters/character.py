from __future__ import annotations

from ..components import box_collider, grabbable
from ..mapping import Vec3, offset, to_uniform_scale
from ..model import Character, SceneNode
from .common import ConversionContext, first_identifier, new_root, resolve_aspect_ratio, surface_components

COLLIDER_DEPTH = 0.05


def convert_character(obj: Character, base_position: Vec3, context: ConversionContext) -> SceneNode:
    """Standing dual-sided portrait lifted so its bottom edge rests on the table."""
    width = to_uniform_scale(obj.size)
    identifier = first_identifier(obj.first_image())
    aspect = resolve_aspect_ratio(context, [identifier]) if identifier else 1.0
    height = width * aspect

    node = new_root(
        context,
        obj,
        offset(base_position, width / 2, height / 2, -width / 2),
        (0.0, float(obj.rotate), float(obj.roll)),
    )
    node.location = obj.location_name or None
    if identifier:
        node.components.extend(
            surface_components(context, node.id, identifier, (width, height), dual_sided=True)
        )
    node.components.append(box_collider(node.id, (width, height, COLLIDER_DEPTH)))
    node.components.append(grabbable(node.id))
    return node

from __future__ import annotations

from ..components import box_collider, grabbable
from ..mapping import Vec3, offset, to_uniform_scale
from ..model import DiceSymbol, SceneNode
from .common import ConversionContext, new_root, resolve_aspect_ratio, surface_components

COLLIDER_DEPTH = 0.05


def convert_dice_symbol(obj: DiceSymbol, base_position: Vec3, context: ConversionContext) -> SceneNode:
    width = to_uniform_scale(obj.size)
    heights = [width * resolve_aspect_ratio(context, [face.identifier]) for face in obj.face_images]
    max_height = max([width, *heights])
    active_face = obj.face if obj.face is not None else (obj.face_images[0].name if obj.face_images else None)

    node = new_root(
        context,
        obj,
        offset(base_position, width / 2, max_height / 2, -width / 2),
        (0.0, float(obj.rotate), 0.0),
    )
    node.components.append(box_collider(node.id, (width, max_height, COLLIDER_DEPTH)))
    node.components.append(grabbable(node.id))

    for index, (face, height) in enumerate(zip(obj.face_images, heights)):
        child = SceneNode(
            id=f"{node.id}-face-{index}",
            name=f"{obj.name}-face-{face.name}",
            # Shorter faces sit on the same bottom edge as the tallest one.
            position=(0.0, -(max_height - height) / 2, 0.0),
            is_active=face.name == active_face,
        )
        child.components = surface_components(
            context, child.id, face.identifier, (width, height), dual_sided=True
        )
        node.children.append(child)
    return node

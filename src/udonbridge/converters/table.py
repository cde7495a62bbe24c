from __future__ import annotations

from typing import Callable

from ..components import box_collider
from ..mapping import IDENTITY_ROTATION, Vec3
from ..model import SceneNode, Table, TableChild
from .common import ConversionContext, first_identifier, new_root, surface_components

SURFACE_THICKNESS = 0.01

ChildConverter = Callable[[TableChild], SceneNode]


def convert_table(
    obj: Table,
    base_position: Vec3,
    context: ConversionContext,
    convert_child: ChildConverter,
) -> SceneNode:
    """Axis-aligned container; the lay-flat surface lives on its own child node.

    Objects placed on the table are converted in the container's frame and
    attached to the container, never to the rotated surface.
    """
    w, h = float(obj.width), float(obj.height)
    node = new_root(context, obj, tuple(base_position), IDENTITY_ROTATION)

    surface = SceneNode(
        id=f"{node.id}-surface",
        name=f"{obj.name}-surface",
        position=(w / 2, 0.0, -h / 2),
        rotation=(90.0, 0.0, 0.0),
    )
    surface.components = surface_components(
        context,
        surface.id,
        first_identifier(obj.first_image()),
        (w, h),
        dual_sided=True,
        default_blend="Opaque",
    )
    surface.components.append(
        box_collider(
            surface.id,
            (w, h, SURFACE_THICKNESS),
            character_collider=context.settings.table_character_collider,
        )
    )
    node.children.append(surface)
    node.children.extend(convert_child(child) for child in obj.children)
    return node

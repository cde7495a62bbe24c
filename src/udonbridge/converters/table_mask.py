from __future__ import annotations

from ..components import box_collider, grabbable
from ..mapping import Vec3, clamp01, offset
from ..model import SceneNode, TableMask
from .common import ConversionContext, first_identifier, new_root, surface_components

MASK_Y_OFFSET = 0.002
MASK_COLLIDER_THICKNESS = 0.01


def mask_color(obj: TableMask) -> tuple[float, float, float, float]:
    """White under an overlay image, black otherwise; alpha from opacity percent."""
    level = 1.0 if first_identifier(obj.first_image()) else 0.0
    return (level, level, level, clamp01(obj.opacity / 100.0))


def convert_table_mask(obj: TableMask, base_position: Vec3, context: ConversionContext) -> SceneNode:
    w, h = float(obj.width), float(obj.height)
    node = new_root(
        context,
        obj,
        offset(base_position, w / 2, MASK_Y_OFFSET, -h / 2),
        (90.0, 0.0, 0.0),
    )
    node.components.extend(
        surface_components(
            context,
            node.id,
            first_identifier(obj.first_image()),
            (w, h),
            dual_sided=True,
            blend_mode="Alpha",
            color=mask_color(obj),
        )
    )
    node.components.append(box_collider(node.id, (w, h, MASK_COLLIDER_THICKNESS)))
    if not obj.is_lock:
        node.components.append(grabbable(node.id))
    return node

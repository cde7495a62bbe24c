"""Terrain blocks: top/bottom faces, four walls, slope wedges and altitude.

Extents map width -> X, height -> Y, depth -> Z.  Every face is a direct
child of the terrain root.  A slope tilts the top face 45 degrees so that it
descends toward the slope direction; the wall on that side disappears and
the two walls beside it become triangular wedges.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..components import (
    BlendMode,
    box_collider,
    grabbable,
    triangle_mesh_components,
)
from ..mapping import Vec3, offset, to_local
from ..model import SceneNode, SlopeDirection, Terrain, TerrainSlopeExtension
from .common import ConversionContext, first_identifier, new_root, surface_components

LOG = logging.getLogger(__name__)

NO_WALLS_MODE = 1
SLOPE_ANGLE = 45.0
SLOPE_STRETCH = math.sqrt(2.0)
DEFAULT_BLEND: BlendMode = "Opaque"

# Local rotation of the top-mesh node under the flat top node.
SLOPE_TILT: Dict[SlopeDirection, Vec3] = {
    SlopeDirection.TOP: (SLOPE_ANGLE, 0.0, 0.0),
    SlopeDirection.BOTTOM: (-SLOPE_ANGLE, 0.0, 0.0),
    SlopeDirection.LEFT: (0.0, SLOPE_ANGLE, 0.0),
    SlopeDirection.RIGHT: (0.0, -SLOPE_ANGLE, 0.0),
}

# Unit vector pointing toward the low edge.
SLOPE_DOWNHILL: Dict[SlopeDirection, Tuple[float, float, float]] = {
    SlopeDirection.TOP: (0.0, 0.0, 1.0),
    SlopeDirection.BOTTOM: (0.0, 0.0, -1.0),
    SlopeDirection.LEFT: (-1.0, 0.0, 0.0),
    SlopeDirection.RIGHT: (1.0, 0.0, 0.0),
}


@dataclass(frozen=True, slots=True)
class _Wall:
    name: str
    side: SlopeDirection
    rotation: Vec3


_WALLS: Tuple[_Wall, ...] = (
    _Wall("front", SlopeDirection.BOTTOM, (0.0, 0.0, 0.0)),
    _Wall("back", SlopeDirection.TOP, (0.0, 180.0, 0.0)),
    _Wall("left", SlopeDirection.LEFT, (0.0, 90.0, 0.0)),
    _Wall("right", SlopeDirection.RIGHT, (0.0, -90.0, 0.0)),
)

_ADJACENT: Dict[SlopeDirection, Tuple[SlopeDirection, SlopeDirection]] = {
    SlopeDirection.TOP: (SlopeDirection.LEFT, SlopeDirection.RIGHT),
    SlopeDirection.BOTTOM: (SlopeDirection.LEFT, SlopeDirection.RIGHT),
    SlopeDirection.LEFT: (SlopeDirection.TOP, SlopeDirection.BOTTOM),
    SlopeDirection.RIGHT: (SlopeDirection.TOP, SlopeDirection.BOTTOM),
}


def origin_height(height: float, no_walls: bool, slope: Optional[SlopeDirection]) -> float:
    """Height of the root origin above the terrain's base plane (altitude excluded)."""
    if no_walls and slope is not None:
        # Origin flush with the top, corrected back to mid-height so the tilted
        # top face stays centred on the block.
        return height - height / 2
    if no_walls:
        return height
    return height / 2


def _wall_geometry(wall: _Wall, w: float, h: float, d: float, center_y: float) -> Tuple[Vec3, Tuple[float, float]]:
    if wall.side is SlopeDirection.BOTTOM:
        return (0.0, center_y, -d / 2), (w, h)
    if wall.side is SlopeDirection.TOP:
        return (0.0, center_y, d / 2), (w, h)
    if wall.side is SlopeDirection.LEFT:
        return (-w / 2, center_y, 0.0), (d, h)
    return (w / 2, center_y, 0.0), (d, h)


def wedge_vertices(slope: SlopeDirection, wall_rotation: Vec3, w: float, h: float, d: float) -> List[Vec3]:
    """Triangle of a side wall under a slope, in that wall's local frame.

    Vertices: low edge at the bottom, high edge at the bottom, high edge at the top.
    """
    downhill = np.asarray(SLOPE_DOWNHILL[slope])
    run = d if slope in (SlopeDirection.TOP, SlopeDirection.BOTTOM) else w
    half_run = downhill * (run / 2)
    up = np.array([0.0, h / 2, 0.0])
    points = [half_run - up, -half_run - up, -half_run + up]
    return to_local(points, wall_rotation)


def _top_nodes(
    context: ConversionContext,
    root: SceneNode,
    obj: Terrain,
    slope: Optional[SlopeDirection],
    center_y: float,
    identifier: Optional[str],
    w: float,
    h: float,
    d: float,
) -> SceneNode:
    top = SceneNode(id=f"{root.id}-top", name=f"{obj.name}-top", rotation=(90.0, 0.0, 0.0))
    if slope is None:
        top.position = (0.0, center_y + h / 2, 0.0)
        top.components = surface_components(context, top.id, identifier, (w, d), default_blend=DEFAULT_BLEND)
        return top

    top.position = (0.0, center_y, 0.0)
    if slope in (SlopeDirection.TOP, SlopeDirection.BOTTOM):
        size = (w, d * SLOPE_STRETCH)
    else:
        size = (w * SLOPE_STRETCH, d)
    mesh = SceneNode(
        id=f"{top.id}-mesh",
        name=f"{obj.name}-top-mesh",
        rotation=SLOPE_TILT[slope],
    )
    mesh.components = surface_components(context, mesh.id, identifier, size, default_blend=DEFAULT_BLEND)
    top.children.append(mesh)
    return top


def convert_terrain(obj: Terrain, base_position: Vec3, context: ConversionContext) -> SceneNode:
    w, h, d = float(obj.width), float(obj.height), float(obj.depth)
    extension: TerrainSlopeExtension = context.extensions.lookup(obj)
    slope = extension.active_slope
    no_walls = int(obj.mode) == NO_WALLS_MODE
    anchor = origin_height(h, no_walls, slope)
    center_y = h / 2 - anchor

    top_id = first_identifier(obj.floor_image, obj.wall_image, obj.first_image())
    side_id = first_identifier(obj.wall_image, obj.floor_image, obj.first_image())

    root = new_root(
        context,
        obj,
        offset(base_position, w / 2, float(extension.altitude) + anchor, -d / 2),
        (0.0, float(obj.rotate), 0.0),
    )
    character_collider = bool(obj.is_locked and context.settings.locked_terrain_character_collider)
    root.components.append(
        box_collider(root.id, (w, h, d), character_collider=character_collider, offset=(0.0, center_y, 0.0))
    )
    if not obj.is_locked:
        root.components.append(grabbable(root.id))

    if w > 0 and d > 0:
        root.children.append(_top_nodes(context, root, obj, slope, center_y, top_id, w, h, d))
        bottom = SceneNode(
            id=f"{root.id}-bottom",
            name=f"{obj.name}-bottom",
            position=(0.0, center_y - h / 2, 0.0),
            rotation=(-90.0, 0.0, 0.0),
            is_active=not no_walls,
        )
        bottom.components = surface_components(context, bottom.id, top_id, (w, d), default_blend=DEFAULT_BLEND)
        root.children.append(bottom)

    if h <= 0:
        return root

    removed = slope
    wedges = _ADJACENT[slope] if slope is not None else ()
    for wall in _WALLS:
        if wall.side is removed:
            continue
        position, size = _wall_geometry(wall, w, h, d, center_y)
        if size[0] <= 0:
            continue
        node = SceneNode(
            id=f"{root.id}-{wall.name}",
            name=f"{obj.name}-{wall.name}",
            position=position,
            rotation=wall.rotation,
            is_active=not no_walls,
        )
        if wall.side in wedges:
            texture_value = context.assets.resolve_texture_value(side_id)
            node.components = triangle_mesh_components(
                node.id,
                wedge_vertices(slope, wall.rotation, w, h, d),
                texture_value,
                blend_mode=context.assets.lookup_blend_mode(side_id, DEFAULT_BLEND),
                point_filter=context.assets.use_point_filter(side_id, texture_value) if texture_value else None,
                character_collider=character_collider,
            )
        else:
            node.components = surface_components(context, node.id, side_id, size, default_blend=DEFAULT_BLEND)
        root.children.append(node)

    if slope is not None:
        LOG.debug("Terrain %s sloped toward %s (altitude %s)", obj.id, slope.name, extension.altitude)
    return root

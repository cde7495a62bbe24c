"""Tests for terrain faces, slopes and altitude."""
import math

import pytest

from udonbridge.components import (
    BOX_COLLIDER,
    GRABBABLE,
    MESH_COLLIDER,
    QUAD_MESH,
    TRIANGLE_MESH,
)
from udonbridge.config import ConverterSettings
from udonbridge.converters import ConversionContext, convert_terrain
from udonbridge.converters.terrain import wedge_vertices
from udonbridge.mapping import to_center_position
from udonbridge.model import (
    SlopeDirection,
    SourcePosition,
    Terrain,
    TerrainSlopeExtension,
)


def _names(node):
    return [child.id.replace(f"{node.id}-", "") for child in node.children]


def _convert(context, terrain, extension=None, base=(0.0, 0.0, 0.0)):
    if extension is not None:
        context.extensions.add(terrain, extension)
    return convert_terrain(terrain, base, context)


def _collider(node):
    return node.components_of(BOX_COLLIDER)[0].fields


def _slope(direction, altitude=0.0):
    return TerrainSlopeExtension(altitude=altitude, is_slope=True, slope_direction=direction)


class TestFlatTerrain:
    def test_six_faces(self, context):
        node = _convert(context, Terrain(id="r", width=2, height=1, depth=3))

        assert _names(node) == ["top", "bottom", "front", "back", "left", "right"]
        assert node.position == pytest.approx((1.0, 0.5, -1.5))
        top, bottom, front, back, left, right = node.children
        assert top.position == pytest.approx((0.0, 0.5, 0.0))
        assert top.rotation == (90.0, 0.0, 0.0)
        assert bottom.position == pytest.approx((0.0, -0.5, 0.0))
        assert bottom.rotation == (-90.0, 0.0, 0.0)
        assert front.position == pytest.approx((0.0, 0.0, -1.5))
        assert back.rotation == (0.0, 180.0, 0.0)
        assert left.position == pytest.approx((-1.0, 0.0, 0.0))
        assert right.rotation == (0.0, -90.0, 0.0)
        assert top.components_of(QUAD_MESH)[0].fields["Size"].value == (2.0, 3.0)
        assert left.components_of(QUAD_MESH)[0].fields["Size"].value == (3.0, 1.0)
        assert _collider(node)["Size"].value == (2.0, 1.0, 3.0)
        assert "Offset" not in _collider(node)

    def test_zero_height_omits_walls(self, context):
        node = _convert(context, Terrain(id="r", width=2, height=0, depth=2))
        assert _names(node) == ["top", "bottom"]

    def test_zero_width_omits_top_bottom_and_front_back(self, context):
        node = _convert(context, Terrain(id="r", width=0, height=1, depth=2))
        assert _names(node) == ["left", "right"]

    def test_unlocked_is_grabbable_and_not_passable(self, context):
        node = _convert(context, Terrain(id="r"))
        assert node.components_of(GRABBABLE)
        assert "CharacterCollider" not in _collider(node)

    def test_locked_is_static_and_passable(self, context):
        node = _convert(context, Terrain(id="r", is_locked=True))
        assert not node.components_of(GRABBABLE)
        assert _collider(node)["CharacterCollider"].value is True

    def test_locked_collider_flag_can_be_disabled(self, assets, sequential_ids):
        context = ConversionContext(
            assets=assets,
            settings=ConverterSettings(locked_terrain_character_collider=False),
            new_id=sequential_ids,
        )
        node = _convert(context, Terrain(id="r", is_locked=True))
        assert "CharacterCollider" not in _collider(node)

    def test_textures_fall_back(self, context):
        terrain = Terrain(id="r", wall_image=None, floor_image=None, images=[])
        node = _convert(context, terrain)
        assert all(len(child.components) == 3 for child in node.children)


class TestAltitudeAndMode:
    def test_altitude_adds_to_y(self, context):
        terrain = Terrain(id="r", width=1, height=2, depth=1, position=SourcePosition(50, 50))
        base = to_center_position(terrain.position.x, terrain.position.y)
        node = _convert(context, terrain, TerrainSlopeExtension(altitude=3.0), base=base)
        assert node.position == pytest.approx((1.5, 4.0, -1.5))

    def test_altitude_without_offset_base(self, context):
        terrain = Terrain(id="r", width=1, height=2, depth=1)
        node = _convert(context, terrain, TerrainSlopeExtension(altitude=-0.5))
        assert node.position == pytest.approx((0.5, 0.5, -0.5))

    def test_no_walls_mode_origin_flush_with_top(self, context):
        node = _convert(context, Terrain(id="r", width=1, height=2, depth=1, mode=1))
        top, bottom, front, back, left, right = node.children

        assert node.position[1] == pytest.approx(2.0)
        assert top.position == pytest.approx((0.0, 0.0, 0.0))
        assert top.is_active
        assert not bottom.is_active
        assert not any(w.is_active for w in (front, back, left, right))
        assert _collider(node)["Offset"].value == (0.0, -1.0, 0.0)

    def test_no_walls_slope_half_height_correction(self, context):
        terrain = Terrain(id="r", width=1, height=2, depth=1, mode=1)
        node = _convert(context, terrain, _slope(SlopeDirection.TOP, altitude=1.0))
        assert node.position[1] == pytest.approx(1.0 + 2.0 - 1.0)

    def test_extension_keyed_by_identity(self, context):
        slope_target = Terrain(id="r", width=2, height=1, depth=2)
        context.extensions.add(slope_target, _slope(SlopeDirection.TOP))
        moved = Terrain(id="r", width=2, height=1, depth=2, position=SourcePosition(1, 0))
        node = convert_terrain(moved, (0.0, 0.0, 0.0), context)
        assert node.children[0].children == []
        assert len(node.children) == 6


class TestSlope:
    def test_top_slope(self, context):
        node = _convert(context, Terrain(id="r", width=2, height=1, depth=2), _slope(SlopeDirection.TOP))

        assert _names(node) == ["top", "bottom", "front", "left", "right"]
        top = node.children[0]
        assert top.position == pytest.approx((0.0, 0.0, 0.0))
        (mesh_node,) = top.children
        assert mesh_node.id == f"{top.id}-mesh"
        assert mesh_node.rotation == (45.0, 0.0, 0.0)
        assert mesh_node.components_of(QUAD_MESH)[0].fields["Size"].value == pytest.approx((2.0, 2.0 * math.sqrt(2.0)))
        assert not top.components

        front, left, right = node.children[2:]
        assert front.components_of(QUAD_MESH)
        for wedge in (left, right):
            assert wedge.components_of(TRIANGLE_MESH)
            assert not wedge.components_of(QUAD_MESH)
            collider = wedge.components_of(MESH_COLLIDER)[0]
            assert collider.fields["Mesh"].target_id == f"{wedge.id}-mesh"

    def test_wedge_apex_sign_follows_side(self, context):
        node = _convert(context, Terrain(id="r", width=2, height=1, depth=2), _slope(SlopeDirection.TOP))
        left, right = node.children[3:]

        def vertices(wedge):
            fields = wedge.components_of(TRIANGLE_MESH)[0].fields
            return [fields[f"Vertex{i}"].value for i in range(3)]

        assert vertices(left) == [(-1.0, -0.5, 0.0), (1.0, -0.5, 0.0), (1.0, 0.5, 0.0)]
        assert vertices(right) == [(1.0, -0.5, 0.0), (-1.0, -0.5, 0.0), (-1.0, 0.5, 0.0)]

    @pytest.mark.parametrize(
        "direction, removed, wedges, tilt",
        [
            (SlopeDirection.TOP, "back", ("left", "right"), (45.0, 0.0, 0.0)),
            (SlopeDirection.BOTTOM, "front", ("left", "right"), (-45.0, 0.0, 0.0)),
            (SlopeDirection.LEFT, "left", ("front", "back"), (0.0, 45.0, 0.0)),
            (SlopeDirection.RIGHT, "right", ("front", "back"), (0.0, -45.0, 0.0)),
        ],
    )
    def test_directions(self, context, direction, removed, wedges, tilt):
        node = _convert(context, Terrain(id="r", width=2, height=1, depth=2), _slope(direction))
        names = _names(node)
        assert removed not in names
        by_name = dict(zip(names, node.children))
        for name in wedges:
            assert by_name[name].components_of(TRIANGLE_MESH)
        assert node.children[0].children[0].rotation == tilt

    def test_width_axis_stretched_for_side_slopes(self, context):
        node = _convert(context, Terrain(id="r", width=2, height=1, depth=3), _slope(SlopeDirection.LEFT))
        size = node.children[0].children[0].components_of(QUAD_MESH)[0].fields["Size"].value
        assert size == pytest.approx((2.0 * math.sqrt(2.0), 3.0))

    def test_inactive_slope_flag_is_flat(self, context):
        extension = TerrainSlopeExtension(is_slope=False, slope_direction=SlopeDirection.TOP)
        node = _convert(context, Terrain(id="r", width=2, height=1, depth=2), extension)
        assert len(node.children) == 6

    def test_wedge_vertices_count(self):
        assert len(wedge_vertices(SlopeDirection.BOTTOM, (0.0, 0.0, 0.0), 1.0, 1.0, 1.0)) == 3

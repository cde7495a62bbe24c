"""Tests for mesh/material/texture deduplication and placeholder resolution."""
import pytest

from udonbridge.assembly import convert_forest
from udonbridge.components import (
    MESH_RENDERER,
    QUAD_MESH,
    TRIANGLE_MESH,
    XIEXE_TOON_MATERIAL,
    is_gif_texture,
)
from udonbridge.errors import UnresolvedPlaceholderError
from udonbridge.model import (
    Character,
    ImageRef,
    SlopeDirection,
    TableMask,
    Terrain,
    TerrainSlopeExtension,
    iter_nodes,
)
from udonbridge.shared_assets import (
    find_placeholders,
    material_signature,
    plan_shared_textures,
    prepare_shared_materials,
    prepare_shared_meshes,
    resolve_shared_references,
    texture_reference_map,
)


@pytest.fixture
def two_characters(context):
    return convert_forest(
        [
            Character(id="a", images=[ImageRef("square.png")]),
            Character(id="b", images=[ImageRef("square.png")]),
        ],
        context,
    )


class TestMeshDedup:
    def test_identical_quads_share_one_definition(self, two_characters):
        meshes = prepare_shared_meshes(two_characters)

        assert [m.signature for m in meshes] == ["quad:1,1:dual"]
        assert meshes[0].name == "QuadMesh_1x1_DualSided"
        assert meshes[0].users == 2
        for node in two_characters:
            assert not node.components_of(QUAD_MESH)
            renderer = node.components_of(MESH_RENDERER)[0]
            assert renderer.fields["Mesh"].target_id == "mesh-ref://quad:1,1:dual"

    def test_single_sided_quads_are_distinct(self, context):
        roots = convert_forest(
            [Character(id="a", images=[ImageRef("square.png")]), TableMask(id="m", width=1, height=1)],
            context,
        )
        # Terrain tops are single-sided.
        roots += convert_forest([Terrain(id="t", width=1, height=0, depth=1)], context)
        signatures = sorted(m.signature for m in prepare_shared_meshes(roots))
        assert signatures == ["quad:1,1", "quad:1,1:dual"]

    def test_second_pass_finds_nothing(self, two_characters):
        prepare_shared_meshes(two_characters)
        assert prepare_shared_meshes(two_characters) == []

    def test_triangle_meshes_stay_local(self, context):
        terrain = Terrain(id="t", width=2, height=1, depth=2)
        context.extensions.add(terrain, TerrainSlopeExtension(is_slope=True, slope_direction=SlopeDirection.TOP))
        roots = convert_forest([terrain], context)
        prepare_shared_meshes(roots)
        wedges = [n for n in iter_nodes(roots) if n.components_of(TRIANGLE_MESH)]
        assert len(wedges) == 2


class TestMaterialDedup:
    def test_signature_and_name(self, two_characters):
        materials = prepare_shared_materials(two_characters)

        assert [m.signature for m in materials] == ["xiexe-toon:#FFFFFFFF:Cutout:Off"]
        assert materials[0].name == "XiexeToon_Cutout_Off_FFFFFFFF"
        renderer = two_characters[0].components_of(MESH_RENDERER)[0]
        assert [e.target_id for e in renderer.fields["Materials"].elements] == [
            "material-ref://xiexe-toon:#FFFFFFFF:Cutout:Off"
        ]

    def test_color_is_part_of_signature(self, context):
        roots = convert_forest([TableMask(id="m", opacity=50)], context)
        material = roots[0].components_of(XIEXE_TOON_MATERIAL)[0]
        assert material_signature(material) == "xiexe-toon:#00000080:Alpha:Off"

    def test_passes_are_idempotent(self, two_characters):
        prepare_shared_meshes(two_characters)
        prepare_shared_materials(two_characters)
        assert prepare_shared_materials(two_characters) == []


class TestResolve:
    def test_resolve_leaves_no_placeholders(self, two_characters):
        meshes = prepare_shared_meshes(two_characters)
        materials = prepare_shared_materials(two_characters)
        resolve_shared_references(
            two_characters,
            {m.signature: f"remote-mesh-{i}" for i, m in enumerate(meshes)},
            {m.signature: f"remote-mat-{i}" for i, m in enumerate(materials)},
        )

        assert find_placeholders(two_characters) == []
        renderer = two_characters[1].components_of(MESH_RENDERER)[0]
        assert renderer.fields["Mesh"].target_id == "remote-mesh-0"
        assert renderer.fields["Materials"].elements[0].target_id == "remote-mat-0"

    def test_missing_definition_is_a_hard_error(self, two_characters):
        prepare_shared_meshes(two_characters)
        materials = prepare_shared_materials(two_characters)

        with pytest.raises(UnresolvedPlaceholderError) as excinfo:
            resolve_shared_references(two_characters, {}, {m.signature: "mat" for m in materials})

        assert excinfo.value.signatures == ["quad:1,1:dual"]
        assert excinfo.value.node_ids == sorted(n.id for n in two_characters)


class TestSharedTextures:
    def test_one_definition_per_texture_value(self):
        definitions = plan_shared_textures(
            {"a.png": "resdb:///x", "b.png": "resdb:///x", "anim.gif": "resdb:///y.gif", "none": ""},
            point_filter=lambda identifier, value: is_gif_texture(identifier),
        )

        assert [d.local_id for d in definitions] == ["shared-texture-0", "shared-texture-1"]
        assert definitions[0].identifiers == ["a.png", "b.png"]
        assert definitions[0].texture_component_id == "shared-texture-0-static-texture"
        assert definitions[0].property_block_id == "shared-texture-0-main-texture-property-block"
        assert not definitions[0].point_filter
        assert definitions[1].point_filter
        assert definitions[1].texture_fields()["FilterMode"].value == "Point"

    def test_reference_map_only_for_created(self):
        definitions = plan_shared_textures({"a.png": "v1", "b.png": "v2"})
        references = texture_reference_map(definitions, [definitions[1].texture_component_id])
        assert references == {"b.png": "shared-texture-1-static-texture"}

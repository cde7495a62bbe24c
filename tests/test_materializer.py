"""Tests for replaying a converted tree against the remote scene API."""
from unittest.mock import AsyncMock

import pytest

from udonbridge import fields as F
from udonbridge.assembly import convert_forest
from udonbridge.components import BOX_COLLIDER, MESH_RENDERER
from udonbridge.materializer import IMPORT_ROOT_TAG, SceneMaterializer
from udonbridge.model import Character, Component, ImageRef, SceneNode, Table, TextNote
from udonbridge.recording import RecordingSceneClient
from udonbridge.shared_assets import (
    SharedTextureDefinition,
    prepare_shared_materials,
    prepare_shared_meshes,
)


def _fail_on_name(name):
    def hook(method, arguments):
        if method == "create_node" and arguments.get("name") == name:
            return RuntimeError(f"refused {name}")
        return None

    return hook


class TestBuildNode:
    @pytest.mark.asyncio
    async def test_identity_rotation_is_not_sent(self, recording_client):
        materializer = SceneMaterializer(recording_client)
        node = SceneNode(id="n", name="flat", children=[SceneNode(id="n-c", name="turned", rotation=(0.0, 90.0, 0.0))])

        remote_id = await materializer.build_node(node, "Root")

        rotations = [c for c in recording_client.calls if c["method"] == "set_rotation"]
        assert len(rotations) == 1
        assert rotations[0]["node_id"] == materializer.remote_id("n-c")
        assert recording_client.nodes[remote_id].rotation == (0.0, 0.0, 0.0)
        assert recording_client.children_of(remote_id)[0].name == "turned"

    @pytest.mark.asyncio
    async def test_list_fields_are_appended_after_creation(self, context, recording_client):
        (node,) = convert_forest([Character(id="a", name="Hero", images=[ImageRef("square.png")])], context)
        materializer = SceneMaterializer(recording_client)

        await materializer.build_node(node, "Root")

        renderer_id = materializer.remote_id(f"{node.id}-renderer")
        create = next(c for c in recording_client.calls if c.get("result") == renderer_id)
        assert set(create["fields"]) == {"Mesh"}
        assert create["fields"]["Mesh"]["targetId"] == materializer.remote_id(f"{node.id}-mesh")

        appends = [c for c in recording_client.calls if c["method"] == "append_list"]
        assert [a["field"] for a in appends] == ["Materials", "MaterialPropertyBlocks"]
        assert appends[0]["component_id"] == renderer_id
        assert appends[0]["elements"] == [
            {"$type": "reference", "targetId": materializer.remote_id(f"{node.id}-mat")}
        ]
        assert recording_client.calls.index(create) < recording_client.calls.index(appends[0])

    @pytest.mark.asyncio
    async def test_unknown_targets_pass_through(self, recording_client):
        materializer = SceneMaterializer(recording_client)
        node = SceneNode(
            id="n",
            name="n",
            components=[Component("n-renderer", MESH_RENDERER, {"Mesh": F.reference("remote-mesh-7")})],
        )
        await materializer.build_node(node, "Root")
        (component,) = recording_client.components.values()
        assert component.fields["Mesh"]["targetId"] == "remote-mesh-7"

    @pytest.mark.asyncio
    async def test_empty_lists_are_not_appended(self, recording_client):
        materializer = SceneMaterializer(recording_client)
        node = SceneNode(
            id="n",
            name="n",
            components=[Component("n-renderer", MESH_RENDERER, {"Materials": F.reference_list([])})],
        )
        await materializer.build_node(node, "Root")
        assert "append_list" not in recording_client.methods()


class TestImportRoot:
    @pytest.mark.asyncio
    async def test_tagged_group_under_world_root(self, recording_client):
        materializer = SceneMaterializer(recording_client)
        group_id = await materializer.create_import_root("Import")

        group = recording_client.nodes[group_id]
        assert group.parent_id == "Root"
        assert group.tag == IMPORT_ROOT_TAG
        assert group.scale == (1.0, 1.0, 1.0)
        assert materializer.root_id == group_id


class TestBuildScene:
    @pytest.mark.asyncio
    async def test_containers_and_location_groups(self, context, recording_client):
        roots = convert_forest(
            [
                Table(id="t", name="Board"),
                TextNote(id="n", name="Note"),
                Character(id="c1", name="Hero", location_name="table"),
                Character(id="c2", name="Ghost"),
                Character(id="c3", name="Sidekick", location_name="table"),
            ],
            context,
        )
        materializer = SceneMaterializer(recording_client)
        root_id = await materializer.create_import_root("Import")
        progress = []

        results = await materializer.build_scene(roots, lambda current, total: progress.append((current, total)))

        assert all(r.success for r in results)
        assert progress == [(1, 5), (2, 5), (3, 5), (4, 5), (5, 5)]
        containers = {n.name: n for n in recording_client.children_of(root_id)}
        assert set(containers) == {"Tables", "Objects", "Inventory"}
        assert all(n.is_active for n in containers.values())
        assert [n.name for n in recording_client.children_of(containers["Tables"].id)] == ["Board"]
        assert [n.name for n in recording_client.children_of(containers["Objects"].id)] == ["Note"]
        groups = {n.name: n for n in recording_client.children_of(containers["Inventory"].id)}
        assert set(groups) == {"table", "Unknown"}
        assert not any(g.is_active for g in groups.values())
        assert [n.name for n in recording_client.children_of(groups["table"].id)] == ["Hero", "Sidekick"]

    @pytest.mark.asyncio
    async def test_failing_object_does_not_stop_the_rest(self, context):
        client = RecordingSceneClient(fail=_fail_on_name("Broken"))
        roots = convert_forest(
            [TextNote(id="a", name="Fine"), TextNote(id="b", name="Broken"), TextNote(id="c", name="Also fine")],
            context,
        )

        results = await SceneMaterializer(client).build_scene(roots)

        assert [r.success for r in results] == [True, False, True]
        assert "refused Broken" in results[1].error
        assert results[1].node_id == roots[1].id

    @pytest.mark.asyncio
    async def test_failing_container_fails_only_its_dependents(self, context):
        attempts = []

        def hook(method, arguments):
            if method == "create_node" and arguments["name"] == "Objects":
                attempts.append(arguments)
                return RuntimeError("refused Objects")
            return None

        client = RecordingSceneClient(fail=hook)
        roots = convert_forest(
            [TextNote(id="a", name="A"), Table(id="t", name="Board"), TextNote(id="b", name="B")],
            context,
        )

        results = await SceneMaterializer(client).build_scene(roots)

        assert [r.success for r in results] == [False, True, False]
        assert "container" in results[2].error
        assert len(attempts) == 1
        assert sum(1 for n in client.nodes.values() if n.name == "Board") == 1

    @pytest.mark.asyncio
    async def test_component_failure_reported_with_async_mock(self, context):
        client = AsyncMock()
        client.create_node.return_value = "slot"
        client.append_list_field_elements.return_value = []

        async def create_component(node_id, component_type, fields):
            if component_type == BOX_COLLIDER:
                raise ConnectionError("socket closed")
            return "component"

        client.create_component.side_effect = create_component
        roots = convert_forest([TextNote(id="n", name="Note")], context)

        (result,) = await SceneMaterializer(client).build_scene(roots)

        assert not result.success
        assert result.error == "socket closed"
        client.set_rotation.assert_not_awaited()


class TestSharedDefinitions:
    @pytest.mark.asyncio
    async def test_assets_group_is_reused(self, context, recording_client):
        roots = convert_forest([Character(id="a", images=[ImageRef("square.png")])], context)
        meshes = prepare_shared_meshes(roots)
        materials = prepare_shared_materials(roots)
        materializer = SceneMaterializer(recording_client)
        root_id = await materializer.create_import_root("Import")

        mesh_ids = await materializer.create_shared_meshes(meshes)
        material_ids = await materializer.create_shared_materials(materials)

        (assets,) = recording_client.children_of(root_id)
        assert assets.name == "Assets"
        assert [n.name for n in recording_client.children_of(assets.id)] == ["Meshes", "Materials"]
        assert set(mesh_ids) == {"quad:1,1:dual"}
        assert set(material_ids) == {"xiexe-toon:#FFFFFFFF:Cutout:Off"}
        assert recording_client.components[mesh_ids["quad:1,1:dual"]].type.endswith("QuadMesh")

    @pytest.mark.asyncio
    async def test_shared_texture_block_and_renderer_binding(self, recording_client):
        definition = SharedTextureDefinition("shared-texture-0", "resdb:///tok.png", ["tok.png"])
        materializer = SceneMaterializer(recording_client)

        created = await materializer.create_shared_textures([definition])

        assert created == ["shared-texture-0-static-texture"]
        texture_id = materializer.remote_id(definition.texture_component_id)
        block_id = materializer.remote_id(definition.property_block_id)
        assert recording_client.components[block_id].fields["Texture"]["targetId"] == texture_id
        assert recording_client.components[texture_id].fields["URL"]["value"] == "resdb:///tok.png"

        node = SceneNode(
            id="n",
            name="n",
            components=[
                Component(
                    "n-renderer",
                    MESH_RENDERER,
                    {"MaterialPropertyBlocks": F.reference_list([definition.property_block_id])},
                )
            ],
        )
        await materializer.build_node(node, "Root")
        append = recording_client.calls[-1]
        assert append["elements"] == [{"$type": "reference", "targetId": block_id}]

    @pytest.mark.asyncio
    async def test_failed_shared_texture_is_skipped(self):
        client = RecordingSceneClient(fail=_fail_on_name("bad.png"))
        definitions = [
            SharedTextureDefinition("shared-texture-0", "resdb:///bad.png"),
            SharedTextureDefinition("shared-texture-1", "resdb:///good.png"),
        ]
        created = await SceneMaterializer(client).create_shared_textures(definitions)
        assert created == ["shared-texture-1-static-texture"]

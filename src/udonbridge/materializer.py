"""Replay a converted scene tree against a remote slot/component API.

Exactly one mutating call is outstanding at a time: every child needs the id
its parent was just assigned.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from . import fields as F
from .components import MAIN_TEXTURE_PROPERTY_BLOCK, STATIC_TEXTURE_2D
from .errors import MaterializationError
from .mapping import ORIGIN, Vec3, is_identity_rotation
from .model import Component, SceneNode
from .shared_assets import SharedDefinition, SharedTextureDefinition

LOG = logging.getLogger(__name__)

IMPORT_ROOT_TAG = "udonarium-resonite-importer:root"
IMPORT_GROUP_SCALE = 1.0
TABLES_CONTAINER = "Tables"
OBJECTS_CONTAINER = "Objects"
INVENTORY_CONTAINER = "Inventory"
UNKNOWN_LOCATION = "Unknown"
ASSETS_CONTAINER = "Assets"

ProgressCallback = Callable[[int, int], None]
ContainerPath = Tuple[str, ...]

__all__ = [
    "RemoteSceneClient",
    "BuildResult",
    "SceneMaterializer",
    "container_path_for",
    "IMPORT_ROOT_TAG",
    "IMPORT_GROUP_SCALE",
]


class RemoteSceneClient(Protocol):
    """Mutation API of the remote world; transports implement this."""

    async def create_node(
        self,
        parent_id: str,
        name: str,
        position: Vec3,
        scale: Optional[Vec3] = None,
        tag: Optional[str] = None,
        is_active: bool = True,
    ) -> str: ...

    async def set_rotation(self, node_id: str, euler_degrees: Vec3) -> None: ...

    async def create_component(
        self,
        node_id: str,
        component_type: str,
        scalar_fields: Dict[str, Dict[str, Any]],
    ) -> str: ...

    async def append_list_field_elements(
        self,
        component_id: str,
        field_name: str,
        elements: List[Dict[str, Any]],
    ) -> List[str]: ...


@dataclass(slots=True)
class BuildResult:
    node_id: str
    success: bool
    error: Optional[str] = None
    remote_id: Optional[str] = None


def container_path_for(node: SceneNode) -> Tuple[ContainerPath, bool]:
    """Container a top-level node belongs under, and whether its innermost group starts active."""
    if node.source_kind == "table":
        return (TABLES_CONTAINER,), True
    if node.source_kind == "character":
        return (INVENTORY_CONTAINER, node.location or UNKNOWN_LOCATION), False
    return (OBJECTS_CONTAINER,), True


class SceneMaterializer:
    def __init__(self, client: RemoteSceneClient, root_id: str = "Root") -> None:
        self._client = client
        self._root_id = root_id
        self._id_map: Dict[str, str] = {}
        self._containers: Dict[ContainerPath, str] = {}
        self._container_errors: Dict[ContainerPath, str] = {}

    @property
    def root_id(self) -> str:
        return self._root_id

    def remote_id(self, local_id: str) -> Optional[str]:
        return self._id_map.get(local_id)

    # ----- low-level replay -----

    def _map_reference(self, ref: F.Reference) -> F.Reference:
        if ref.target_id is None:
            return ref
        return F.Reference(self._id_map.get(ref.target_id, ref.target_id))

    def _map_field(self, value: F.FieldValue) -> F.FieldValue:
        if isinstance(value, F.Reference):
            return self._map_reference(value)
        if isinstance(value, F.ReferenceList):
            return F.ReferenceList(tuple(self._map_reference(e) for e in value.elements))
        return value

    async def create_component(self, node_id: str, component: Component) -> str:
        """Create with scalar fields, then append list elements in a second call."""
        scalars: Dict[str, F.FieldValue] = {}
        lists: Dict[str, F.ReferenceList] = {}
        for name, value in component.fields.items():
            mapped = self._map_field(value)
            if isinstance(mapped, F.ReferenceList):
                lists[name] = mapped
            else:
                scalars[name] = mapped
        remote_id = await self._client.create_component(node_id, component.type, F.fields_to_wire(scalars))
        self._id_map[component.id] = remote_id
        for name, value in lists.items():
            if not value.elements:
                continue
            element_ids = await self._client.append_list_field_elements(
                remote_id, name, [e.to_wire() for e in value.elements]
            )
            LOG.debug("Appended %d element(s) to %s.%s -> %s", len(value.elements), remote_id, name, element_ids)
        return remote_id

    async def build_node(self, node: SceneNode, parent_id: Optional[str] = None) -> str:
        """Depth-first, parent before children."""
        remote_id = await self._client.create_node(
            parent_id or self._root_id,
            node.name,
            node.position,
            scale=node.scale,
            tag=node.tag,
            is_active=node.is_active,
        )
        self._id_map[node.id] = remote_id
        if not is_identity_rotation(node.rotation):
            await self._client.set_rotation(remote_id, node.rotation)
        for component in node.components:
            await self.create_component(remote_id, component)
        for child in node.children:
            await self.build_node(child, remote_id)
        return remote_id

    # ----- containers -----

    async def create_import_root(self, name: str, scale: float = IMPORT_GROUP_SCALE) -> str:
        """Tagged group every later node is created under."""
        group_id = await self._client.create_node(
            self._root_id,
            name,
            ORIGIN,
            scale=(scale, scale, scale),
            tag=IMPORT_ROOT_TAG,
        )
        LOG.info("Created import root %s (%s)", group_id, name)
        self._root_id = group_id
        self._containers.clear()
        self._container_errors.clear()
        return group_id

    async def container(self, path: ContainerPath, *, active: bool = True) -> str:
        """Create (once) and return the organisational group at ``path``."""
        existing = self._containers.get(path)
        if existing is not None:
            return existing
        label = "/".join(path)
        if path in self._container_errors:
            raise MaterializationError(label, f"container unavailable: {self._container_errors[path]}")
        parent_id = self._root_id if len(path) == 1 else await self.container(path[:-1])
        try:
            group_id = await self._client.create_node(parent_id, path[-1], ORIGIN, is_active=active)
        except Exception as exc:
            self._container_errors[path] = str(exc) or type(exc).__name__
            raise MaterializationError(label, f"container creation failed: {self._container_errors[path]}") from exc
        self._containers[path] = group_id
        return group_id

    # ----- scene -----

    async def build_scene(
        self,
        roots: Sequence[SceneNode],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[BuildResult]:
        results: List[BuildResult] = []
        total = len(roots)
        for index, node in enumerate(roots, start=1):
            path, active = container_path_for(node)
            try:
                parent_id = await self.container(path, active=active)
                remote_id = await self.build_node(node, parent_id)
                results.append(BuildResult(node.id, True, remote_id=remote_id))
            except Exception as exc:
                message = str(exc) or type(exc).__name__
                LOG.warning("Failed to build %s (%s): %s", node.name, node.id, message)
                results.append(BuildResult(node.id, False, error=message))
            if on_progress is not None:
                on_progress(index, total)
        ok = sum(1 for r in results if r.success)
        LOG.info("Built %d/%d top-level object(s)", ok, total)
        return results

    # ----- shared definitions -----

    async def _shared_slot(self, group: str, name: str) -> str:
        parent_id = await self.container((ASSETS_CONTAINER, group))
        return await self._client.create_node(parent_id, name, ORIGIN)

    async def create_shared_textures(self, definitions: Iterable[SharedTextureDefinition]) -> List[str]:
        """Create each shared texture and its property block; returns the created local texture ids."""
        created: List[str] = []
        for definition in definitions:
            name = posixpath.basename(definition.texture_value.rstrip("/")) or definition.local_id
            try:
                slot_id = await self._shared_slot("Textures", name)
                await self.create_component(
                    slot_id,
                    Component(definition.texture_component_id, STATIC_TEXTURE_2D, definition.texture_fields()),
                )
                await self.create_component(
                    slot_id,
                    Component(
                        definition.property_block_id,
                        MAIN_TEXTURE_PROPERTY_BLOCK,
                        {"Texture": F.reference(definition.texture_component_id)},
                    ),
                )
            except Exception as exc:
                LOG.warning("Shared texture %s not created: %s", definition.texture_value, exc)
                continue
            created.append(definition.texture_component_id)
        LOG.info("Created %d shared texture(s)", len(created))
        return created

    async def _create_shared(self, group: str, definitions: Iterable[SharedDefinition]) -> Dict[str, str]:
        created: Dict[str, str] = {}
        for definition in definitions:
            try:
                slot_id = await self._shared_slot(group, definition.name)
                component = Component(f"shared:{definition.signature}", definition.component_type, definition.fields)
                created[definition.signature] = await self.create_component(slot_id, component)
            except Exception as exc:
                LOG.warning("Shared %s %s not created: %s", group.lower(), definition.signature, exc)
        LOG.info("Created %d shared %s", len(created), group.lower())
        return created

    async def create_shared_meshes(self, definitions: Iterable[SharedDefinition]) -> Dict[str, str]:
        return await self._create_shared("Meshes", definitions)

    async def create_shared_materials(self, definitions: Iterable[SharedDefinition]) -> Dict[str, str]:
        return await self._create_shared("Materials", definitions)

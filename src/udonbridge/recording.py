"""In-memory remote world used for dry runs and tests.

Every call is recorded in order and assigned a sequential id, so a dry run
produces the exact call log a live transport would have received.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from .mapping import IDENTITY_ROTATION, Vec3

LOG = logging.getLogger(__name__)

FailureHook = Callable[[str, Dict[str, Any]], Optional[Exception]]

__all__ = ["RecordedNode", "RecordedComponent", "RecordingSceneClient"]


@dataclass
class RecordedComponent:
    id: str
    node_id: str
    type: str
    fields: Dict[str, Dict[str, Any]]
    lists: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)


@dataclass
class RecordedNode:
    id: str
    parent_id: str
    name: str
    position: Vec3
    scale: Optional[Vec3] = None
    tag: Optional[str] = None
    is_active: bool = True
    rotation: Vec3 = IDENTITY_ROTATION
    children: List[str] = field(default_factory=list)
    components: List[str] = field(default_factory=list)


class RecordingSceneClient:
    """Implements the remote scene and texture-upload protocols without a network.

    ``fail`` is consulted before each call with the method name and its
    arguments; an exception it returns is raised instead of recording.
    """

    def __init__(self, root_id: str = "Root", fail: Optional[FailureHook] = None) -> None:
        self.root_id = root_id
        self.calls: List[Dict[str, Any]] = []
        self.nodes: Dict[str, RecordedNode] = {}
        self.components: Dict[str, RecordedComponent] = {}
        self.textures: Dict[str, str] = {}
        self._fail = fail
        self._counter = 0

    def _next(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}{self._counter}"

    def _record(self, method: str, **arguments: Any) -> None:
        if self._fail is not None:
            error = self._fail(method, arguments)
            if error is not None:
                raise error
        self.calls.append({"method": method, **arguments})

    async def create_node(
        self,
        parent_id: str,
        name: str,
        position: Vec3,
        scale: Optional[Vec3] = None,
        tag: Optional[str] = None,
        is_active: bool = True,
    ) -> str:
        self._record(
            "create_node",
            parent_id=parent_id,
            name=name,
            position=list(position),
            scale=list(scale) if scale is not None else None,
            tag=tag,
            is_active=is_active,
        )
        node_id = self._next("slot-")
        self.nodes[node_id] = RecordedNode(node_id, parent_id, name, tuple(position), scale, tag, is_active)
        parent = self.nodes.get(parent_id)
        if parent is not None:
            parent.children.append(node_id)
        self.calls[-1]["result"] = node_id
        return node_id

    async def set_rotation(self, node_id: str, euler_degrees: Vec3) -> None:
        self._record("set_rotation", node_id=node_id, rotation=list(euler_degrees))
        self.nodes[node_id].rotation = tuple(euler_degrees)

    async def create_component(
        self,
        node_id: str,
        component_type: str,
        scalar_fields: Dict[str, Dict[str, Any]],
    ) -> str:
        self._record("create_component", node_id=node_id, type=component_type, fields=scalar_fields)
        component_id = self._next("comp-")
        self.components[component_id] = RecordedComponent(component_id, node_id, component_type, dict(scalar_fields))
        self.nodes[node_id].components.append(component_id)
        self.calls[-1]["result"] = component_id
        return component_id

    async def append_list_field_elements(
        self,
        component_id: str,
        field_name: str,
        elements: List[Dict[str, Any]],
    ) -> List[str]:
        self._record("append_list", component_id=component_id, field=field_name, elements=elements)
        self.components[component_id].lists.setdefault(field_name, []).extend(elements)
        element_ids = [self._next("elem-") for _ in elements]
        self.calls[-1]["result"] = element_ids
        return element_ids

    async def import_texture(self, path: Path) -> str:
        self._record("import_texture", path=str(path))
        value = f"resdb:///dry-run/{len(self.textures)}/{Path(path).name}"
        self.textures[str(path)] = value
        self.calls[-1]["result"] = value
        return value

    # ----- inspection -----

    def children_of(self, node_id: str) -> List[RecordedNode]:
        node = self.nodes.get(node_id)
        return [self.nodes[c] for c in node.children] if node is not None else [
            n for n in self.nodes.values() if n.parent_id == node_id
        ]

    def find_child(self, parent_id: str, name: str) -> Optional[RecordedNode]:
        for node in self.children_of(parent_id):
            if node.name == name:
                return node
        return None

    def components_on(self, node_id: str) -> List[RecordedComponent]:
        return [self.components[c] for c in self.nodes[node_id].components]

    def methods(self) -> List[str]:
        return [call["method"] for call in self.calls]

    def write_json(self, path: Path, extra: Optional[Mapping[str, Any]] = None) -> None:
        """Write the call log, plus any ``extra`` top-level sections, as JSON."""
        payload: Dict[str, Any] = {"calls": self.calls}
        payload.update(extra or {})
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        LOG.info("Wrote %d recorded call(s) to %s", len(self.calls), path)

"""Content-signature deduplication of meshes, materials and textures.

The mesh and material passes walk the converted tree once each: every
component of the target type is removed from its node, references to it from
the same node are rewritten to a placeholder that embeds its signature, and
one definition is kept per distinct signature.  Once the materializer has
created the definitions remotely, :func:`resolve_shared_references` swaps
every placeholder for the created id; anything left over is a hard error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from . import fields as F
from .components import (
    BOX_MESH,
    QUAD_MESH,
    SHARED_TEXTURE_COMPONENT_SUFFIX,
    SHARED_TEXTURE_PROPERTY_BLOCK_SUFFIX,
    XIEXE_TOON_MATERIAL,
    static_texture_fields,
)
from .errors import UnresolvedPlaceholderError
from .fields import MATERIAL_REFERENCE_PREFIX, MESH_REFERENCE_PREFIX, FieldValue
from .model import Component, SceneNode, iter_nodes

LOG = logging.getLogger(__name__)

DEFAULT_COLOR_HEX = "#FFFFFFFF"

__all__ = [
    "SharedDefinition",
    "SharedTextureDefinition",
    "mesh_signature",
    "material_signature",
    "prepare_shared_meshes",
    "prepare_shared_materials",
    "resolve_shared_references",
    "find_placeholders",
    "plan_shared_textures",
    "texture_reference_map",
]


@dataclass(slots=True)
class SharedDefinition:
    """One mesh or material created once and referenced by every matching node."""

    signature: str
    name: str
    component_type: str
    fields: Dict[str, FieldValue]
    users: int = 1

    @property
    def placeholder(self) -> str:
        prefix = MESH_REFERENCE_PREFIX if self.component_type != XIEXE_TOON_MATERIAL else MATERIAL_REFERENCE_PREFIX
        return prefix + self.signature


@dataclass(slots=True)
class SharedTextureDefinition:
    """A texture value shared by every identifier that resolves to it."""

    local_id: str
    texture_value: str
    identifiers: List[str] = field(default_factory=list)
    point_filter: bool = False

    @property
    def texture_component_id(self) -> str:
        return self.local_id + SHARED_TEXTURE_COMPONENT_SUFFIX

    @property
    def property_block_id(self) -> str:
        return self.local_id + SHARED_TEXTURE_PROPERTY_BLOCK_SUFFIX

    def texture_fields(self) -> Dict[str, FieldValue]:
        return static_texture_fields(self.texture_value, point_filter=self.point_filter)


# ---------------- Signatures ----------------

def _fmt(value: float) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(round(number, 6))


def _scalar(fields: Mapping[str, FieldValue], name: str) -> Optional[F.Scalar]:
    value = fields.get(name)
    return value if isinstance(value, F.Scalar) else None


def mesh_signature(component: Component) -> Optional[str]:
    size = _scalar(component.fields, "Size")
    if size is None:
        return None
    if component.type == QUAD_MESH and size.kind == "float2":
        dual = _scalar(component.fields, "DualSided")
        suffix = ":dual" if dual is not None and dual.value is True else ""
        return "quad:" + ",".join(_fmt(v) for v in size.value) + suffix
    if component.type == BOX_MESH and size.kind == "float3":
        return "box:" + ",".join(_fmt(v) for v in size.value)
    return None


def _mesh_definition(signature: str, component: Component) -> SharedDefinition:
    size = _scalar(component.fields, "Size")
    dims = "x".join(_fmt(v) for v in size.value)  # type: ignore[union-attr]
    if component.type == QUAD_MESH:
        dual = signature.endswith(":dual")
        name = f"QuadMesh_{dims}" + ("_DualSided" if dual else "")
    else:
        name = f"BoxMesh_{dims}"
    return SharedDefinition(signature, name, component.type, dict(component.fields))


def _hex_channel(value: float) -> str:
    number = float(value)
    scaled = number * 255 if number <= 1 else number
    return f"{int(round(min(255.0, max(0.0, scaled)))):02X}"


def material_signature(component: Component) -> Optional[str]:
    if component.type != XIEXE_TOON_MATERIAL or not component.fields:
        return None
    color = _scalar(component.fields, "Color")
    color_hex = "#" + "".join(_hex_channel(c) for c in color.value) if color is not None else DEFAULT_COLOR_HEX
    blend = _scalar(component.fields, "BlendMode")
    culling = _scalar(component.fields, "Culling")
    blend_name = blend.value if blend is not None and blend.value else "Unknown"
    culling_name = culling.value if culling is not None and culling.value else "Default"
    return f"xiexe-toon:{color_hex}:{blend_name}:{culling_name}"


def _material_definition(signature: str, component: Component) -> SharedDefinition:
    _, color_hex, blend, culling = signature.split(":")
    return SharedDefinition(
        signature,
        f"XiexeToon_{blend}_{culling}_{color_hex[1:]}",
        component.type,
        dict(component.fields),
    )


# ---------------- Rewrite passes ----------------

def _rewrite_value(value: FieldValue, replacements: Mapping[str, str]) -> FieldValue:
    if isinstance(value, F.Reference):
        if value.target_id is not None and value.target_id in replacements:
            return F.Reference(replacements[value.target_id])
        return value
    if isinstance(value, F.ReferenceList):
        return F.ReferenceList(tuple(_rewrite_value(e, replacements) for e in value.elements))  # type: ignore[misc]
    return value


def _rewrite_component(component: Component, replacements: Mapping[str, str]) -> None:
    for name, value in list(component.fields.items()):
        component.fields[name] = _rewrite_value(value, replacements)


def _prepare(
    roots: Sequence[SceneNode],
    component_types: Tuple[str, ...],
    signature_fn: Callable[[Component], Optional[str]],
    definition_fn: Callable[[str, Component], SharedDefinition],
    prefix: str,
) -> List[SharedDefinition]:
    definitions: Dict[str, SharedDefinition] = {}
    for node in iter_nodes(list(roots)):
        replacements: Dict[str, str] = {}
        kept: List[Component] = []
        for component in node.components:
            signature = signature_fn(component) if component.type in component_types else None
            if signature is None:
                kept.append(component)
                continue
            replacements[component.id] = prefix + signature
            existing = definitions.get(signature)
            if existing is None:
                definitions[signature] = definition_fn(signature, component)
            else:
                existing.users += 1
        if not replacements:
            continue
        node.components = kept
        for component in kept:
            _rewrite_component(component, replacements)
    return list(definitions.values())


def prepare_shared_meshes(roots: Sequence[SceneNode]) -> List[SharedDefinition]:
    definitions = _prepare(roots, (QUAD_MESH, BOX_MESH), mesh_signature, _mesh_definition, MESH_REFERENCE_PREFIX)
    LOG.info("Collected %d shared mesh definition(s)", len(definitions))
    return definitions


def prepare_shared_materials(roots: Sequence[SceneNode]) -> List[SharedDefinition]:
    definitions = _prepare(
        roots, (XIEXE_TOON_MATERIAL,), material_signature, _material_definition, MATERIAL_REFERENCE_PREFIX
    )
    LOG.info("Collected %d shared material definition(s)", len(definitions))
    return definitions


# ---------------- Resolve pass ----------------

def find_placeholders(roots: Sequence[SceneNode]) -> List[Tuple[str, str, str, str]]:
    """(node id, component id, field name, placeholder) for every placeholder still present."""
    found: List[Tuple[str, str, str, str]] = []
    for node in iter_nodes(list(roots)):
        for component in node.components:
            for name, value in component.fields.items():
                refs = value.elements if isinstance(value, F.ReferenceList) else (value,)
                for ref in refs:
                    if isinstance(ref, F.Reference) and F.is_placeholder(ref.target_id):
                        found.append((node.id, component.id, name, ref.target_id))  # type: ignore[arg-type]
    return found


def resolve_shared_references(
    roots: Sequence[SceneNode],
    mesh_ids: Mapping[str, str],
    material_ids: Mapping[str, str],
) -> None:
    """Replace placeholders with created ids; raise if any placeholder is left."""
    replacements: Dict[str, str] = {}
    replacements.update({MESH_REFERENCE_PREFIX + sig: target for sig, target in mesh_ids.items()})
    replacements.update({MATERIAL_REFERENCE_PREFIX + sig: target for sig, target in material_ids.items()})
    for node in iter_nodes(list(roots)):
        for component in node.components:
            _rewrite_component(component, replacements)

    leftovers = find_placeholders(roots)
    if leftovers:
        signatures = [placeholder.split("://", 1)[1] for _, _, _, placeholder in leftovers]
        node_ids = sorted({node_id for node_id, _, _, _ in leftovers})
        raise UnresolvedPlaceholderError(signatures, node_ids)


# ---------------- Shared textures ----------------

def plan_shared_textures(
    texture_values: Mapping[str, str],
    *,
    point_filter: Optional[Callable[[str, str], bool]] = None,
    prefix: str = "shared-texture",
) -> List[SharedTextureDefinition]:
    """Group identifiers by texture value: one shared texture per distinct value."""
    by_value: Dict[str, SharedTextureDefinition] = {}
    for identifier, value in texture_values.items():
        if not value:
            continue
        definition = by_value.get(value)
        if definition is None:
            definition = SharedTextureDefinition(local_id=f"{prefix}-{len(by_value)}", texture_value=value)
            by_value[value] = definition
        definition.identifiers.append(identifier)
        if point_filter is not None and point_filter(identifier, value):
            definition.point_filter = True
    return list(by_value.values())


def texture_reference_map(
    definitions: Iterable[SharedTextureDefinition],
    created: Iterable[str],
) -> Dict[str, str]:
    """identifier -> shared texture component id for every definition that was created."""
    created_ids = set(created)
    references: Dict[str, str] = {}
    for definition in definitions:
        if definition.texture_component_id not in created_ids:
            continue
        for identifier in definition.identifiers:
            references[identifier] = definition.texture_component_id
    return references

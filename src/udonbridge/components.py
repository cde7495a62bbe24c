"""Component builders shared by the per-type converters.

Component ids are always derived from the owning node id, so a builder can
never attach a component whose id points at a different node.
"""

from __future__ import annotations

import re
from typing import List, Literal, Optional, Sequence, Tuple

from . import fields as F
from .model import Component

# ---------------- Component types ----------------

QUAD_MESH = "[FrooxEngine]FrooxEngine.QuadMesh"
BOX_MESH = "[FrooxEngine]FrooxEngine.BoxMesh"
TRIANGLE_MESH = "[FrooxEngine]FrooxEngine.TriangleMesh"
STATIC_TEXTURE_2D = "[FrooxEngine]FrooxEngine.StaticTexture2D"
XIEXE_TOON_MATERIAL = "[FrooxEngine]FrooxEngine.XiexeToonMaterial"
MAIN_TEXTURE_PROPERTY_BLOCK = "[FrooxEngine]FrooxEngine.MainTexturePropertyBlock"
MESH_RENDERER = "[FrooxEngine]FrooxEngine.MeshRenderer"
BOX_COLLIDER = "[FrooxEngine]FrooxEngine.BoxCollider"
MESH_COLLIDER = "[FrooxEngine]FrooxEngine.MeshCollider"
GRABBABLE = "[FrooxEngine]FrooxEngine.Grabbable"
UIX_TEXT = "[FrooxEngine]FrooxEngine.UIX.Text"
OBJECT_ROOT = "[FrooxEngine]FrooxEngine.ObjectRoot"

BlendMode = Literal["Opaque", "Cutout", "Alpha"]
Color = Tuple[float, float, float, float]

TEXTURE_REFERENCE_PREFIX = "texture-ref://"
SHARED_TEXTURE_COMPONENT_SUFFIX = "-static-texture"
SHARED_TEXTURE_PROPERTY_BLOCK_SUFFIX = "-main-texture-property-block"
_GIF_PATTERN = re.compile(r"\.gif(?:$|[?#])", re.IGNORECASE)

__all__ = [
    "QUAD_MESH",
    "BOX_MESH",
    "TRIANGLE_MESH",
    "STATIC_TEXTURE_2D",
    "XIEXE_TOON_MATERIAL",
    "MAIN_TEXTURE_PROPERTY_BLOCK",
    "MESH_RENDERER",
    "BOX_COLLIDER",
    "MESH_COLLIDER",
    "GRABBABLE",
    "UIX_TEXT",
    "OBJECT_ROOT",
    "BlendMode",
    "Color",
    "TEXTURE_REFERENCE_PREFIX",
    "is_gif_texture",
    "to_texture_reference",
    "parse_texture_reference",
    "shared_property_block_id",
    "static_texture_fields",
    "material_fields",
    "quad_mesh_components",
    "triangle_mesh_components",
    "box_collider",
    "grabbable",
    "text_component",
]


# ---------------- Texture helpers ----------------

def is_gif_texture(value: Optional[str]) -> bool:
    if not value or value.startswith(TEXTURE_REFERENCE_PREFIX):
        return False
    return bool(_GIF_PATTERN.search(value))


def to_texture_reference(component_id: str) -> str:
    return f"{TEXTURE_REFERENCE_PREFIX}{component_id}"


def parse_texture_reference(value: Optional[str]) -> Optional[str]:
    if not value or not value.startswith(TEXTURE_REFERENCE_PREFIX):
        return None
    return value[len(TEXTURE_REFERENCE_PREFIX):]


def shared_property_block_id(texture_component_id: str) -> str:
    """Id of the property block created next to a shared texture component."""
    if texture_component_id.endswith(SHARED_TEXTURE_COMPONENT_SUFFIX):
        stem = texture_component_id[: -len(SHARED_TEXTURE_COMPONENT_SUFFIX)]
        return stem + SHARED_TEXTURE_PROPERTY_BLOCK_SUFFIX
    return texture_component_id + SHARED_TEXTURE_PROPERTY_BLOCK_SUFFIX


def static_texture_fields(texture_value: str, *, point_filter: Optional[bool] = None) -> dict:
    out = {
        "URL": F.uri(texture_value),
        "WrapModeU": F.enum("Clamp", "TextureWrapMode"),
        "WrapModeV": F.enum("Clamp", "TextureWrapMode"),
    }
    use_point = is_gif_texture(texture_value) if point_filter is None else point_filter
    if use_point:
        out["FilterMode"] = F.enum("Point", "TextureFilterMode", nullable=True)
    return out


def material_fields(
    blend_mode: BlendMode = "Cutout",
    *,
    dual_sided: bool = False,
    color: Optional[Sequence[float]] = None,
) -> dict:
    out = {
        "BlendMode": F.enum(blend_mode, "BlendMode"),
        "ShadowRamp": F.reference(None),
        "ShadowSharpness": F.float_(0.0),
    }
    if dual_sided:
        out["Culling"] = F.enum("Off", "Culling")
    if color is not None:
        out["Color"] = F.color(*color)
    return out


# ---------------- Visual component sets ----------------

def _surface_components(
    node_id: str,
    mesh: Component,
    texture_value: Optional[str],
    blend_mode: BlendMode,
    dual_sided: bool,
    color: Optional[Sequence[float]],
    point_filter: Optional[bool],
) -> List[Component]:
    material_id = f"{node_id}-mat"
    texture_id = f"{node_id}-tex"
    block_id = f"{node_id}-texture-block"
    shared_texture_id = parse_texture_reference(texture_value)

    components = [mesh]
    local_texture = bool(texture_value) and shared_texture_id is None
    if local_texture:
        components.append(
            Component(texture_id, STATIC_TEXTURE_2D, static_texture_fields(texture_value, point_filter=point_filter))
        )
    components.append(
        Component(material_id, XIEXE_TOON_MATERIAL, material_fields(blend_mode, dual_sided=dual_sided, color=color))
    )
    if local_texture:
        components.append(Component(block_id, MAIN_TEXTURE_PROPERTY_BLOCK, {"Texture": F.reference(texture_id)}))

    renderer_fields = {
        "Mesh": F.reference(mesh.id),
        "Materials": F.reference_list([material_id]),
    }
    if shared_texture_id is not None:
        renderer_fields["MaterialPropertyBlocks"] = F.reference_list([shared_property_block_id(shared_texture_id)])
    elif local_texture:
        renderer_fields["MaterialPropertyBlocks"] = F.reference_list([block_id])
    components.append(Component(f"{node_id}-renderer", MESH_RENDERER, renderer_fields))
    return components


def quad_mesh_components(
    node_id: str,
    texture_value: Optional[str] = None,
    *,
    size: Tuple[float, float] = (1.0, 1.0),
    dual_sided: bool = False,
    blend_mode: BlendMode = "Cutout",
    color: Optional[Sequence[float]] = None,
    point_filter: Optional[bool] = None,
) -> List[Component]:
    """Quad mesh, optional texture + property block, material and renderer.

    A ``texture-ref://`` value points at a shared texture created elsewhere:
    no local texture or block is created and the renderer targets the shared
    property block instead.
    """
    mesh_fields = {"Size": F.float2(*size)}
    if dual_sided:
        mesh_fields["DualSided"] = F.bool_(True)
    mesh = Component(f"{node_id}-mesh", QUAD_MESH, mesh_fields)
    return _surface_components(node_id, mesh, texture_value, blend_mode, dual_sided, color, point_filter)


def triangle_mesh_components(
    node_id: str,
    vertices: Sequence[Sequence[float]],
    texture_value: Optional[str] = None,
    *,
    blend_mode: BlendMode = "Opaque",
    point_filter: Optional[bool] = None,
    character_collider: bool = False,
) -> List[Component]:
    """Wedge face: triangle mesh with its material and a matching mesh collider."""
    if len(vertices) != 3:
        raise ValueError(f"Triangle mesh needs exactly 3 vertices, got {len(vertices)}")
    mesh_fields = {f"Vertex{i}": F.float3(*v) for i, v in enumerate(vertices)}
    mesh_fields["DualSided"] = F.bool_(True)
    mesh = Component(f"{node_id}-mesh", TRIANGLE_MESH, mesh_fields)
    components = _surface_components(node_id, mesh, texture_value, blend_mode, True, None, point_filter)
    collider_fields = {"Mesh": F.reference(mesh.id)}
    if character_collider:
        collider_fields["CharacterCollider"] = F.bool_(True)
    components.append(Component(f"{node_id}-collider", MESH_COLLIDER, collider_fields))
    return components


# ---------------- Behaviour components ----------------

def box_collider(
    node_id: str,
    size: Sequence[float],
    *,
    character_collider: bool = False,
    offset: Optional[Sequence[float]] = None,
) -> Component:
    out = {"Size": F.float3(*size)}
    if offset is not None and any(abs(v) > 0 for v in offset):
        out["Offset"] = F.float3(*offset)
    if character_collider:
        out["CharacterCollider"] = F.bool_(True)
    return Component(f"{node_id}-collider", BOX_COLLIDER, out)


def grabbable(node_id: str) -> Component:
    return Component(f"{node_id}-grabbable", GRABBABLE, {"Scalable": F.bool_(True)})


def text_component(node_id: str, content: str, size: float) -> Component:
    return Component(
        f"{node_id}-text",
        UIX_TEXT,
        {"Content": F.string(content), "Size": F.float_(size)},
    )

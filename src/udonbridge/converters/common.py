from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from ..assets import ImageAssetContext
from ..components import BlendMode, quad_mesh_components
from ..config.settings import ConverterSettings
from ..mapping import IDENTITY_ROTATION, Vec3
from ..model import (
    Component,
    IdFactory,
    SceneNode,
    SourceBase,
    TerrainExtensionTable,
    make_id_factory,
)

LOG = logging.getLogger(__name__)

DEFAULT_ASPECT_RATIO = 1.0


@dataclass
class ConversionContext:
    """Everything a converter may consult besides the source object itself."""

    assets: ImageAssetContext = field(default_factory=ImageAssetContext)
    settings: ConverterSettings = field(default_factory=ConverterSettings)
    extensions: TerrainExtensionTable = field(default_factory=TerrainExtensionTable)
    new_id: Optional[IdFactory] = None

    def __post_init__(self) -> None:
        if self.new_id is None:
            self.new_id = make_id_factory(self.settings.id_prefix)

    def next_id(self) -> str:
        assert self.new_id is not None
        return self.new_id()


def new_root(
    context: ConversionContext,
    obj: SourceBase,
    position: Vec3,
    rotation: Vec3 = IDENTITY_ROTATION,
) -> SceneNode:
    return SceneNode(
        id=context.next_id(),
        name=obj.name,
        position=position,
        rotation=rotation,
        source_kind=obj.kind,
    )


def first_identifier(*candidates: Optional[object]) -> Optional[str]:
    """First non-empty identifier among ImageRefs / strings / None."""
    for candidate in candidates:
        if candidate is None:
            continue
        identifier = getattr(candidate, "identifier", candidate)
        if isinstance(identifier, str) and identifier:
            return identifier
    return None


def resolve_aspect_ratio(
    context: ConversionContext,
    identifiers: Sequence[Optional[str]],
    default: float = DEFAULT_ASPECT_RATIO,
) -> float:
    for identifier in identifiers:
        ratio = context.assets.lookup_aspect_ratio(identifier)
        if ratio is not None and ratio > 0:
            return ratio
    return default


def resolve_blend_mode(
    context: ConversionContext,
    identifier: Optional[str],
    default: BlendMode,
    *,
    explicit: Optional[BlendMode] = None,
    color: Optional[Sequence[float]] = None,
) -> BlendMode:
    if explicit is not None:
        return explicit
    if color is not None and len(color) == 4 and color[3] < 1.0:
        return "Alpha"
    return context.assets.lookup_blend_mode(identifier, default)


def surface_components(
    context: ConversionContext,
    node_id: str,
    identifier: Optional[str],
    size: Tuple[float, float],
    *,
    dual_sided: bool = False,
    default_blend: BlendMode = "Cutout",
    blend_mode: Optional[BlendMode] = None,
    color: Optional[Sequence[float]] = None,
) -> List[Component]:
    """Textured quad for ``identifier`` with blend/filter resolved through the context."""
    texture_value = context.assets.resolve_texture_value(identifier)
    if identifier and texture_value is None:
        LOG.debug("No texture resolved for %s on %s", identifier, node_id)
    return quad_mesh_components(
        node_id,
        texture_value,
        size=size,
        dual_sided=dual_sided,
        blend_mode=resolve_blend_mode(context, identifier, default_blend, explicit=blend_mode, color=color),
        color=color,
        point_filter=context.assets.use_point_filter(identifier, texture_value) if texture_value else None,
    )

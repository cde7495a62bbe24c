"""End-to-end entry points: convert a source forest, or convert and materialize it."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence

import httpx

from .assembly import convert_forest
from .assets import ImageAssetContext, ImageAssetInfo, ImageSource, probe_images
from .config.settings import BridgeSettings
from .converters import ConversionContext
from .importer import AssetImporter, TextureUploader, register_external_urls
from .loader import SceneDocument
from .materializer import BuildResult, RemoteSceneClient, SceneMaterializer
from .model import SceneNode, SourceObject, TerrainExtensionTable, iter_image_refs
from .shared_assets import (
    SharedDefinition,
    plan_shared_textures,
    prepare_shared_materials,
    prepare_shared_meshes,
    resolve_shared_references,
    texture_reference_map,
)

LOG = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

__all__ = [
    "ConvertedScene",
    "MaterializeReport",
    "SceneClient",
    "convert_scene",
    "materialize_scene",
    "image_overrides",
    "probe_sources",
]


class SceneClient(RemoteSceneClient, TextureUploader, Protocol):
    """A remote world that can also accept texture uploads."""


@dataclass
class ConvertedScene:
    roots: List[SceneNode]
    meshes: List[SharedDefinition] = field(default_factory=list)
    materials: List[SharedDefinition] = field(default_factory=list)


@dataclass
class MaterializeReport:
    results: List[BuildResult]
    counts: Dict[str, int] = field(default_factory=dict)
    import_root_id: Optional[str] = None
    assets: Dict[str, ImageAssetInfo] = field(default_factory=dict)

    @property
    def failed(self) -> List[BuildResult]:
        return [r for r in self.results if not r.success]


def image_overrides(settings: BridgeSettings) -> Dict[str, ImageAssetInfo]:
    return {
        identifier: ImageAssetInfo(
            identifier=identifier,
            texture_value=override.texture_value,
            aspect_ratio=override.aspect_ratio,
            blend_mode=override.blend_mode,  # type: ignore[arg-type]
            filter_mode=override.filter_mode,  # type: ignore[arg-type]
        )
        for identifier, override in settings.image_overrides.items()
    }


def _referenced_identifiers(objects: Iterable[SourceObject]) -> List[str]:
    seen: Dict[str, None] = {}
    for obj in objects:
        for ref in iter_image_refs(obj):
            if ref.identifier:
                seen.setdefault(ref.identifier, None)
    return list(seen)


def probe_sources(document: SceneDocument, assets: Optional[ImageAssetContext] = None) -> Dict[str, ImageSource]:
    """Local files first, then the public URL of every other referenced identifier."""
    resolver = assets or ImageAssetContext()
    sources: Dict[str, ImageSource] = {image.identifier: image.path for image in document.images}
    for identifier in _referenced_identifiers(document.objects):
        if identifier in sources:
            continue
        url = resolver.resolve_texture_value(identifier)
        if url and url.startswith(("http://", "https://")):
            sources[identifier] = url
    return sources


def convert_scene(
    objects: Sequence[SourceObject],
    *,
    context: Optional[ConversionContext] = None,
    settings: Optional[BridgeSettings] = None,
    extensions: Optional[TerrainExtensionTable] = None,
) -> ConvertedScene:
    """Convert and run both dedup passes; placeholders stay until resolved."""
    settings = settings or BridgeSettings()
    if context is None:
        context = ConversionContext(
            assets=ImageAssetContext(overrides=image_overrides(settings)),
            settings=settings.converter,
            extensions=extensions if extensions is not None else TerrainExtensionTable(),
        )
    elif extensions is not None:
        context.extensions.merge(extensions)
    roots = convert_forest(objects, context)
    meshes = prepare_shared_meshes(roots)
    materials = prepare_shared_materials(roots)
    return ConvertedScene(roots, meshes, materials)


async def materialize_scene(
    document: SceneDocument,
    client: SceneClient,
    settings: Optional[BridgeSettings] = None,
    on_progress: Optional[ProgressCallback] = None,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
) -> MaterializeReport:
    settings = settings or BridgeSettings()
    overrides = image_overrides(settings)

    probes: Dict[str, ImageAssetInfo] = {}
    if settings.probe.enabled:
        probes = await probe_images(
            probe_sources(document, ImageAssetContext(overrides=overrides)),
            fetch_remote=settings.probe.fetch_remote,
            timeout=settings.probe.timeout,
            client=http_client,
        )

    importer = AssetImporter(client)
    imported = await importer.import_images(document.images)
    external = register_external_urls(document.objects, importer)
    assets = ImageAssetContext(overrides=overrides, probes=probes, texture_values=importer.texture_values())

    materializer = SceneMaterializer(client)
    root_id = await materializer.create_import_root(settings.import_name)

    asset_infos = {
        identifier: assets.asset_info(identifier) for identifier in _referenced_identifiers(document.objects)
    }
    texture_values = {identifier: info.texture_value for identifier, info in asset_infos.items() if info.texture_value}
    texture_defs = plan_shared_textures(texture_values, point_filter=assets.use_point_filter)
    created_textures = await materializer.create_shared_textures(texture_defs)
    assets = assets.with_texture_references(texture_reference_map(texture_defs, created_textures))

    context = ConversionContext(
        assets=assets,
        settings=settings.converter,
        extensions=document.terrain_extensions,
    )
    scene = convert_scene(document.objects, context=context)
    mesh_ids = await materializer.create_shared_meshes(scene.meshes)
    material_ids = await materializer.create_shared_materials(scene.materials)
    resolve_shared_references(scene.roots, mesh_ids, material_ids)

    results = await materializer.build_scene(scene.roots, on_progress)
    counts = {
        "objects": len(results),
        "succeeded": sum(1 for r in results if r.success),
        "failed": sum(1 for r in results if not r.success),
        "images_imported": sum(1 for r in imported if r.success),
        "external_urls": external,
        "textures": len(created_textures),
        "meshes": len(mesh_ids),
        "materials": len(material_ids),
    }
    LOG.info(
        "Materialized %(succeeded)d/%(objects)d object(s) with %(textures)d texture(s), "
        "%(meshes)d mesh(es) and %(materials)d material(s)",
        counts,
    )
    return MaterializeReport(results, counts, root_id, asset_infos)

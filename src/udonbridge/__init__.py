"""Import Udonarium tabletop scenes into a slot/component 3D world."""

from . import api
from .api import (
    ConvertedScene,
    MaterializeReport,
    SceneClient,
    convert_scene,
    materialize_scene,
)
from .assets import ImageAssetContext, ImageAssetInfo
from .config import BridgeSettings, ConverterSettings, load_settings
from .converters import ConversionContext
from .errors import (
    BridgeError,
    ConfigError,
    ConversionContractError,
    MaterializationError,
    UnresolvedPlaceholderError,
)
from .loader import SceneDocument, load_scene_document
from .materializer import BuildResult, RemoteSceneClient, SceneMaterializer
from .recording import RecordingSceneClient

__version__ = "0.1.0"

__all__ = [
    "api",
    "BridgeError",
    "BridgeSettings",
    "BuildResult",
    "ConfigError",
    "ConversionContext",
    "ConversionContractError",
    "ConvertedScene",
    "ConverterSettings",
    "ImageAssetContext",
    "ImageAssetInfo",
    "MaterializationError",
    "MaterializeReport",
    "RecordingSceneClient",
    "RemoteSceneClient",
    "SceneClient",
    "SceneDocument",
    "SceneMaterializer",
    "UnresolvedPlaceholderError",
    "convert_scene",
    "load_scene_document",
    "materialize_scene",
]

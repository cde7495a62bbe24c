"""Pytest configuration and shared fixtures."""
import itertools

import pytest

from udonbridge.assets import ImageAssetContext, ImageAssetInfo
from udonbridge.config import ConverterSettings
from udonbridge.converters import ConversionContext
from udonbridge.model import TerrainExtensionTable
from udonbridge.recording import RecordingSceneClient


@pytest.fixture
def sequential_ids():
    """Deterministic id factory: obj-1, obj-2, ..."""
    counter = itertools.count(1)
    return lambda: f"obj-{next(counter)}"


@pytest.fixture
def overrides():
    """Known aspect ratios / blend modes for the images used across tests."""
    return {
        "portrait.png": ImageAssetInfo("portrait.png", texture_value="resdb:///portrait", aspect_ratio=2.0),
        "square.png": ImageAssetInfo("square.png", texture_value="resdb:///square", aspect_ratio=1.0),
        "wide.png": ImageAssetInfo("wide.png", texture_value="resdb:///wide", aspect_ratio=0.5),
        "glass.png": ImageAssetInfo("glass.png", texture_value="resdb:///glass", blend_mode="Alpha"),
    }


@pytest.fixture
def assets(overrides):
    return ImageAssetContext(overrides=overrides)


@pytest.fixture
def context(assets, sequential_ids):
    return ConversionContext(
        assets=assets,
        settings=ConverterSettings(),
        extensions=TerrainExtensionTable(),
        new_id=sequential_ids,
    )


@pytest.fixture
def recording_client():
    return RecordingSceneClient()

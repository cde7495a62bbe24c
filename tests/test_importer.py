"""Tests for texture import deduplication and external URL registration."""
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from udonbridge.importer import (
    AssetImporter,
    ImageFile,
    collect_external_sources,
    register_external_urls,
)
from udonbridge.model import Card, CardStack, ImageRef, Table, Terrain


class TestAssetImporter:
    @pytest.mark.asyncio
    async def test_identical_bytes_share_one_upload(self, tmp_path):
        (tmp_path / "a.png").write_bytes(b"same")
        (tmp_path / "b.png").write_bytes(b"same")
        (tmp_path / "c.png").write_bytes(b"different")
        uploader = AsyncMock()
        uploader.import_texture.side_effect = lambda path: f"resdb:///{Path(path).name}"
        importer = AssetImporter(uploader)

        results = await importer.import_images(
            [ImageFile(name, tmp_path / name) for name in ("a.png", "b.png", "c.png")]
        )

        assert uploader.import_texture.await_count == 2
        assert [r.texture_value for r in results] == ["resdb:///a.png", "resdb:///a.png", "resdb:///c.png"]
        assert results[1].reused

    @pytest.mark.asyncio
    async def test_reimport_returns_previous_value(self, tmp_path):
        (tmp_path / "a.png").write_bytes(b"data")
        uploader = AsyncMock()
        uploader.import_texture.return_value = "resdb:///a"
        importer = AssetImporter(uploader)
        image = ImageFile("a.png", tmp_path / "a.png")

        await importer.import_image(image)
        again = await importer.import_image(image)

        assert again.reused and again.success
        assert uploader.import_texture.await_count == 1

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self, tmp_path):
        (tmp_path / "a.png").write_bytes(b"data")
        uploader = AsyncMock()
        uploader.import_texture.side_effect = RuntimeError("upload refused")
        importer = AssetImporter(uploader)

        result = await importer.import_image(ImageFile("a.png", tmp_path / "a.png"))

        assert not result.success
        assert "upload refused" in result.error
        assert importer.texture_id("a.png") is None

    @pytest.mark.asyncio
    async def test_progress_callback(self, tmp_path):
        for name in ("a.png", "b.png"):
            (tmp_path / name).write_bytes(name.encode())
        uploader = AsyncMock()
        uploader.import_texture.return_value = "resdb:///x"
        progress = []
        await AssetImporter(uploader).import_images(
            [ImageFile(n, tmp_path / n) for n in ("a.png", "b.png")],
            on_progress=lambda current, total: progress.append((current, total)),
        )
        assert progress == [(1, 2), (2, 2)]


class TestExternalUrls:
    def test_nested_references_are_collected(self):
        table = Table(
            id="t",
            images=[ImageRef("./assets/images/BG10a_80.jpg")],
            children=[
                CardStack(
                    id="s",
                    cards=[Card(id="c", front_image=ImageRef("./assets/images/trump/c01.png"))],
                ),
                Terrain(id="r", wall_image=ImageRef("./assets/images/wall.png"), floor_image=ImageRef("floor.png")),
            ],
        )
        sources = collect_external_sources([table])
        assert sources == {
            "./assets/images/BG10a_80.jpg": "https://udonarium.app/assets/images/BG10a_80.jpg",
            "./assets/images/trump/c01.png": "https://udonarium.app/assets/images/trump/c01.png",
            "./assets/images/wall.png": "https://udonarium.app/assets/images/wall.png",
        }

    def test_register_external_urls(self):
        importer = AssetImporter(AsyncMock())
        count = register_external_urls([Card(id="c", back_image=ImageRef("./assets/images/back.png"))], importer)
        assert count == 1
        assert importer.texture_id("./assets/images/back.png") == "https://udonarium.app/assets/images/back.png"

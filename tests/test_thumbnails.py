"""Tests for the disk-backed thumbnail cache."""

import io
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from pixvault.lib.exceptions import ImageProcessingError, ObjectNotFoundError, ValidationError
from pixvault.lib.thumbnails import ThumbnailCache, identity_hash
from tests.helpers import make_image_bytes


class TestCacheKeys:
    def test_path_is_deterministic(self, thumbnails):
        assert thumbnails.path_for("images/a.webp", 256) == thumbnails.path_for("images/a.webp", 256)

    def test_path_layout(self, thumbnails):
        path = thumbnails.path_for("images/a.webp", 256)
        assert path.name == f"{identity_hash('images/a.webp')}_w256.jpg"

    def test_widths_differ(self, thumbnails):
        assert thumbnails.path_for("a", 100) != thumbnails.path_for("a", 200)


class TestGetOrCreate:
    @pytest.mark.asyncio
    async def test_miss_then_hit_is_byte_identical(self, thumbnails):
        loader = AsyncMock(return_value=make_image_bytes(800, 600))

        first = await thumbnails.get_or_create("a", 256, loader)
        second = await thumbnails.get_or_create("a", 256, loader)

        assert first.cache_hit is False
        assert second.cache_hit is True
        assert first.data == second.data
        loader.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_resized_to_width(self, thumbnails):
        loader = AsyncMock(return_value=make_image_bytes(800, 600))
        thumb = await thumbnails.get_or_create("a", 200, loader)
        assert Image.open(io.BytesIO(thumb.data)).size == (200, 150)
        assert thumb.content_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_store_false_does_not_write(self, thumbnails):
        loader = AsyncMock(return_value=make_image_bytes())
        await thumbnails.get_or_create("a", 32, loader, store=False)
        assert not thumbnails.path_for("a", 32).exists()

    @pytest.mark.asyncio
    async def test_missing_source_propagates_not_found(self, thumbnails):
        loader = AsyncMock(side_effect=ObjectNotFoundError("a"))
        with pytest.raises(ObjectNotFoundError):
            await thumbnails.get_or_create("a", 32, loader)
        assert not thumbnails.path_for("a", 32).exists()

    @pytest.mark.asyncio
    async def test_processing_failure_writes_nothing(self, thumbnails):
        loader = AsyncMock(return_value=b"corrupt")
        with pytest.raises(ImageProcessingError):
            await thumbnails.get_or_create("a", 32, loader)
        assert not thumbnails.root.exists() or not any(thumbnails.root.iterdir())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("width", [0, -5, 100000])
    async def test_rejects_bad_width(self, thumbnails, width):
        with pytest.raises(ValidationError):
            await thumbnails.get_or_create("a", width, AsyncMock())

    @pytest.mark.asyncio
    async def test_no_partial_files_left(self, thumbnails):
        loader = AsyncMock(return_value=make_image_bytes())
        await thumbnails.get_or_create("a", 32, loader)
        assert [p.name for p in thumbnails.root.iterdir()] == [thumbnails.path_for("a", 32).name]


class TestInvalidate:
    @pytest.mark.asyncio
    async def test_removes_every_width(self, thumbnails):
        loader = AsyncMock(return_value=make_image_bytes(400, 300))
        for width in (64, 128, 256):
            await thumbnails.get_or_create("a", width, loader)
        await thumbnails.get_or_create("b", 64, loader)

        removed = await thumbnails.invalidate("a")

        assert removed == 3
        assert await thumbnails.get("a", 64) is None
        assert await thumbnails.get("b", 64) is not None

    @pytest.mark.asyncio
    async def test_regenerates_from_new_source(self, thumbnails):
        red = AsyncMock(return_value=make_image_bytes(100, 100, color=(255, 0, 0)))
        blue = AsyncMock(return_value=make_image_bytes(100, 100, color=(0, 0, 255)))

        old = await thumbnails.get_or_create("a", 50, red)
        await thumbnails.invalidate("a")
        new = await thumbnails.get_or_create("a", 50, blue)

        assert new.cache_hit is False
        assert new.data != old.data

    @pytest.mark.asyncio
    async def test_in_flight_miss_not_cached_after_invalidate(self, thumbnails):
        async def slow_loader():
            await thumbnails.invalidate("a")
            return make_image_bytes()

        await thumbnails.get_or_create("a", 32, slow_loader)
        assert await thumbnails.get("a", 32) is None

    @pytest.mark.asyncio
    async def test_missing_root_is_zero(self, tmp_path):
        cache = ThumbnailCache(tmp_path / "nope")
        assert await cache.invalidate("a") == 0

    @pytest.mark.asyncio
    async def test_clear(self, thumbnails):
        loader = AsyncMock(return_value=make_image_bytes())
        await thumbnails.get_or_create("a", 32, loader)
        await thumbnails.get_or_create("b", 32, loader)
        assert await thumbnails.clear() == 2

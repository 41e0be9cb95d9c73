"""Tests for image normalization and derived metadata."""

import io

import pytest
from PIL import Image

from pixvault.lib.exceptions import ImageProcessingError
from pixvault.lib.imaging import (
    detect_image_content_type,
    dominant_color,
    extract_metadata,
    perceptual_hash,
    read_dimensions,
    resize_to_width,
    to_canonical,
)
from tests.helpers import make_image_bytes


class TestDetectImageContentType:
    def test_jpeg(self):
        assert detect_image_content_type(make_image_bytes(fmt="JPEG")) == "image/jpeg"

    def test_png(self):
        assert detect_image_content_type(make_image_bytes(fmt="PNG")) == "image/png"

    def test_webp(self):
        assert detect_image_content_type(make_image_bytes(fmt="WEBP")) == "image/webp"

    def test_unknown(self):
        assert detect_image_content_type(b"hello world") is None


class TestToCanonical:
    def test_reencodes_as_lossless_webp(self):
        canonical = to_canonical(make_image_bytes(800, 600))
        assert (canonical.width, canonical.height) == (800, 600)
        assert detect_image_content_type(canonical.data) == "image/webp"

    def test_lossless_preserves_pixels(self):
        png = make_image_bytes(10, 10, fmt="PNG", color=(12, 34, 56))
        canonical = to_canonical(png)
        img = Image.open(io.BytesIO(canonical.data)).convert("RGB")
        assert img.getpixel((5, 5)) == (12, 34, 56)

    def test_keeps_alpha(self):
        png = make_image_bytes(8, 8, fmt="PNG", color=(1, 2, 3, 0), mode="RGBA")
        canonical = to_canonical(png)
        assert Image.open(io.BytesIO(canonical.data)).mode == "RGBA"

    def test_garbage_raises(self):
        with pytest.raises(ImageProcessingError):
            to_canonical(b"not an image")

    def test_pixel_bomb_raises(self, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 500)
        with pytest.raises(ImageProcessingError):
            to_canonical(make_image_bytes(64, 48, fmt="PNG"))


class TestReadDimensions:
    def test_reads_size(self):
        assert read_dimensions(make_image_bytes(30, 20)) == (30, 20)

    def test_undetermined_is_zero(self):
        assert read_dimensions(b"junk") == (0, 0)


class TestResizeToWidth:
    def test_preserves_aspect_ratio(self):
        data = resize_to_width(make_image_bytes(800, 600), 200, quality=80)
        img = Image.open(io.BytesIO(data))
        assert img.format == "JPEG"
        assert img.size == (200, 150)

    def test_does_not_upscale(self):
        data = resize_to_width(make_image_bytes(100, 50), 400, quality=80)
        assert Image.open(io.BytesIO(data)).size == (100, 50)

    def test_deterministic(self):
        src = make_image_bytes(300, 200)
        assert resize_to_width(src, 64, 80) == resize_to_width(src, 64, 80)

    def test_garbage_raises(self):
        with pytest.raises(ImageProcessingError):
            resize_to_width(b"junk", 100, 80)

    def test_pixel_bomb_raises(self, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 500)
        with pytest.raises(ImageProcessingError):
            resize_to_width(make_image_bytes(64, 48, fmt="PNG"), 32, 80)


class TestPerceptualHash:
    def test_returns_string_for_image(self):
        value = perceptual_hash(make_image_bytes(800, 600))
        assert isinstance(value, str)
        # 4x3 components: 1 size + 1 max-AC + 4 DC + 2 per AC component
        assert len(value) == 6 + 2 * (4 * 3 - 1)

    def test_absent_on_garbage(self):
        assert perceptual_hash(b"junk") is None


class TestDominantColor:
    def test_solid_colour(self):
        # 200 -> bin 12 -> centre 200; 30 -> bin 1 -> centre 24
        assert dominant_color(make_image_bytes(fmt="PNG", color=(200, 30, 30))) == "#c81818"

    def test_zero_padded(self):
        assert dominant_color(make_image_bytes(fmt="PNG", color=(0, 0, 0))) == "#080808"

    def test_majority_wins(self):
        img = Image.new("RGB", (10, 10), (255, 255, 255))
        for x in range(3):
            for y in range(10):
                img.putpixel((x, y), (0, 0, 0))
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        assert dominant_color(buf.getvalue()) == "#f8f8f8"

    def test_absent_on_garbage(self):
        assert dominant_color(b"junk") is None


class TestExtractMetadata:
    @pytest.mark.asyncio
    async def test_both_fields(self):
        meta = await extract_metadata(make_image_bytes(fmt="PNG"))
        assert meta.blurhash is not None
        assert meta.dominant_color == "#c81818"

    @pytest.mark.asyncio
    async def test_failures_are_absorbed(self):
        meta = await extract_metadata(b"junk")
        assert meta.blurhash is None
        assert meta.dominant_color is None

"""Image decoding, canonical re-encoding and derived metadata using Pillow."""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass

import blurhash
from PIL import Image, UnidentifiedImageError

from pixvault.lib.exceptions import ImageProcessingError

logger = logging.getLogger(__name__)

CANONICAL_CONTENT_TYPE = "image/webp"
THUMBNAIL_CONTENT_TYPE = "image/jpeg"

# Perceptual hash: downsample to fit a 32x32 box, 4x3 detail components
HASH_GRID = 32
HASH_COMPONENTS_X = 4
HASH_COMPONENTS_Y = 3

# Pillow raises DecompressionBombError (a plain Exception) past its pixel limit
_DECODE_ERRORS = (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError)


@dataclass
class CanonicalImage:
    """Lossless canonical encoding of an ingested image."""

    data: bytes
    width: int
    height: int


@dataclass
class ImageMetadata:
    """Best-effort cosmetic metadata; either field may be ``None``."""

    blurhash: str | None
    dominant_color: str | None


def detect_image_content_type(data: bytes) -> str | None:
    """Detect image content type from magic bytes.

    Returns ``None`` if the data does not match a known image signature.
    """
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return None


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def read_dimensions(data: bytes) -> tuple[int, int]:
    """Return ``(width, height)``, or ``(0, 0)`` when undetermined."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except _DECODE_ERRORS:
        return 0, 0


def to_canonical(data: bytes) -> CanonicalImage:
    """Decode *data* and re-encode it as lossless WebP.

    Raises:
        ImageProcessingError: If the payload cannot be decoded or encoded.
    """
    try:
        img = _open(data)
        has_alpha = img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info
        img = img.convert("RGBA" if has_alpha else "RGB")
        buf = io.BytesIO()
        img.save(buf, format="WEBP", lossless=True)
    except _DECODE_ERRORS as exc:
        raise ImageProcessingError(f"Cannot decode image: {exc}") from exc

    return CanonicalImage(data=buf.getvalue(), width=img.width, height=img.height)


def resize_to_width(data: bytes, width: int, quality: int) -> bytes:
    """Resize to *width* preserving aspect ratio and encode as JPEG.

    Images narrower than *width* are re-encoded at their own size.

    Raises:
        ImageProcessingError: If decoding, resizing or encoding fails.
    """
    try:
        img = _open(data)
        orig_w, orig_h = img.size
        if orig_w > width:
            new_h = max(1, round(orig_h * width / orig_w))
            img = img.resize((width, new_h), Image.LANCZOS)
        img = img.convert("RGB")

        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=quality, optimize=True)
    except _DECODE_ERRORS as exc:
        raise ImageProcessingError(f"Failed to generate thumbnail: {exc}") from exc

    return buf.getvalue()


def perceptual_hash(data: bytes) -> str | None:
    """Compute a BlurHash placeholder string, or ``None`` on any failure."""
    try:
        img = _open(data).convert("RGBA")
        img.thumbnail((HASH_GRID, HASH_GRID), Image.BILINEAR)
        w, h = img.size
        pixels = list(img.getdata())
        rows = [[pixels[y * w + x][:3] for x in range(w)] for y in range(h)]
        return blurhash.encode(
            rows,
            components_x=HASH_COMPONENTS_X,
            components_y=HASH_COMPONENTS_Y,
        )
    except Exception:
        logger.warning("Failed to calculate blurhash", exc_info=True)
        return None


def dominant_color(data: bytes) -> str | None:
    """Return the most frequent colour as ``#rrggbb``, or ``None`` on failure.

    Each channel is quantized into 16 bins; the most populated of the 4096
    colour bins wins and is reported at its bin centre.
    """
    try:
        img = _open(data).convert("RGB")
        quantized = img.point(lambda v: v >> 4)
        colors = quantized.getcolors(maxcolors=4096)
        if not colors:
            return None
        _, (r, g, b) = max(colors, key=lambda c: c[0])
        return "#" + "".join(f"{(c << 4) + 8:02x}" for c in (r, g, b))
    except Exception:
        logger.warning("Failed to calculate dominant color", exc_info=True)
        return None


async def extract_metadata(data: bytes) -> ImageMetadata:
    """Run both metadata extractors concurrently on *data*."""
    hash_value, color = await asyncio.gather(
        asyncio.to_thread(perceptual_hash, data),
        asyncio.to_thread(dominant_color, data),
    )
    return ImageMetadata(blurhash=hash_value, dominant_color=color)

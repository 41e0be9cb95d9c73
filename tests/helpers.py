"""Test helpers shared across modules."""

import io

from PIL import Image


def make_image_bytes(
    width: int = 64,
    height: int = 48,
    fmt: str = "JPEG",
    color: tuple = (200, 30, 30),
    mode: str = "RGB",
) -> bytes:
    """Encode a solid-colour test image."""
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()

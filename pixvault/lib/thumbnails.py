"""Disk-backed thumbnail cache keyed by (source identity, width)."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import tempfile
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from pixvault.lib.exceptions import ValidationError
from pixvault.lib.imaging import THUMBNAIL_CONTENT_TYPE, resize_to_width

logger = logging.getLogger(__name__)

CACHE_SUFFIX = ".jpg"


@dataclass
class Thumbnail:
    data: bytes
    content_type: str
    cache_hit: bool


def identity_hash(source_identity: str) -> str:
    """Hash a source identity into the prefix shared by all its entries."""
    return hashlib.md5(source_identity.encode("utf-8")).hexdigest()


class ThumbnailCache:
    """Resized JPEG variants stored as ``{md5(identity)}_w{width}.jpg``.

    Entries are immutable once written. Writes go to a temporary file that is
    atomically renamed into place, so readers never see partial files and
    concurrent writers of the same entry are harmless.
    """

    def __init__(self, root: Path, quality: int = 80, max_width: int = 4096) -> None:
        self._root = Path(root)
        self._quality = quality
        self._max_width = max_width
        # Bumped by invalidate() so in-flight misses do not resurrect stale entries
        self._generations: dict[str, int] = {}

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, source_identity: str, width: int) -> Path:
        return self._root / f"{identity_hash(source_identity)}_w{width}{CACHE_SUFFIX}"

    def validate_width(self, width: int) -> None:
        if not isinstance(width, int) or width <= 0 or width > self._max_width:
            raise ValidationError(f"Width must be between 1 and {self._max_width}")

    async def get(self, source_identity: str, width: int) -> bytes | None:
        """Return cached bytes, or ``None`` on a miss."""
        path = self.path_for(source_identity, width)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return None

    async def get_or_create(
        self,
        source_identity: str,
        width: int,
        load_source: Callable[[], Awaitable[bytes]],
        store: bool = True,
    ) -> Thumbnail:
        """Serve a cached variant, generating it from the source on a miss.

        ``load_source`` fetches the canonical bytes; its ``NotFoundError``
        propagates unchanged. Resize failures raise ``ImageProcessingError``
        and nothing is written. With ``store=False`` the variant is rendered
        but not cached.
        """
        self.validate_width(width)

        cached = await self.get(source_identity, width)
        if cached is not None:
            return Thumbnail(data=cached, content_type=THUMBNAIL_CONTENT_TYPE, cache_hit=True)

        generation = self._generations.get(source_identity, 0)
        source = await load_source()
        data = await asyncio.to_thread(resize_to_width, source, width, self._quality)

        if store and self._generations.get(source_identity, 0) == generation:
            path = self.path_for(source_identity, width)
            try:
                await asyncio.to_thread(self._atomic_write, path, data)
            except OSError:
                logger.warning("Failed to cache thumbnail %s", path, exc_info=True)

        return Thumbnail(data=data, content_type=THUMBNAIL_CONTENT_TYPE, cache_hit=False)

    async def invalidate(self, source_identity: str) -> int:
        """Remove every cached width for *source_identity*; returns the count."""
        self._generations[source_identity] = self._generations.get(source_identity, 0) + 1
        pattern = f"{identity_hash(source_identity)}_w*{CACHE_SUFFIX}"
        return await asyncio.to_thread(self._remove_matching, pattern)

    async def clear(self) -> int:
        """Remove every cache entry."""
        return await asyncio.to_thread(self._remove_matching, f"*{CACHE_SUFFIX}")

    # -- internal helpers --

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _remove_matching(self, pattern: str) -> int:
        if not self._root.is_dir():
            return 0
        removed = 0
        for path in self._root.glob(pattern):
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError:
                logger.error("Failed to delete cache entry %s", path, exc_info=True)
        return removed

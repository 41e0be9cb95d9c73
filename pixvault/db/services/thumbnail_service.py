"""Serve originals and cached thumbnails for catalog assets."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from pixvault.db.services.catalog_service import get_asset
from pixvault.lib.imaging import CANONICAL_CONTENT_TYPE
from pixvault.lib.storage.base import StorageBackend
from pixvault.lib.thumbnails import Thumbnail, ThumbnailCache


async def get_thumbnail(
    db_session: AsyncSession,
    storage: StorageBackend,
    cache: ThumbnailCache,
    asset_id: int,
    width: int,
) -> Thumbnail:
    """Return a JPEG thumbnail of *asset_id* at *width* pixels.

    The storage key is the cache's source identity. Trashed assets are
    rendered for trash previews but never cached.

    Raises:
        NotFoundError: If the asset or its stored bytes are missing.
        ImageProcessingError: If the thumbnail cannot be generated.
    """
    cache.validate_width(width)
    asset = await get_asset(db_session, asset_id)
    key = asset.storage_key

    async def load_source() -> bytes:
        return await storage.get(key)

    return await cache.get_or_create(key, width, load_source, store=not asset.is_trashed)


async def get_original(
    db_session: AsyncSession,
    storage: StorageBackend,
    asset_id: int,
) -> tuple[bytes, str]:
    """Return the canonical bytes and content type of *asset_id*."""
    asset = await get_asset(db_session, asset_id)
    return await storage.get(asset.storage_key), CANONICAL_CONTENT_TYPE

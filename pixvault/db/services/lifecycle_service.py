"""Soft delete, restore and permanent purge of assets.

Purge removes catalog rows first and commits, then deletes the durable
objects and the cached thumbnails. A crash in between leaves at worst an
orphaned object in storage, never a row pointing at deleted bytes.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, UTC

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pixvault.db.models import Asset
from pixvault.db.services.catalog_service import require_ids
from pixvault.lib.exceptions import GalleryError, NotFoundError
from pixvault.lib.storage.base import StorageBackend, chunked
from pixvault.lib.thumbnails import ThumbnailCache

logger = logging.getLogger(__name__)


async def _invalidate(cache: ThumbnailCache, keys: Sequence[str]) -> None:
    for key in keys:
        try:
            await cache.invalidate(key)
        except OSError:
            logger.error("Failed to invalidate thumbnails for %s", key, exc_info=True)


async def _soft_delete_ids(db_session: AsyncSession, ids: list[int], chunk_size: int) -> list[str]:
    """Trash the active rows among *ids*; returns their storage keys."""
    now = datetime.now(UTC)
    keys: list[str] = []
    for chunk in chunked(ids, chunk_size):
        rows = await db_session.execute(
            select(Asset.id, Asset.storage_key).where(
                Asset.id.in_(chunk), Asset.deleted_at.is_(None)
            )
        )
        matched = rows.all()
        if not matched:
            continue
        await db_session.execute(
            update(Asset)
            .where(Asset.id.in_([row.id for row in matched]), Asset.deleted_at.is_(None))
            .values(deleted_at=now)
        )
        keys.extend(row.storage_key for row in matched)
    await db_session.commit()
    return keys


async def soft_delete(
    db_session: AsyncSession,
    cache: ThumbnailCache,
    asset_id: int,
) -> None:
    """Move an active asset to the trash and drop its cached thumbnails.

    Raises:
        NotFoundError: If no active asset has this id.
    """
    keys = await _soft_delete_ids(db_session, [asset_id], chunk_size=1)
    if not keys:
        raise NotFoundError(f"Image {asset_id} not found")
    await _invalidate(cache, keys)


async def batch_soft_delete(
    db_session: AsyncSession,
    cache: ThumbnailCache,
    ids: Sequence[int],
    chunk_size: int = 500,
) -> int:
    """Trash many assets; ids that are missing or already trashed are skipped."""
    keys = await _soft_delete_ids(db_session, require_ids(ids), chunk_size)
    await _invalidate(cache, keys)
    return len(keys)


async def _restore_ids(db_session: AsyncSession, ids: list[int], chunk_size: int) -> int:
    restored = 0
    for chunk in chunked(ids, chunk_size):
        result = await db_session.execute(
            update(Asset)
            .where(Asset.id.in_(chunk), Asset.deleted_at.is_not(None))
            .values(deleted_at=None)
        )
        restored += result.rowcount
    await db_session.commit()
    return restored


async def restore(db_session: AsyncSession, asset_id: int) -> None:
    """Bring a trashed asset back.

    Raises:
        NotFoundError: If no trashed asset has this id.
    """
    if not await _restore_ids(db_session, [asset_id], chunk_size=1):
        raise NotFoundError(f"Image {asset_id} not found in trash")


async def batch_restore(
    db_session: AsyncSession,
    ids: Sequence[int],
    chunk_size: int = 500,
) -> int:
    """Restore many trashed assets; returns how many were restored."""
    return await _restore_ids(db_session, require_ids(ids), chunk_size)


async def _purge_where(
    db_session: AsyncSession,
    storage: StorageBackend,
    cache: ThumbnailCache,
    conditions: list,
    ids: list[int] | None,
    chunk_size: int,
) -> int:
    """Delete matching rows, then their objects and thumbnails."""
    keys: list[str] = []
    id_chunks = list(chunked(ids, chunk_size)) if ids is not None else [None]

    for chunk in id_chunks:
        where = list(conditions)
        if chunk is not None:
            where.append(Asset.id.in_(chunk))
        rows = (await db_session.execute(select(Asset.id, Asset.storage_key).where(*where))).all()
        for batch in chunked(rows, chunk_size):
            await db_session.execute(
                delete(Asset).where(Asset.id.in_([row.id for row in batch]))
            )
            keys.extend(row.storage_key for row in batch)
    await db_session.commit()

    if keys:
        try:
            await storage.delete_many(keys)
        except GalleryError:
            logger.error("Failed to delete %d objects from storage", len(keys), exc_info=True)
        finally:
            await _invalidate(cache, keys)
        logger.info("Purged %d images", len(keys))

    return len(keys)


async def purge(
    db_session: AsyncSession,
    storage: StorageBackend,
    cache: ThumbnailCache,
    asset_id: int,
) -> None:
    """Permanently delete one asset, whether active or trashed.

    Raises:
        NotFoundError: If the id does not exist.
    """
    purged = await _purge_where(db_session, storage, cache, [], [asset_id], chunk_size=1)
    if not purged:
        raise NotFoundError(f"Image {asset_id} not found")


async def batch_purge(
    db_session: AsyncSession,
    storage: StorageBackend,
    cache: ThumbnailCache,
    ids: Sequence[int],
    chunk_size: int = 500,
) -> int:
    """Permanently delete the trashed assets among *ids*."""
    return await _purge_where(
        db_session,
        storage,
        cache,
        [Asset.deleted_at.is_not(None)],
        require_ids(ids),
        chunk_size,
    )


async def empty_trash(
    db_session: AsyncSession,
    storage: StorageBackend,
    cache: ThumbnailCache,
    chunk_size: int = 500,
) -> int:
    """Permanently delete every trashed asset."""
    return await _purge_where(
        db_session, storage, cache, [Asset.deleted_at.is_not(None)], None, chunk_size
    )

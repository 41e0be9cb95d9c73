"""Asset ingestion: validate, normalize, upload, derive metadata, record."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, UTC

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pixvault.config import IngestConfig
from pixvault.db.models import Asset
from pixvault.lib.batch import BatchResult
from pixvault.lib.exceptions import GalleryError, ValidationError
from pixvault.lib.imaging import (
    CANONICAL_CONTENT_TYPE,
    CanonicalImage,
    ImageMetadata,
    extract_metadata,
    read_dimensions,
    to_canonical,
)
from pixvault.lib.keys import generate_key
from pixvault.lib.storage.base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class RawAsset:
    """An uploaded file as received from the client."""

    filename: str
    data: bytes
    content_type: str


@dataclass
class AssetMetadata:
    """Caller-supplied descriptive fields, matched to a file by name."""

    original_filename: str
    title: str | None = None
    prompt: str | None = None
    source: str | None = None
    style: str | None = None
    style_ref: str | None = None


@dataclass
class IngestedAsset:
    id: int
    storage_key: str
    filename: str
    width: int
    height: int
    file_size: int
    blurhash: str | None
    dominant_color: str | None


@dataclass
class Registration:
    """An object already uploaded to durable storage by another client."""

    storage_key: str
    filename: str
    width: int = 0
    height: int = 0
    file_size: int = 0
    prompt: str | None = None
    source: str | None = None
    style: str | None = None
    style_ref: str | None = None


@dataclass
class RegisteredAsset:
    id: int
    storage_key: str


def _blank_to_none(value: str | None) -> str | None:
    return value or None


def validate_batch(batch: Sequence[RawAsset], config: IngestConfig) -> None:
    """Reject a malformed batch before any per-item work.

    Raises:
        ValidationError: If the batch is empty, too large or not made of
            ``RawAsset`` items.
    """
    if not batch:
        raise ValidationError("No files provided")
    if len(batch) > config.max_files:
        raise ValidationError(f"At most {config.max_files} files can be uploaded at once")
    if not all(isinstance(item, RawAsset) for item in batch):
        raise ValidationError("Batch items must be RawAsset instances")


def check_item(raw: RawAsset, config: IngestConfig) -> str | None:
    """Return a human-readable rejection reason, or ``None`` if acceptable."""
    if len(raw.data) > config.max_upload_size:
        limit_mb = round(config.max_upload_size / 1024 / 1024)
        return f"File size exceeds the {limit_mb}MB limit"
    if not (raw.content_type or "").startswith("image/"):
        return f"Unsupported file type: {raw.content_type or 'unknown'}"
    return None


async def _record(
    session_factory: async_sessionmaker[AsyncSession],
    storage: StorageBackend,
    *,
    storage_key: str,
    filename: str,
    width: int,
    height: int,
    file_size: int,
    image_meta: ImageMetadata,
    prompt: str | None,
    source: str | None,
    style: str | None,
    style_ref: str | None,
    cleanup_on_failure: bool,
) -> Asset:
    """Insert the catalog row for bytes that already reached durable storage."""
    asset = Asset(
        storage_key=storage_key,
        filename=filename,
        width=width,
        height=height,
        file_size=file_size,
        blurhash=image_meta.blurhash,
        dominant_color=image_meta.dominant_color,
        prompt=_blank_to_none(prompt),
        source=_blank_to_none(source),
        style=_blank_to_none(style),
        style_ref=_blank_to_none(style_ref),
        imported_at=datetime.now(UTC),
        like_count=0,
    )
    async with session_factory() as session:
        session.add(asset)
        try:
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            if cleanup_on_failure:
                try:
                    await storage.delete(storage_key)
                except GalleryError:
                    logger.error("Failed to remove orphaned object %s", storage_key, exc_info=True)
            raise
    return asset


async def _upload_and_record(
    session_factory: async_sessionmaker[AsyncSession],
    storage: StorageBackend,
    raw: RawAsset,
    meta: AssetMetadata,
    canonical: CanonicalImage,
) -> IngestedAsset:
    key = generate_key(raw.filename)
    await storage.put(key, canonical.data, CANONICAL_CONTENT_TYPE)
    logger.debug("Uploaded %s (%dx%d)", key, canonical.width, canonical.height)

    image_meta = await extract_metadata(canonical.data)

    asset = await _record(
        session_factory,
        storage,
        storage_key=key,
        filename=meta.title or raw.filename,
        width=canonical.width,
        height=canonical.height,
        file_size=len(canonical.data),
        image_meta=image_meta,
        prompt=meta.prompt,
        source=meta.source or "upload",
        style=meta.style,
        style_ref=meta.style_ref,
        cleanup_on_failure=True,
    )
    return IngestedAsset(
        id=asset.id,
        storage_key=key,
        filename=asset.filename,
        width=asset.width,
        height=asset.height,
        file_size=asset.file_size,
        blurhash=asset.blurhash,
        dominant_color=asset.dominant_color,
    )


async def ingest_assets(
    session_factory: async_sessionmaker[AsyncSession],
    storage: StorageBackend,
    batch: Sequence[RawAsset],
    metadata: Sequence[AssetMetadata] = (),
    config: IngestConfig | None = None,
) -> BatchResult:
    """Ingest a batch of uploaded images.

    Items are processed one at a time; a failure is recorded against that
    item and the batch continues. Once an item's upload has started it runs
    to completion (catalog row included) even if the caller is cancelled;
    cancellation takes effect between items.

    Each item opens its own session so a shielded item never shares a
    session with a cancelled caller.

    Raises:
        ValidationError: If the batch envelope itself is malformed.
    """
    config = config or IngestConfig()
    validate_batch(batch, config)
    by_name = {m.original_filename: m for m in metadata}

    result = BatchResult()
    logger.info("Ingesting %d files", len(batch))

    for raw in batch:
        meta = by_name.get(raw.filename) or AssetMetadata(original_filename=raw.filename)

        reason = check_item(raw, config)
        if reason:
            result.add_failure(raw.filename, reason)
            continue

        try:
            canonical = await asyncio.to_thread(to_canonical, raw.data)
            ingested = await asyncio.shield(
                _upload_and_record(session_factory, storage, raw, meta, canonical)
            )
        except GalleryError as exc:
            logger.warning("Failed to ingest %s: %s", raw.filename, exc.message)
            result.add_failure(raw.filename, exc.message)
            continue
        except SQLAlchemyError as exc:
            logger.warning("Failed to record %s", raw.filename, exc_info=True)
            result.add_failure(raw.filename, f"Database error: {exc}")
            continue

        result.add_success(ingested)

    logger.info(
        "Ingest complete: %d succeeded, %d failed", len(result.succeeded), len(result.failed)
    )
    return result


async def register_assets(
    session_factory: async_sessionmaker[AsyncSession],
    storage: StorageBackend,
    registrations: Sequence[Registration],
) -> BatchResult:
    """Record catalog rows for objects uploaded out of band.

    The object is fetched back only to derive metadata; a failed fetch is a
    per-item failure.
    """
    if not registrations:
        raise ValidationError("No images provided")

    result = BatchResult()
    for item in registrations:
        if not item.storage_key:
            result.add_failure(item.storage_key or "unknown", "Missing storage key")
            continue

        try:
            data = await storage.get(item.storage_key)
            image_meta = await extract_metadata(data)
            width, height = item.width, item.height
            if not (width and height):
                width, height = await asyncio.to_thread(read_dimensions, data)

            asset = await _record(
                session_factory,
                storage,
                storage_key=item.storage_key,
                filename=item.filename or item.storage_key.rsplit("/", 1)[-1],
                width=width,
                height=height,
                file_size=item.file_size or len(data),
                image_meta=image_meta,
                prompt=item.prompt,
                source=item.source or "upload",
                style=item.style,
                style_ref=item.style_ref,
                cleanup_on_failure=False,
            )
        except GalleryError as exc:
            logger.warning("Failed to register %s: %s", item.storage_key, exc.message)
            result.add_failure(item.storage_key, exc.message)
            continue
        except SQLAlchemyError as exc:
            logger.warning("Failed to register %s", item.storage_key, exc_info=True)
            result.add_failure(item.storage_key, f"Database error: {exc}")
            continue

        result.add_success(RegisteredAsset(id=asset.id, storage_key=asset.storage_key))

    logger.info(
        "Register complete: %d succeeded, %d failed", len(result.succeeded), len(result.failed)
    )
    return result


async def backfill_metadata(
    db_session: AsyncSession,
    storage: StorageBackend,
    limit: int | None = None,
) -> BatchResult:
    """Fill missing perceptual hashes and dominant colors from stored bytes.

    Only NULL columns are written; a computation that fails again leaves the
    column NULL.
    """
    query = (
        select(Asset)
        .where(or_(Asset.blurhash.is_(None), Asset.dominant_color.is_(None)))
        .order_by(Asset.id.asc())
    )
    if limit:
        query = query.limit(limit)

    assets = list((await db_session.execute(query)).scalars().all())
    result = BatchResult()

    for asset in assets:
        try:
            data = await storage.get(asset.storage_key)
        except GalleryError as exc:
            result.add_failure(asset.storage_key, exc.message)
            continue

        image_meta = await extract_metadata(data)
        if asset.blurhash is None:
            asset.blurhash = image_meta.blurhash
        if asset.dominant_color is None:
            asset.dominant_color = image_meta.dominant_color
        result.add_success(RegisteredAsset(id=asset.id, storage_key=asset.storage_key))

    await db_session.commit()
    logger.info(
        "Backfill complete: %d updated, %d failed", len(result.succeeded), len(result.failed)
    )
    return result

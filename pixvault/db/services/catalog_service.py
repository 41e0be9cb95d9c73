"""Catalog reads and descriptive edits: filtering, sorting, pagination."""

from __future__ import annotations

import hashlib
import math
import random
from collections.abc import Sequence
from dataclasses import dataclass, field, fields

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pixvault.config import CatalogConfig
from pixvault.db.models import Asset
from pixvault.lib.exceptions import NotFoundError, ValidationError
from pixvault.lib.storage.base import chunked

SORT_MODES: tuple[str, ...] = ("newest", "oldest", "random", "shuffled")
STYLE_SOURCES: tuple[str, ...] = ("2D", "3D", "Real")


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()  # Sentinel for distinguishing "clear the field" from "leave it"


@dataclass(frozen=True)
class AssetPatch:
    """Partial update of descriptive fields.

    A field left at ``UNSET`` is untouched; ``None`` or ``""`` clears it.
    """

    prompt: str | None | _Unset = UNSET
    source: str | None | _Unset = UNSET
    style: str | None | _Unset = UNSET
    style_ref: str | None | _Unset = UNSET

    def changes(self) -> dict[str, str | None]:
        values = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is UNSET:
                continue
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{f.name} must be a string")
            values[f.name] = value or None
        return values

    @property
    def admin_fields(self) -> set[str]:
        """Fields that require privilege to change (everything but prompt)."""
        return set(self.changes()) - {"prompt"}


@dataclass
class CatalogFilters:
    search: str | None = None
    resolutions: Sequence[str] = field(default_factory=tuple)
    liked_only: bool = False
    source: str | None = None
    style: str | None = None

    def is_active(self, config: CatalogConfig) -> bool:
        """True when at least one filter narrows the listing."""
        # The first clause is always the lifecycle (trashed or not) condition
        return len(filter_clauses(self, config)) > 1


@dataclass
class CatalogPage:
    items: list[Asset]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    def to_dict(self) -> dict:
        return {
            "images": [asset.to_dict() for asset in self.items],
            "total": self.total,
            "page": self.page,
            "totalPages": self.total_pages,
        }


def resolution_bucket(width: int, height: int, config: CatalogConfig) -> str:
    """Classify a pixel area; an area equal to a threshold goes to the higher bucket."""
    area = width * height
    if area >= config.ultra_threshold:
        return "ultra"
    if area >= config.high_threshold:
        return "high"
    return "medium"


def resolution_clause(buckets: Sequence[str], config: CatalogConfig):
    """OR of the requested buckets, or ``None`` if no known bucket is named.

    ``low`` is folded into ``medium``.
    """
    area = Asset.width * Asset.height
    conditions = []
    wanted = {b.strip().lower() for b in buckets}
    if wanted & {"low", "medium"}:
        conditions.append(area < config.high_threshold)
    if "high" in wanted:
        conditions.append(and_(area >= config.high_threshold, area < config.ultra_threshold))
    if "ultra" in wanted:
        conditions.append(area >= config.ultra_threshold)
    if not conditions:
        return None
    return or_(*conditions)


def filter_clauses(
    filters: CatalogFilters,
    config: CatalogConfig,
    trashed: bool = False,
) -> list:
    """Build the conjunctive WHERE clauses shared by the page and the count."""
    clauses = [Asset.deleted_at.is_not(None) if trashed else Asset.deleted_at.is_(None)]

    if filters.search:
        term = filters.search.strip()
        if term:
            clauses.append(
                or_(
                    Asset.prompt.icontains(term, autoescape=True),
                    Asset.filename.icontains(term, autoescape=True),
                    Asset.storage_key.icontains(term, autoescape=True),
                )
            )
    if filters.resolutions:
        clause = resolution_clause(filters.resolutions, config)
        if clause is not None:
            clauses.append(clause)
    if filters.liked_only:
        clauses.append(Asset.like_count > 0)
    if filters.source:
        clauses.append(Asset.source == filters.source)
    if filters.style:
        clauses.append(Asset.style == filters.style)
    return clauses


def seeded_order_key(asset_id: int, seed: int | str) -> bytes:
    """Deterministic pseudo-random ordering key for an (id, seed) pair."""
    return hashlib.blake2b(f"{seed}:{asset_id}".encode(), digest_size=8).digest()


def _check_paging(page: int, page_size: int, config: CatalogConfig) -> None:
    if page < 1:
        raise ValidationError("Page numbers start at 1")
    if page_size < 1 or page_size > config.max_page_size:
        raise ValidationError(f"Page size must be between 1 and {config.max_page_size}")


async def _count(db_session: AsyncSession, clauses: list) -> int:
    result = await db_session.execute(select(func.count()).select_from(Asset).where(*clauses))
    return result.scalar() or 0


async def _seeded_page(
    db_session: AsyncSession,
    clauses: list,
    seed: int | str,
    offset: int,
    limit: int,
) -> tuple[list[Asset], int]:
    ids = list((await db_session.execute(select(Asset.id).where(*clauses))).scalars().all())
    ids.sort(key=lambda asset_id: seeded_order_key(asset_id, seed))
    page_ids = ids[offset:offset + limit]
    if not page_ids:
        return [], len(ids)

    rows = await db_session.execute(select(Asset).where(Asset.id.in_(page_ids)))
    by_id = {asset.id: asset for asset in rows.scalars().all()}
    return [by_id[i] for i in page_ids if i in by_id], len(ids)


async def list_assets(
    db_session: AsyncSession,
    config: CatalogConfig,
    filters: CatalogFilters | None = None,
    sort: str = "newest",
    seed: int | str | None = None,
    page: int = 1,
    page_size: int | None = None,
) -> CatalogPage:
    """List active assets.

    Args:
        db_session: Database session
        config: Catalog thresholds and paging limits
        filters: Conjunctive filters (search, resolutions, liked, source, style)
        sort: "newest" (default, also used for unknown modes), "oldest",
            "random" or "shuffled"
        seed: Makes "random" reproducible, but only when no filter is active
        page: 1-indexed page number
        page_size: Items per page (defaults to ``config.default_page_size``)

    Returns:
        CatalogPage with the items and the total over the same filters
    """
    filters = filters or CatalogFilters()
    page_size = page_size or config.default_page_size
    _check_paging(page, page_size, config)
    if sort not in SORT_MODES:
        sort = "newest"

    clauses = filter_clauses(filters, config)
    offset = (page - 1) * page_size

    if sort == "random" and seed is not None and not filters.is_active(config):
        items, total = await _seeded_page(db_session, clauses, seed, offset, page_size)
        return CatalogPage(items=items, total=total, page=page, page_size=page_size)

    total = await _count(db_session, clauses)

    query = select(Asset).where(*clauses)
    if sort == "random":
        query = query.order_by(func.random())
    elif sort == "shuffled":
        query = query.order_by(Asset.random_order.asc(), Asset.id.asc())
    elif sort == "oldest":
        query = query.order_by(Asset.created_at.asc(), Asset.id.asc())
    else:
        query = query.order_by(Asset.created_at.desc(), Asset.id.desc())
    query = query.offset(offset).limit(page_size)

    result = await db_session.execute(query)
    return CatalogPage(
        items=list(result.scalars().all()), total=total, page=page, page_size=page_size
    )


async def list_trash(
    db_session: AsyncSession,
    config: CatalogConfig,
    page: int = 1,
    page_size: int | None = None,
) -> CatalogPage:
    """List trashed assets, most recently deleted first."""
    page_size = page_size or config.default_page_size
    _check_paging(page, page_size, config)

    clauses = filter_clauses(CatalogFilters(), config, trashed=True)
    total = await _count(db_session, clauses)
    query = (
        select(Asset)
        .where(*clauses)
        .order_by(Asset.deleted_at.desc(), Asset.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db_session.execute(query)
    return CatalogPage(
        items=list(result.scalars().all()), total=total, page=page, page_size=page_size
    )


async def get_asset(
    db_session: AsyncSession,
    asset_id: int,
    include_trashed: bool = True,
) -> Asset:
    """Fetch one asset.

    Raises:
        NotFoundError: If the id is absent (or trashed and not included).
    """
    query = select(Asset).where(Asset.id == asset_id)
    if not include_trashed:
        query = query.where(Asset.deleted_at.is_(None))
    asset = (await db_session.execute(query)).scalar_one_or_none()
    if asset is None:
        raise NotFoundError(f"Image {asset_id} not found")
    return asset


async def update_asset(db_session: AsyncSession, asset_id: int, patch: AssetPatch) -> Asset:
    """Apply a descriptive patch to one asset."""
    values = patch.changes()
    if not values:
        raise ValidationError("No fields to update")

    result = await db_session.execute(
        update(Asset).where(Asset.id == asset_id).values(**values)
    )
    if result.rowcount == 0:
        await db_session.rollback()
        raise NotFoundError(f"Image {asset_id} not found")
    await db_session.commit()
    return await get_asset(db_session, asset_id)


def require_ids(ids: Sequence[int]) -> list[int]:
    if not ids:
        raise ValidationError("IDs must be a non-empty array")
    if not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
        raise ValidationError("IDs must be integers")
    return list(dict.fromkeys(ids))


async def batch_update(
    db_session: AsyncSession,
    ids: Sequence[int],
    patch: AssetPatch,
    chunk_size: int = 500,
) -> int:
    """Apply one patch to many assets; returns the number of rows changed."""
    ids = require_ids(ids)
    values = patch.changes()
    if not values:
        raise ValidationError("No fields to update")

    updated = 0
    for chunk in chunked(ids, chunk_size):
        result = await db_session.execute(
            update(Asset).where(Asset.id.in_(chunk)).values(**values)
        )
        updated += result.rowcount
    await db_session.commit()
    return updated


async def toggle_like(db_session: AsyncSession, asset_id: int) -> bool:
    """Flip the liked flag; returns the new state."""
    asset = await get_asset(db_session, asset_id)
    asset.like_count = 0 if asset.like_count > 0 else 1
    await db_session.commit()
    return asset.like_count == 1


async def batch_like(db_session: AsyncSession, ids: Sequence[int], chunk_size: int = 500) -> int:
    """Mark many assets as liked; returns the number of rows matched."""
    ids = require_ids(ids)
    updated = 0
    for chunk in chunked(ids, chunk_size):
        result = await db_session.execute(
            update(Asset).where(Asset.id.in_(chunk)).values(like_count=1)
        )
        updated += result.rowcount
    await db_session.commit()
    return updated


async def shuffle(db_session: AsyncSession, chunk_size: int = 500) -> int:
    """Assign a fresh ``random_order`` to every active asset."""
    ids = list(
        (await db_session.execute(select(Asset.id).where(Asset.deleted_at.is_(None))))
        .scalars()
        .all()
    )
    for chunk in chunked(ids, chunk_size):
        await db_session.execute(
            update(Asset),
            [{"id": asset_id, "random_order": random.random()} for asset_id in chunk],
        )
    await db_session.commit()
    return len(ids)


async def list_styles(db_session: AsyncSession) -> dict[str, list[str]]:
    """Distinct styles of active assets grouped by categorical source."""
    query = (
        select(Asset.source, Asset.style)
        .where(
            Asset.deleted_at.is_(None),
            Asset.style.is_not(None),
            Asset.style != "",
            Asset.source.in_(STYLE_SOURCES),
        )
        .distinct()
    )
    grouped: dict[str, list[str]] = {source: [] for source in STYLE_SOURCES}
    for source, style in (await db_session.execute(query)).all():
        grouped[source].append(style)
    for styles in grouped.values():
        styles.sort()
    return grouped

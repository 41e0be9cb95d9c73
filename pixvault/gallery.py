"""Entry points used by the request layer and the CLI.

``Gallery`` binds the shared ``AppState`` to one caller's access gate,
checks privilege before any side effect and opens a session per call.
"""

from __future__ import annotations

from collections.abc import Sequence

from pixvault.auth.gate import AccessGate, require_privileged
from pixvault.db.models import Asset
from pixvault.db.services import catalog_service, ingest_service, lifecycle_service, thumbnail_service
from pixvault.db.services.catalog_service import AssetPatch, CatalogFilters, CatalogPage
from pixvault.db.services.ingest_service import AssetMetadata, RawAsset, Registration
from pixvault.lib.batch import BatchResult
from pixvault.lib.thumbnails import Thumbnail
from pixvault.state import AppState


class Gallery:
    def __init__(self, state: AppState, gate: AccessGate) -> None:
        self._state = state
        self._gate = gate

    @property
    def _chunk_size(self) -> int:
        return self._state.settings.catalog.chunk_size

    # -- ingestion --

    async def ingest(
        self,
        batch: Sequence[RawAsset],
        metadata: Sequence[AssetMetadata] = (),
    ) -> BatchResult:
        require_privileged(self._gate)
        return await ingest_service.ingest_assets(
            self._state.session_factory,
            self._state.storage,
            batch,
            metadata,
            self._state.settings.ingest,
        )

    async def register(self, registrations: Sequence[Registration]) -> BatchResult:
        require_privileged(self._gate)
        return await ingest_service.register_assets(
            self._state.session_factory, self._state.storage, registrations
        )

    async def backfill_metadata(self, limit: int | None = None) -> BatchResult:
        require_privileged(self._gate)
        async with self._state.session() as session:
            return await ingest_service.backfill_metadata(session, self._state.storage, limit)

    # -- reads --

    async def list_assets(
        self,
        filters: CatalogFilters | None = None,
        sort: str = "newest",
        seed: int | str | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> CatalogPage:
        async with self._state.session() as session:
            return await catalog_service.list_assets(
                session, self._state.settings.catalog, filters, sort, seed, page, page_size
            )

    async def list_trash(self, page: int = 1, page_size: int | None = None) -> CatalogPage:
        require_privileged(self._gate)
        async with self._state.session() as session:
            return await catalog_service.list_trash(
                session, self._state.settings.catalog, page, page_size
            )

    async def get(self, asset_id: int) -> Asset:
        async with self._state.session() as session:
            return await catalog_service.get_asset(session, asset_id)

    async def list_styles(self) -> dict[str, list[str]]:
        async with self._state.session() as session:
            return await catalog_service.list_styles(session)

    async def get_thumbnail(self, asset_id: int, width: int) -> Thumbnail:
        async with self._state.session() as session:
            return await thumbnail_service.get_thumbnail(
                session, self._state.storage, self._state.thumbnails, asset_id, width
            )

    async def get_original(self, asset_id: int) -> tuple[bytes, str]:
        async with self._state.session() as session:
            return await thumbnail_service.get_original(session, self._state.storage, asset_id)

    # -- edits --

    async def update(self, asset_id: int, patch: AssetPatch) -> Asset:
        if patch.admin_fields:
            require_privileged(self._gate)
        async with self._state.session() as session:
            return await catalog_service.update_asset(session, asset_id, patch)

    async def batch_update(self, ids: Sequence[int], patch: AssetPatch) -> int:
        require_privileged(self._gate)
        async with self._state.session() as session:
            return await catalog_service.batch_update(session, ids, patch, self._chunk_size)

    async def toggle_like(self, asset_id: int) -> bool:
        async with self._state.session() as session:
            return await catalog_service.toggle_like(session, asset_id)

    async def batch_like(self, ids: Sequence[int]) -> int:
        async with self._state.session() as session:
            return await catalog_service.batch_like(session, ids, self._chunk_size)

    async def shuffle(self) -> int:
        require_privileged(self._gate)
        async with self._state.session() as session:
            return await catalog_service.shuffle(session, self._chunk_size)

    # -- lifecycle --

    async def soft_delete(self, asset_id: int) -> None:
        require_privileged(self._gate)
        async with self._state.session() as session:
            await lifecycle_service.soft_delete(session, self._state.thumbnails, asset_id)

    async def batch_soft_delete(self, ids: Sequence[int]) -> int:
        require_privileged(self._gate)
        async with self._state.session() as session:
            return await lifecycle_service.batch_soft_delete(
                session, self._state.thumbnails, ids, self._chunk_size
            )

    async def restore(self, asset_id: int) -> None:
        require_privileged(self._gate)
        async with self._state.session() as session:
            await lifecycle_service.restore(session, asset_id)

    async def batch_restore(self, ids: Sequence[int]) -> int:
        require_privileged(self._gate)
        async with self._state.session() as session:
            return await lifecycle_service.batch_restore(session, ids, self._chunk_size)

    async def purge(self, asset_id: int) -> None:
        require_privileged(self._gate)
        async with self._state.session() as session:
            await lifecycle_service.purge(
                session, self._state.storage, self._state.thumbnails, asset_id
            )

    async def batch_purge(self, ids: Sequence[int]) -> int:
        require_privileged(self._gate)
        async with self._state.session() as session:
            return await lifecycle_service.batch_purge(
                session, self._state.storage, self._state.thumbnails, ids, self._chunk_size
            )

    async def empty_trash(self) -> int:
        require_privileged(self._gate)
        async with self._state.session() as session:
            return await lifecycle_service.empty_trash(
                session, self._state.storage, self._state.thumbnails, self._chunk_size
            )

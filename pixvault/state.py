"""Application-scoped state built once at process start."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from pixvault.config import Settings
from pixvault.db.session import create_engine, create_schema, create_session_factory
from pixvault.lib.storage import StorageBackend, create_storage_backend
from pixvault.lib.thumbnails import ThumbnailCache


@dataclass
class AppState:
    """Shared clients passed by reference to every component."""

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    storage: StorageBackend
    thumbnails: ThumbnailCache

    @classmethod
    def from_settings(cls, settings: Settings) -> AppState:
        engine = create_engine(settings.db)
        return cls(
            settings=settings,
            engine=engine,
            session_factory=create_session_factory(engine),
            storage=create_storage_backend(settings.storage),
            thumbnails=ThumbnailCache(
                Path(settings.cache.root),
                quality=settings.cache.quality,
                max_width=settings.cache.max_width,
            ),
        )

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_schema(self) -> None:
        await create_schema(self.engine)

    async def close(self) -> None:
        await self.storage.close()
        await self.engine.dispose()

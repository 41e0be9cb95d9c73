"""Shared pytest fixtures."""

from datetime import datetime, UTC

import pytest
import pytest_asyncio

from pixvault.config import CatalogConfig, DatabaseConfig, IngestConfig
from pixvault.db.models import Asset
from pixvault.db.session import create_engine, create_schema, create_session_factory
from pixvault.lib.storage.local import LocalStorageBackend
from pixvault.lib.thumbnails import ThumbnailCache
from tests.helpers import make_image_bytes


@pytest.fixture
def image_bytes():
    return make_image_bytes


@pytest.fixture
def catalog_config():
    return CatalogConfig(high_threshold=1000, ultra_threshold=2000, default_page_size=10)


@pytest.fixture
def ingest_config():
    return IngestConfig(max_upload_size=1024 * 1024, max_files=10)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"))
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return LocalStorageBackend(tmp_path / "storage")


@pytest.fixture
def thumbnails(tmp_path):
    return ThumbnailCache(tmp_path / "cache", quality=80)


@pytest.fixture
def add_asset(session_factory, storage):
    """Insert a catalog row (and optionally its stored bytes) directly."""
    counter = {"n": 0}

    async def _add(
        width: int = 100,
        height: int = 100,
        prompt: str | None = None,
        filename: str | None = None,
        liked: bool = False,
        deleted: bool = False,
        source: str | None = None,
        style: str | None = None,
        data: bytes | None = None,
    ) -> Asset:
        counter["n"] += 1
        key = f"images/2026/10/test_{counter['n']}.webp"
        if data is not None:
            await storage.put(key, data, "image/webp")
        asset = Asset(
            storage_key=key,
            filename=filename or f"test_{counter['n']}.png",
            width=width,
            height=height,
            file_size=len(data) if data else 0,
            prompt=prompt,
            source=source,
            style=style,
            imported_at=datetime.now(UTC),
            deleted_at=datetime.now(UTC) if deleted else None,
            like_count=1 if liked else 0,
        )
        async with session_factory() as session:
            session.add(asset)
            await session.commit()
        return asset

    return _add

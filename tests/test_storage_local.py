"""Tests for the local filesystem storage backend."""

import pytest

from pixvault.config import StorageConfig
from pixvault.lib.exceptions import ObjectNotFoundError, StorageError, ValidationError
from pixvault.lib.storage import LocalStorageBackend, StorageBackend, create_storage_backend


class TestLocalStorageBackend:
    def test_satisfies_protocol(self, storage):
        assert isinstance(storage, StorageBackend)

    @pytest.mark.asyncio
    async def test_put_get_roundtrip(self, storage):
        stored = await storage.put("images/2026/10/a.webp", b"abc", "image/webp")
        assert stored.size == 3
        assert stored.key == "images/2026/10/a.webp"
        assert await storage.get("images/2026/10/a.webp") == b"abc"

    @pytest.mark.asyncio
    async def test_key_maps_to_relative_path(self, storage):
        await storage.put("images/2026/10/a.webp", b"abc", "image/webp")
        assert (storage.base_path / "images" / "2026" / "10" / "a.webp").read_bytes() == b"abc"

    @pytest.mark.asyncio
    async def test_missing_key_raises_not_found(self, storage):
        with pytest.raises(ObjectNotFoundError):
            await storage.get("images/missing.webp")

    @pytest.mark.asyncio
    async def test_delete_and_exists(self, storage):
        await storage.put("k.webp", b"x", "image/webp")
        assert await storage.exists("k.webp")
        await storage.delete("k.webp")
        assert not await storage.exists("k.webp")

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, storage):
        await storage.delete("nothing.webp")

    @pytest.mark.asyncio
    async def test_delete_many(self, storage):
        for i in range(3):
            await storage.put(f"k{i}.webp", b"x", "image/webp")
        await storage.delete_many(["k0.webp", "k2.webp", "absent.webp"])
        assert [await storage.exists(f"k{i}.webp") for i in range(3)] == [False, True, False]

    @pytest.mark.asyncio
    async def test_delete_failure_is_storage_error(self, storage):
        (storage.base_path / "dir.webp").mkdir(parents=True)
        with pytest.raises(StorageError):
            await storage.delete("dir.webp")

    @pytest.mark.asyncio
    async def test_delete_many_removes_the_rest_before_failing(self, storage):
        await storage.put("a.webp", b"x", "image/webp")
        (storage.base_path / "dir.webp").mkdir(parents=True)
        await storage.put("b.webp", b"x", "image/webp")

        with pytest.raises(StorageError):
            await storage.delete_many(["a.webp", "dir.webp", "b.webp"])

        assert not await storage.exists("a.webp")
        assert not await storage.exists("b.webp")

    @pytest.mark.asyncio
    async def test_rejects_traversal(self, storage):
        with pytest.raises(ValidationError):
            await storage.put("../escape.webp", b"x", "image/webp")

    @pytest.mark.asyncio
    async def test_no_temp_files_left(self, tmp_path):
        backend = LocalStorageBackend(tmp_path)
        await backend.put("a/b.webp", b"data", "image/webp")
        assert [p.name for p in (tmp_path / "a").iterdir()] == ["b.webp"]


class TestCreateStorageBackend:
    def test_local(self, tmp_path):
        backend = create_storage_backend(StorageConfig(local_path=str(tmp_path)))
        assert isinstance(backend, LocalStorageBackend)
        assert backend.base_path == tmp_path

    def test_dynamic_import(self, tmp_path):
        config = StorageConfig(backend="tests.test_storage_local:_ConfiguredBackend")
        backend = create_storage_backend(config)
        assert backend.config is config

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_storage_backend(StorageConfig(backend="ftp"))


class _ConfiguredBackend:
    def __init__(self, config):
        self.config = config

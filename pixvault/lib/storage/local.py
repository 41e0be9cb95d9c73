"""Local filesystem storage backend."""

from __future__ import annotations

import asyncio
import hashlib
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from pixvault.lib.exceptions import ObjectNotFoundError, StorageError, ValidationError
from pixvault.lib.storage.base import StoredFile


class LocalStorageBackend:
    """Store objects as files under ``base_path``, one file per key.

    Keys already carry their own ``images/{year}/{month}/`` partition, so they
    map directly onto relative paths.
    """

    def __init__(self, base_path: Path) -> None:
        self._base_path = Path(base_path).resolve()

    @property
    def base_path(self) -> Path:
        return self._base_path

    async def put(self, key: str, data: bytes, content_type: str) -> StoredFile:
        path = self._key_to_path(key)
        try:
            await asyncio.to_thread(self._write_file, path, data)
        except OSError as exc:
            raise StorageError(f"Failed to write '{key}': {exc}") from exc
        return StoredFile(
            key=key,
            content_type=content_type,
            size=len(data),
            content_hash=hashlib.sha256(data).hexdigest(),
        )

    async def get(self, key: str) -> bytes:
        path = self._key_to_path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise ObjectNotFoundError(key) from exc
        except OSError as exc:
            raise StorageError(f"Failed to read '{key}': {exc}") from exc

    async def delete(self, key: str) -> None:
        path = self._key_to_path(key)
        try:
            await asyncio.to_thread(self._unlink, path)
        except OSError as exc:
            raise StorageError(f"Failed to delete '{key}': {exc}") from exc

    async def delete_many(self, keys: Iterable[str]) -> None:
        """Delete every key, then report the ones that could not be removed."""
        paths = [self._key_to_path(key) for key in keys]
        failed = await asyncio.to_thread(self._unlink_all, paths)
        if failed:
            raise StorageError(f"Failed to delete {len(failed)} objects: {failed[0]}")

    async def exists(self, key: str) -> bool:
        path = self._key_to_path(key)
        return await asyncio.to_thread(path.is_file)

    async def close(self) -> None:
        """No persistent resources to clean up."""

    # -- internal helpers --

    def _key_to_path(self, key: str) -> Path:
        if not key or "\x00" in key or ".." in key.replace("\\", "/").split("/"):
            raise ValidationError(f"Invalid storage key: {key!r}")
        path = (self._base_path / key.lstrip("/")).resolve()
        if not path.is_relative_to(self._base_path):
            raise ValidationError(f"Invalid storage key: {key!r}")
        return path

    @staticmethod
    def _write_file(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @staticmethod
    def _unlink(path: Path) -> None:
        path.unlink(missing_ok=True)

    @classmethod
    def _unlink_all(cls, paths: list[Path]) -> list[str]:
        failed = []
        for path in paths:
            try:
                cls._unlink(path)
            except OSError as exc:
                failed.append(f"{path}: {exc}")
        return failed

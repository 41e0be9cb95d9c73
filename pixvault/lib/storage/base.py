"""Storage backend protocol and common types."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class StoredFile:
    """Metadata for a file stored in a backend."""

    key: str
    content_type: str
    size: int
    content_hash: str


@runtime_checkable
class StorageBackend(Protocol):
    """Interface for the durable object store.

    ``get`` raises ``ObjectNotFoundError`` for a missing key; transport and
    auth failures raise ``StorageError``.
    """

    async def put(self, key: str, data: bytes, content_type: str) -> StoredFile:
        """Store data under the given key."""
        ...

    async def get(self, key: str) -> bytes:
        """Retrieve the raw bytes for a key."""
        ...

    async def delete(self, key: str) -> None:
        """Remove a key from storage. Missing keys are ignored."""
        ...

    async def delete_many(self, keys: Iterable[str]) -> None:
        """Remove many keys, chunked to the backend's bulk-delete limit."""
        ...

    async def exists(self, key: str) -> bool:
        """Check whether a key exists in storage."""
        ...

    async def close(self) -> None:
        """Release any resources held by the backend."""
        ...


def chunked(items: list, size: int):
    """Yield successive slices of *items* of at most *size* elements."""
    for start in range(0, len(items), size):
        yield items[start:start + size]

"""Durable object storage backends."""

from pixvault.lib.storage.base import StorageBackend, StoredFile
from pixvault.lib.storage.local import LocalStorageBackend
from pixvault.lib.storage.manager import create_storage_backend

__all__ = ["LocalStorageBackend", "StorageBackend", "StoredFile", "create_storage_backend"]

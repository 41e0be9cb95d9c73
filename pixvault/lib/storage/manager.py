"""Construct the configured durable storage backend."""

from __future__ import annotations

import importlib
from pathlib import Path
from typing import TYPE_CHECKING

from pixvault.lib.storage.local import LocalStorageBackend

if TYPE_CHECKING:
    from pixvault.config import StorageConfig
    from pixvault.lib.storage.base import StorageBackend


def _load_custom(target: str, config: StorageConfig) -> StorageBackend:
    """Import ``package.module:ClassName`` and build it from *config*."""
    module_path, _, class_name = target.partition(":")
    if not module_path or not class_name or ":" in class_name:
        raise ValueError(f"Storage backend {target!r} must look like 'package.module:ClassName'")
    backend_cls = getattr(importlib.import_module(module_path), class_name)
    return backend_cls(config)


def create_storage_backend(config: StorageConfig) -> StorageBackend:
    """Instantiate the backend named by ``config.backend``.

    ``local`` and ``s3`` are built in; anything containing a colon is loaded
    as a third-party class that takes the ``StorageConfig``.
    """
    backend = config.backend

    if backend == "local":
        return LocalStorageBackend(base_path=Path(config.local_path))
    if backend == "s3":
        from pixvault.lib.storage.s3 import S3StorageBackend

        return S3StorageBackend(
            config.s3,
            timeout=config.timeout,
            delete_batch_size=config.delete_batch_size,
        )
    if ":" in backend:
        return _load_custom(backend, config)

    raise ValueError(f"Unknown storage backend {backend!r}; use 'local', 's3' or 'module:ClassName'")

"""S3-compatible storage backend (requires ``pip install pixvault[s3]``)."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from typing import TYPE_CHECKING

try:
    import aioboto3
    from botocore.config import Config
    from botocore.exceptions import BotoCoreError, ClientError
except ImportError as exc:
    raise ImportError(
        "S3 storage backend requires aioboto3. Install it with: pip install pixvault[s3]"
    ) from exc

from pixvault.lib.exceptions import ObjectNotFoundError, StorageError
from pixvault.lib.storage.base import StoredFile, chunked

if TYPE_CHECKING:
    from pixvault.config import S3Config

# S3 DeleteObjects accepts at most 1000 keys per request
MAX_DELETE_BATCH = 1000

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


def _is_not_found(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES


class S3StorageBackend:
    """Store objects in an S3-compatible bucket.

    Calls use bounded connect/read timeouts and a single retry for transient
    errors; not-found and auth errors surface immediately.
    """

    def __init__(
        self,
        config: S3Config,
        timeout: float = 30.0,
        delete_batch_size: int = MAX_DELETE_BATCH,
    ) -> None:
        self._config = config
        self._session = aioboto3.Session()
        self._delete_batch_size = min(delete_batch_size, MAX_DELETE_BATCH)
        self._botocore_config = Config(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"max_attempts": 2, "mode": "standard"},
        )

    def _client_kwargs(self) -> dict:
        optional = {
            "endpoint_url": self._config.endpoint_url,
            "aws_access_key_id": self._config.access_key_id,
            "aws_secret_access_key": self._config.secret_access_key,
        }
        return {
            "region_name": self._config.region,
            "config": self._botocore_config,
            **{name: value for name, value in optional.items() if value},
        }

    def _full_key(self, key: str) -> str:
        prefix = self._config.prefix.strip("/")
        return f"{prefix}/{key}" if prefix else key

    async def put(self, key: str, data: bytes, content_type: str) -> StoredFile:
        try:
            async with self._session.client("s3", **self._client_kwargs()) as s3:
                await s3.put_object(
                    Bucket=self._config.bucket,
                    Key=self._full_key(key),
                    Body=data,
                    ContentType=content_type,
                    CacheControl="public, max-age=31536000",
                )
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Failed to upload '{key}': {exc}") from exc

        return StoredFile(
            key=key,
            content_type=content_type,
            size=len(data),
            content_hash=hashlib.sha256(data).hexdigest(),
        )

    async def get(self, key: str) -> bytes:
        try:
            async with self._session.client("s3", **self._client_kwargs()) as s3:
                response = await s3.get_object(
                    Bucket=self._config.bucket, Key=self._full_key(key)
                )
                return await response["Body"].read()
        except ClientError as exc:
            if _is_not_found(exc):
                raise ObjectNotFoundError(key) from exc
            raise StorageError(f"Failed to fetch '{key}': {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to fetch '{key}': {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            async with self._session.client("s3", **self._client_kwargs()) as s3:
                await s3.delete_object(Bucket=self._config.bucket, Key=self._full_key(key))
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Failed to delete '{key}': {exc}") from exc

    async def delete_many(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if not keys:
            return
        try:
            async with self._session.client("s3", **self._client_kwargs()) as s3:
                for batch in chunked(keys, self._delete_batch_size):
                    response = await s3.delete_objects(
                        Bucket=self._config.bucket,
                        Delete={
                            "Objects": [{"Key": self._full_key(k)} for k in batch],
                            "Quiet": True,
                        },
                    )
                    errors = response.get("Errors") or []
                    if errors:
                        failed = ", ".join(e.get("Key", "?") for e in errors)
                        raise StorageError(f"Failed to delete {len(errors)} objects: {failed}")
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Bulk delete failed: {exc}") from exc

    async def exists(self, key: str) -> bool:
        try:
            async with self._session.client("s3", **self._client_kwargs()) as s3:
                await s3.head_object(Bucket=self._config.bucket, Key=self._full_key(key))
                return True
        except ClientError as exc:
            if _is_not_found(exc):
                return False
            raise StorageError(f"Failed to stat '{key}': {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to stat '{key}': {exc}") from exc

    async def close(self) -> None:
        """No persistent resources to clean up."""

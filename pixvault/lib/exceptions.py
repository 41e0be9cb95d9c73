"""Error hierarchy shared by every pixvault component.

Each error carries a stable ``kind`` and an HTTP-style ``status_code`` so a
request layer can serialize it without inspecting the concrete class.
"""

from __future__ import annotations


class GalleryError(Exception):
    """Base exception for all gallery errors."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(GalleryError):
    """Raised when input has the wrong shape, size or type."""

    kind = "validation"
    status_code = 400


class NotFoundError(GalleryError):
    """Raised when an id or key is absent or in the wrong lifecycle state."""

    kind = "not_found"
    status_code = 404


class UnauthorizedError(GalleryError):
    """Raised when the privilege gate rejects an operation."""

    kind = "unauthorized"
    status_code = 403

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class UpstreamError(GalleryError):
    """Raised when durable storage or the relational store fails."""

    kind = "upstream"
    status_code = 502


class ImageProcessingError(GalleryError):
    """Raised when an image cannot be decoded, resized or encoded."""

    kind = "processing"
    status_code = 500


class ObjectNotFoundError(NotFoundError):
    """Raised by storage backends when a key does not exist."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Object '{key}' not found in storage")


class StorageError(UpstreamError):
    """Raised by storage backends on transport or auth failures."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Storage error: {message}")


def error_envelope(exc: GalleryError) -> dict:
    """Serialize an error to the JSON envelope used by API clients."""
    return {
        "success": False,
        "error": {"kind": exc.kind, "message": exc.message},
    }

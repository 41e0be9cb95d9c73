"""Storage key generation for ingested assets."""

from __future__ import annotations

import re
import secrets
import string
import time
from datetime import datetime, UTC
from pathlib import PurePosixPath

CANONICAL_EXTENSION = ".webp"
KEY_PREFIX = "images"
MAX_NAME_LENGTH = 50
SUFFIX_LENGTH = 6

# Word characters, CJK ideographs and hyphens survive; anything else becomes "_"
_UNSAFE_CHARS = re.compile(r"[^\w\u4e00-\u9fa5-]", re.ASCII)
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def clean_name(original_name: str) -> str:
    """Strip the extension and replace characters unsafe for object keys."""
    base = PurePosixPath(original_name.replace("\\", "/")).name
    stem = base.rsplit(".", 1)[0] if "." in base.lstrip(".") else base
    cleaned = _UNSAFE_CHARS.sub("_", stem)[:MAX_NAME_LENGTH]
    return cleaned or "image"


def generate_key(original_name: str, now: datetime | None = None) -> str:
    """Build a unique storage key for an incoming asset.

    Format: ``images/{year}/{month}/{name}_{timestamp_ms}_{random6}.webp``.
    No network round-trip is made, so generation never fails.
    """
    now = now or datetime.now(UTC)
    timestamp = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return (
        f"{KEY_PREFIX}/{now.year}/{now.month:02d}/"
        f"{clean_name(original_name)}_{timestamp}_{suffix}{CANONICAL_EXTENSION}"
    )

"""Asset model for ingested images."""

from __future__ import annotations

import random
from datetime import datetime

from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pixvault.db.base import Base


class Asset(Base):
    """A canonical image stored in durable storage plus its derived metadata.

    ``storage_key`` is never reused, even after the row is purged.
    """

    __tablename__ = "assets"
    __table_args__ = (
        Index("ix_asset_deleted_created", "deleted_at", "created_at"),
    )

    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    width: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    height: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    blurhash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    dominant_color: Mapped[str | None] = mapped_column(String(7), nullable=True)

    prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    style: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    style_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)

    imported_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTimeUTC(timezone=True), nullable=True, index=True
    )
    like_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    random_order: Mapped[float] = mapped_column(Float, nullable=False, default=random.random)

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None

    @property
    def liked(self) -> bool:
        return self.like_count > 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "storage_key": self.storage_key,
            "filename": self.filename,
            "width": self.width,
            "height": self.height,
            "file_size": self.file_size,
            "blurhash": self.blurhash,
            "dominant_color": self.dominant_color,
            "prompt": self.prompt,
            "source": self.source,
            "style": self.style,
            "style_ref": self.style_ref,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "imported_at": self.imported_at.isoformat() if self.imported_at else None,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "liked": self.liked,
        }

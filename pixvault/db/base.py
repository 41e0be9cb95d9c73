"""Declarative base for catalog tables."""

from advanced_alchemy.base import BigIntAuditBase


class Base(BigIntAuditBase):
    """Integer-keyed base with ``created_at`` / ``updated_at`` audit columns."""

    __abstract__ = True

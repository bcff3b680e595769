"""Persisted single-use refresh tokens."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tokenguard.core.extensions import db

from .base import CreatedAtMixin, PKMixin, ReprMixin


class RefreshToken(PKMixin, ReprMixin, CreatedAtMixin, db.Model):
    """
    Refresh token row owned by a principal.

    Fields
    ------
    principal_id : str
        Owner identifier (the principal lives outside this package).
    token : str
        Opaque random value handed to the client.
    expires_at : datetime
        Absolute expiry; rows past it are ignored and later purged.
    """

    __tablename__ = "refresh_tokens"

    principal_id: Mapped[str] = mapped_column(String(64), nullable=False)
    token: Mapped[str] = mapped_column(String(128), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("principal_id", "token", name="uq_refresh_tokens_principal_token"),
        Index("ix_refresh_tokens_expires_at", "expires_at"),
    )

"""Persisted blacklist entries for revoked access tokens."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tokenguard.core.extensions import db

from .base import CreatedAtMixin, PKMixin, ReprMixin


class BlacklistedToken(PKMixin, ReprMixin, CreatedAtMixin, db.Model):
    """
    Revoked access token, keyed by the SHA-256 digest of its value.

    ``expires_at`` mirrors the token's own ``exp``; afterwards the row is moot.
    """

    __tablename__ = "blacklisted_tokens"

    token_digest: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("token_digest", name="uq_blacklisted_tokens_token_digest"),
        Index("ix_blacklisted_tokens_expires_at", "expires_at"),
    )

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from tokenguard.services._shared.clock import from_timestamp, to_timestamp

REFRESH_TOKEN_BYTES = 48


@dataclass(frozen=True)
class RefreshTokenView:
    """
    Read-model for a persisted refresh token.

    :ivar principal_id: Owner principal identifier.
    :ivar token: Opaque random token value.
    :ivar expires_at: Absolute expiration (UTC).
    """

    principal_id: str
    token: str
    expires_at: datetime


class RefreshTokenStore(Protocol):
    """
    Durable store for single-use refresh tokens keyed by ``(principal_id, token)``.

    ``consume`` MUST be an atomic compare-and-delete: among concurrent callers
    presenting the same token exactly one gets ``True``.
    """

    def create(
        self,
        *,
        principal_id: str,
        token: str,
        expires_at: datetime,
        now: datetime | None = None,
    ) -> None:
        """
        Persist a new refresh token *before* it is handed to the client.

        :param now: Caller's clock reading; stores with native TTLs derive them from it.
        """

    def consume(self, *, principal_id: str, token: str, now: datetime) -> bool:
        """
        Atomically destroy the token if it exists and has not expired.

        :returns: ``True`` only for the caller that destroyed a valid token.
        """

    def get(self, *, principal_id: str, token: str) -> RefreshTokenView | None:
        """Fetch a single token snapshot (if present, expired or not)."""

    def destroy_all_for_principal(self, principal_id: str) -> int:
        """
        Destroy every refresh token owned by the principal.

        :returns: Number of tokens destroyed.
        """

    def purge_expired(self, now: datetime) -> int:
        """Delete expired rows. Housekeeping only; lookups already ignore them."""

    def new_token(self) -> str:
        """Generate a new cryptographically random token value."""
        return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-memory refresh token store with atomic consumption.

    .. note::
       Uses a threading lock to provide the compare-and-delete guarantee.
    """

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()

    def create(
        self,
        *,
        principal_id: str,
        token: str,
        expires_at: datetime,
        now: datetime | None = None,
    ) -> None:
        with self._lock:
            self._rows[(principal_id, token)] = to_timestamp(expires_at)

    def consume(self, *, principal_id: str, token: str, now: datetime) -> bool:
        key = (principal_id, token)
        with self._lock:
            expires_at = self._rows.pop(key, None)
        if expires_at is None:
            return False
        # An expired row is terminal; popping it is harmless.
        return expires_at > to_timestamp(now)

    def get(self, *, principal_id: str, token: str) -> RefreshTokenView | None:
        expires_at = self._rows.get((principal_id, token))
        if expires_at is None:
            return None
        return RefreshTokenView(
            principal_id=principal_id,
            token=token,
            expires_at=from_timestamp(expires_at),
        )

    def destroy_all_for_principal(self, principal_id: str) -> int:
        with self._lock:
            keys = [key for key in self._rows if key[0] == principal_id]
            for key in keys:
                del self._rows[key]
            return len(keys)

    def purge_expired(self, now: datetime) -> int:
        cutoff = to_timestamp(now)
        with self._lock:
            stale = [key for key, exp in self._rows.items() if exp <= cutoff]
            for key in stale:
                del self._rows[key]
            return len(stale)

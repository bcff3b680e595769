from __future__ import annotations

import hashlib
import threading
from datetime import datetime
from typing import Protocol

from tokenguard.services._shared.clock import to_timestamp


def token_digest(token: str) -> str:
    """Key blacklist entries by a digest so raw tokens are never stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class BlacklistStore(Protocol):
    """
    Abstraction for a blacklist of revoked **access tokens**.

    Methods are expected to be idempotent. Entries only need to become visible
    by the next request; read-your-writes is not required.
    """

    def is_blacklisted(self, token: str) -> bool: ...
    def add(self, *, token: str, expires_at: datetime, now: datetime | None = None) -> None: ...
    def purge_expired(self, now: datetime) -> int: ...


class InMemoryBlacklistStore(BlacklistStore):
    """Simple in-memory blacklist for access tokens."""

    def __init__(self) -> None:
        self._entries: dict[str, int] = {}
        self._lock = threading.Lock()

    def is_blacklisted(self, token: str) -> bool:
        return token_digest(token) in self._entries

    def add(self, *, token: str, expires_at: datetime, now: datetime | None = None) -> None:
        with self._lock:
            self._entries[token_digest(token)] = to_timestamp(expires_at)

    def purge_expired(self, now: datetime) -> int:
        cutoff = to_timestamp(now)
        with self._lock:
            stale = [key for key, exp in self._entries.items() if exp <= cutoff]
            for key in stale:
                del self._entries[key]
            return len(stale)

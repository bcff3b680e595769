# comments in English; reST docstrings
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import cast

import redis  # type: ignore[import-untyped]

from tokenguard.services._shared.clock import from_timestamp, to_timestamp
from tokenguard.services._shared.errors import StoreUnavailable
from tokenguard.services._shared.ports import RefreshTokenStore, RefreshTokenView


@contextmanager
def store_errors() -> Iterator[None]:
    """Surface Redis connectivity problems and timeouts as ``StoreUnavailable``."""
    try:
        yield
    except redis.RedisError as exc:
        raise StoreUnavailable() from exc


def ttl_seconds(expires_at: datetime, now: datetime | None) -> int:
    """Seconds from the caller's ``now`` until ``expires_at`` (at least 1)."""
    reference = now or datetime.now(UTC)
    return max(1, to_timestamp(expires_at) - to_timestamp(reference))


def _text(value: bytes | str | None) -> str | None:
    if value is None:
        return None
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


@dataclass(slots=True)
class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed refresh token store with atomic consumption.

    Each token is a string key holding its expiry timestamp, with a Redis TTL so
    unused tokens disappear on their own.

    :param r: A Redis client (already connected).
    """

    r: redis.Redis

    # -------------------- helpers --------------------

    @staticmethod
    def _k(principal_id: str, token: str) -> str:
        return f"rt:{principal_id}:{token}"

    @staticmethod
    def _kp(principal_id: str) -> str:
        return f"rt:p:{principal_id}"

    # -------------------- API ------------------------

    def create(
        self,
        *,
        principal_id: str,
        token: str,
        expires_at: datetime,
        now: datetime | None = None,
    ) -> None:
        """
        Insert the refresh token *before* handing it to the client.

        An already expired token is still stored (briefly) so that lookups
        report it as expired rather than unknown.
        """
        exp_ts = to_timestamp(expires_at)
        ttl = ttl_seconds(expires_at, now)

        with store_errors():
            pipe = self.r.pipeline(transaction=True)
            pipe.set(self._k(principal_id, token), str(exp_ts), ex=ttl)
            pipe.sadd(self._kp(principal_id), token)
            pipe.execute()

    def consume(self, *, principal_id: str, token: str, now: datetime) -> bool:
        """
        Atomically read and delete the token inside ``MULTI/EXEC``.

        The ``DEL`` reply is 1 for exactly one concurrent caller; everybody else
        observes the key as already gone.
        """
        key = self._k(principal_id, token)
        with store_errors():
            with self.r.pipeline(transaction=True) as p:
                p.get(key)
                p.delete(key)
                p.srem(self._kp(principal_id), token)
                raw, deleted, _ = p.execute()

        if int(deleted) != 1 or raw is None:
            return False
        return int(_text(raw) or 0) > to_timestamp(now)

    def get(self, *, principal_id: str, token: str) -> RefreshTokenView | None:
        with store_errors():
            raw = self.r.get(self._k(principal_id, token))
        if raw is None:
            return None
        return RefreshTokenView(
            principal_id=principal_id,
            token=token,
            expires_at=from_timestamp(int(_text(raw) or 0)),
        )

    def destroy_all_for_principal(self, principal_id: str) -> int:
        key_p = self._kp(principal_id)
        with store_errors():
            tokens = [_text(member) or "" for member in self.r.smembers(key_p)]
            if not tokens:
                return 0
            pipe = self.r.pipeline(transaction=True)
            for token in tokens:
                pipe.delete(self._k(principal_id, token))
            pipe.delete(key_p)
            out = cast(list[int], pipe.execute())
        # Last reply is the index deletion itself.
        return sum(int(n) for n in out[:-1])

    def purge_expired(self, now: datetime) -> int:
        """
        Drop index entries whose token key already expired.

        Token keys carry their own TTL, so only the per-principal sets need care.
        """
        removed = 0
        with store_errors():
            for key_p in self.r.scan_iter(match="rt:p:*"):
                principal_id = (_text(key_p) or "")[len("rt:p:") :]
                stale = [
                    _text(member) or ""
                    for member in self.r.smembers(key_p)
                    if not self.r.exists(self._k(principal_id, _text(member) or ""))
                ]
                if stale:
                    removed += int(self.r.srem(key_p, *stale))
        return removed

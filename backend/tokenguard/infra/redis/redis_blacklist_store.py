from datetime import datetime
from typing import cast

import redis  # type: ignore[import-untyped]

from tokenguard.infra.redis.redis_refresh_token_store import store_errors, ttl_seconds
from tokenguard.services._shared.ports.blacklist_store import token_digest


class RedisBlacklistStore:
    """
    Minimal blacklist for **access tokens**, keyed by token digest.
    """

    def __init__(self, r: redis.Redis):
        self.r = r

    @staticmethod
    def _k(token: str) -> str:
        return f"bl:at:{token_digest(token)}"

    def is_blacklisted(self, token: str) -> bool:
        with store_errors():
            return cast(int, self.r.exists(self._k(token))) == 1

    def add(self, *, token: str, expires_at: datetime, now: datetime | None = None) -> None:
        ttl = ttl_seconds(expires_at, now)
        # store a small marker with TTL; idempotent
        with store_errors():
            self.r.set(self._k(token), "1", ex=ttl)

    def purge_expired(self, now: datetime) -> int:
        """Entries carry a Redis TTL and expire on their own."""
        return 0

"""
tokenguard.services._shared.ports
=================================

Collection of *ports* (hexagonal interfaces) that define the contracts
for token management infrastructure.

These ports decouple the lifecycle service from concrete implementations
of token signing, revocation and refresh storage mechanisms.

Modules
-------
- :mod:`token_codec`:
    Defines :class:`~.TokenCodec`, the abstraction for signing and verifying access tokens.

- :mod:`blacklist_store`:
    Defines :class:`~.BlacklistStore`, the interface for revoked access tokens.

- :mod:`refresh_token_store`:
    Defines :class:`~.RefreshTokenStore` and :class:`~.RefreshTokenView`,
    abstractions for single-use refresh token persistence.

- :mod:`principal_loader`:
    Defines :class:`~.PrincipalLoader` and the :class:`~.Principal` protocol.

Design Notes
------------
Concrete adapters (Redis, SQLAlchemy) implement these interfaces under
``tokenguard.infra``. In-memory implementations live beside each port.
"""

from __future__ import annotations

from .blacklist_store import BlacklistStore, InMemoryBlacklistStore, token_digest
from .principal_loader import (
    CustomClaimsPrincipal,
    InMemoryPrincipalLoader,
    Principal,
    PrincipalLoader,
    PrincipalRecord,
)
from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenStore,
    RefreshTokenView,
)
from .token_codec import StubTokenCodec, TokenCodec

__all__ = [
    "TokenCodec",
    "StubTokenCodec",
    "BlacklistStore",
    "InMemoryBlacklistStore",
    "token_digest",
    "RefreshTokenStore",
    "RefreshTokenView",
    "InMemoryRefreshTokenStore",
    "Principal",
    "CustomClaimsPrincipal",
    "PrincipalLoader",
    "PrincipalRecord",
    "InMemoryPrincipalLoader",
]

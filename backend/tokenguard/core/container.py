"""Per-application wiring of the token service and its collaborators."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import Flask, current_app

from tokenguard.core.config import TRANSPORT_COOKIES, TRANSPORT_HEADERS
from tokenguard.infra.jwt.flask_jwt_token_codec import FlaskJWTTokenCodec
from tokenguard.services._shared.base import ServiceContext
from tokenguard.services._shared.clock import Clock, SystemClock
from tokenguard.services._shared.ports import (
    BlacklistStore,
    InMemoryBlacklistStore,
    InMemoryPrincipalLoader,
    InMemoryRefreshTokenStore,
    PrincipalLoader,
    RefreshTokenStore,
    TokenCodec,
)
from tokenguard.services.tokens.dto import TokenConfig
from tokenguard.services.tokens.service import TokenService

EXTENSION_KEY = "tokenguard"

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class TokenguardState:
    """Long-lived collaborators shared by the request-scoped services."""

    codec: TokenCodec
    refresh_store: RefreshTokenStore
    blacklist_store: BlacklistStore
    principals: PrincipalLoader
    token_cfg: TokenConfig
    clock: Clock
    transport_mode: str

    def service(self, ctx: ServiceContext | None = None) -> TokenService:
        return TokenService(
            codec=self.codec,
            refresh_store=self.refresh_store,
            blacklist_store=self.blacklist_store,
            principals=self.principals,
            token_cfg=self.token_cfg,
            clock=self.clock,
            ctx=ctx,
        )


def _build_stores(app: Flask) -> tuple[RefreshTokenStore, BlacklistStore]:
    backend = str(app.config.get("TOKEN_STORE_BACKEND", "memory")).lower()

    if backend == "redis":
        from tokenguard.core.extensions import get_redis
        from tokenguard.infra.redis.redis_blacklist_store import RedisBlacklistStore
        from tokenguard.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore

        client = app.extensions.get("redis_client") or get_redis()
        return RedisRefreshTokenStore(r=client), RedisBlacklistStore(client)

    if backend == "sqlalchemy":
        from tokenguard.core.extensions import db
        from tokenguard.infra.sqlalchemy.sqlalchemy_blacklist_store import (
            SQLAlchemyBlacklistStore,
        )
        from tokenguard.infra.sqlalchemy.sqlalchemy_refresh_token_store import (
            SQLAlchemyRefreshTokenStore,
        )

        return SQLAlchemyRefreshTokenStore(session=db.session), SQLAlchemyBlacklistStore(
            session=db.session
        )

    if backend != "memory":
        raise RuntimeError(f"Unknown TOKEN_STORE_BACKEND {backend!r}")
    return InMemoryRefreshTokenStore(), InMemoryBlacklistStore()


def init_app(
    app: Flask,
    *,
    principals: PrincipalLoader | None = None,
    clock: Clock | None = None,
) -> TokenguardState:
    """
    Build the token collaborators from ``app.config`` and register them.

    :param principals: Loader for the application's principals; an empty
        in-memory loader is used when omitted.
    :param clock: Time source shared by every service instance.
    """
    mode = str(app.config.get("TOKEN_TRANSPORT", TRANSPORT_HEADERS)).lower()
    if mode not in {TRANSPORT_HEADERS, TRANSPORT_COOKIES}:
        raise RuntimeError(f"Unknown TOKEN_TRANSPORT {mode!r}")

    refresh_store, blacklist_store = _build_stores(app)
    state = TokenguardState(
        codec=FlaskJWTTokenCodec(),
        refresh_store=refresh_store,
        blacklist_store=blacklist_store,
        principals=principals or InMemoryPrincipalLoader(),
        token_cfg=TokenConfig.from_mapping(app.config),
        clock=clock or SystemClock(),
        transport_mode=mode,
    )
    app.extensions[EXTENSION_KEY] = state
    LOGGER.debug(
        "tokenguard initialised backend=%s transport=%s",
        app.config.get("TOKEN_STORE_BACKEND"),
        mode,
    )
    return state


def get_state() -> TokenguardState:
    """Return the state registered on the current application."""
    state = current_app.extensions.get(EXTENSION_KEY)
    if state is None:
        raise RuntimeError("tokenguard is not initialized. Call init_app() first.")
    return state

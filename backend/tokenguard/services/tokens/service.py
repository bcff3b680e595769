# tokenguard/services/tokens/service.py
from __future__ import annotations

from datetime import datetime
from typing import Any

from tokenguard.services._shared.base import BaseService, ServiceContext
from tokenguard.services._shared.clock import Clock, from_timestamp, to_timestamp
from tokenguard.services._shared.errors import (
    Expired,
    InvalidRefreshToken,
    MissingRefreshToken,
    Revoked,
    ServiceError,
    Unauthorized,
)
from tokenguard.services._shared.ports import (
    BlacklistStore,
    CustomClaimsPrincipal,
    Principal,
    PrincipalLoader,
    RefreshTokenStore,
    TokenCodec,
)
from tokenguard.services._shared.ports.token_codec import (
    EXPIRES_CLAIM,
    ISSUED_AT_CLAIM,
    RESERVED_CLAIMS,
    SUBJECT_CLAIM,
)
from tokenguard.services.tokens.dto import TokenConfig, TokenPairOut


class TokenService(BaseService):
    """
    Token lifecycle service (issue / validate / refresh / revoke).

    Access tokens are signed via a pluggable :class:`TokenCodec`, refresh tokens
    are single-use rows in a :class:`RefreshTokenStore` (atomic consumption), and
    early revocation of access tokens goes through a :class:`BlacklistStore`.
    The service holds no state of its own beyond these collaborators.
    """

    def __init__(
        self,
        *,
        codec: TokenCodec,
        refresh_store: RefreshTokenStore,
        blacklist_store: BlacklistStore,
        principals: PrincipalLoader,
        token_cfg: TokenConfig | None = None,
        clock: Clock | None = None,
        ctx: ServiceContext | None = None,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param codec: Adapter for signing/verifying access tokens.
        :param refresh_store: Durable store for refresh tokens (atomic consume).
        :param blacklist_store: Blacklist for revoked access tokens.
        :param principals: Lookup and watermark persistence for principals.
        :param token_cfg: Lifetimes and feature flags.
        :param clock: Time source, read once per operation.
        """
        super().__init__(clock=clock, ctx=ctx)
        self.codec = codec
        self.refresh_store = refresh_store
        self.blacklist = blacklist_store
        self.principals = principals
        self.cfg = token_cfg or TokenConfig()

    # ------------------------------------------------------------------ #
    # Issue
    # ------------------------------------------------------------------ #

    def issue_pair(
        self,
        principal: Principal,
        *,
        expired_token: bool = False,
        expired_refresh_token: bool = False,
    ) -> TokenPairOut:
        """
        Mint an access token and persist a fresh refresh token for ``principal``.

        :param principal: Already authenticated principal.
        :param expired_token: Testing only; issue an access token with ``exp == iat``.
        :param expired_refresh_token: Testing only; persist an already expired refresh token.
        :returns: The token pair.
        """
        now = self.now_utc()
        access_token, access_exp = self._sign_access(principal, now, expired=expired_token)
        return self._store_pair(
            principal,
            now,
            access_token=access_token,
            access_exp=access_exp,
            expired_refresh=expired_refresh_token,
        )

    def _sign_access(
        self, principal: Principal, now: datetime, *, expired: bool = False
    ) -> tuple[str, int]:
        """Sign the access token; nothing is persisted yet."""
        issued_at = to_timestamp(now)
        access_exp = issued_at if expired else to_timestamp(now + self.cfg.access_expires)
        claims = self._build_claims(principal, issued_at=issued_at, expires_at=access_exp)
        return self.codec.encode(claims), access_exp

    def _store_pair(
        self,
        principal: Principal,
        now: datetime,
        *,
        access_token: str,
        access_exp: int,
        expired_refresh: bool = False,
    ) -> TokenPairOut:
        """Persist a fresh refresh token next to an already signed access token."""
        refresh_exp = now if expired_refresh else now + self.cfg.refresh_expires
        refresh_token = self.refresh_store.new_token()
        self.refresh_store.create(
            principal_id=str(principal.id),
            token=refresh_token,
            expires_at=refresh_exp,
            now=now,
        )

        self.log.info(
            "tokens.issued",
            extra=self.log_extra(principal_id=str(principal.id), expires_at=access_exp),
        )
        return TokenPairOut(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=access_exp,
            refresh_expires_at=to_timestamp(refresh_exp),
        )

    # ------------------------------------------------------------------ #
    # Validate
    # ------------------------------------------------------------------ #

    def validate_access(self, token: str) -> Principal:
        """
        Authorize a request bearing ``token``.

        :raises InvalidSignature: Token does not verify.
        :raises Expired: Token is past its ``exp``.
        :raises MissingIssuedAt: Token carries no ``iat``.
        :raises Unauthorized: Unknown principal or watermark newer than ``iat``.
        :raises Revoked: Token is blacklisted.
        """
        now = self.now_utc()
        claims = self.codec.decode(token, verify_expiry=True, now=now)
        return self._resolve(token, claims)

    def authenticate_for_refresh(self, token: str) -> Principal:
        """
        Identify the principal presenting a refresh request.

        When ``refresh_accepts_expired_access`` is set an expired access token still
        names the principal; every other check of :meth:`validate_access` applies.
        The refresh token remains the credential that authorizes the rotation.
        """
        now = self.now_utc()
        claims = self.codec.decode(
            token,
            verify_expiry=not self.cfg.refresh_accepts_expired_access,
            now=now,
        )
        return self._resolve(token, claims)

    def _resolve(self, token: str, claims: dict[str, Any]) -> Principal:
        principal = self.principals.load(str(claims.get(SUBJECT_CLAIM)))
        if principal is None:
            raise Unauthorized()

        watermark = principal.token_issued_at
        if watermark is not None and to_timestamp(watermark) > int(claims[ISSUED_AT_CLAIM]):
            # Credentials changed after this token was minted.
            raise Unauthorized()

        if self.cfg.checks_blacklist and self.blacklist.is_blacklisted(token):
            raise Revoked()

        return principal

    # ------------------------------------------------------------------ #
    # Refresh with rotation
    # ------------------------------------------------------------------ #

    def refresh(
        self,
        principal: Principal,
        refresh_token: str | None,
        *,
        access_token: str | None = None,
    ) -> TokenPairOut:
        """
        Consume ``refresh_token`` and emit a replacement pair.

        Security
        --------
        - The store consumes the token with an atomic compare-and-delete; concurrent
          callers presenting the same token get exactly one success.
        - With ``blacklist_after_refresh`` the presented access token is blacklisted
          after the refresh token is destroyed. This step is best-effort: a failure
          leaves the old access token valid until its ``exp``.

        :raises MissingRefreshToken: No refresh token presented.
        :raises InvalidRefreshToken: Unknown, expired or already consumed token.
        """
        if not refresh_token:
            raise MissingRefreshToken()

        principal_id = str(principal.id)
        now = self.now_utc()
        # Sign the replacement first: an encoding failure must not burn the presented token.
        new_access, access_exp = self._sign_access(principal, now)

        consumed = self.refresh_store.consume(
            principal_id=principal_id,
            token=refresh_token,
            now=now,
        )
        if not consumed:
            self.log.warning(
                "tokens.refresh_rejected",
                extra=self.log_extra(principal_id=principal_id),
            )
            raise InvalidRefreshToken()

        if self.cfg.blacklist_after_refresh and access_token:
            try:
                self.blacklist_access_token(access_token, force=True, now=now)
            except ServiceError:
                self.log.warning(
                    "tokens.blacklist_after_refresh_failed",
                    extra=self.log_extra(principal_id=principal_id),
                    exc_info=True,
                )

        pair = self._store_pair(principal, now, access_token=new_access, access_exp=access_exp)
        self.log.info("tokens.refreshed", extra=self.log_extra(principal_id=principal_id))
        return pair

    # ------------------------------------------------------------------ #
    # Revocation
    # ------------------------------------------------------------------ #

    def blacklist_access_token(
        self, token: str, *, force: bool = False, now: datetime | None = None
    ) -> bool:
        """
        Blacklist ``token`` until its own ``exp``.

        :param force: Insert even when validation does not consult the blacklist.
        :param now: Time already sampled by the calling operation.
        :returns: ``True`` if an entry was written.
        """
        if not (force or self.cfg.checks_blacklist):
            return False
        claims = self.codec.decode(token, verify_expiry=False)
        exp = claims.get(EXPIRES_CLAIM)
        if exp is None:
            raise Expired()
        self.blacklist.add(
            token=token,
            expires_at=from_timestamp(exp),
            now=now or self.now_utc(),
        )
        return True

    def invalidate_all_tokens(self, principal: Principal) -> datetime | None:
        """
        Move the principal's watermark to now, rejecting every earlier access token.

        Only active with ``invalidate_on_credential_change``; call it whenever the
        principal's credentials change (e.g. password update).

        :returns: The new watermark, or ``None`` when the feature is disabled.
        """
        if not self.cfg.invalidate_on_credential_change:
            return None
        watermark = self.now_utc().replace(microsecond=0)
        self.principals.set_token_issued_at(principal, watermark)
        self.log.info(
            "tokens.invalidated",
            extra=self.log_extra(principal_id=str(principal.id)),
        )
        return watermark

    def revoke(
        self,
        principal: Principal,
        *,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ) -> int:
        """
        Sign the principal out.

        Blacklists ``access_token`` (when blacklisting is on) and destroys
        ``refresh_token``, or every refresh token of the principal when omitted.

        :returns: Number of refresh tokens destroyed.
        """
        if access_token:
            self.blacklist_access_token(access_token)

        principal_id = str(principal.id)
        if refresh_token:
            destroyed = int(
                self.refresh_store.consume(
                    principal_id=principal_id,
                    token=refresh_token,
                    now=self.now_utc(),
                )
            )
        else:
            destroyed = self.refresh_store.destroy_all_for_principal(principal_id)

        self.log.info(
            "tokens.revoked",
            extra=self.log_extra(principal_id=principal_id, destroyed=destroyed),
        )
        return destroyed

    # ------------------------------------------------------------------ #
    # Utilities
    # ------------------------------------------------------------------ #

    @staticmethod
    def _build_claims(principal: Principal, *, issued_at: int, expires_at: int) -> dict[str, Any]:
        """Merge the principal's custom payload under the reserved claims."""
        claims: dict[str, Any] = {}
        if isinstance(principal, CustomClaimsPrincipal):
            extra = principal.jwt_token_payload() or {}
            claims.update({k: v for k, v in extra.items() if k not in RESERVED_CLAIMS})
        claims[SUBJECT_CLAIM] = str(principal.id)
        claims[ISSUED_AT_CLAIM] = issued_at
        claims[EXPIRES_CLAIM] = expires_at
        return claims

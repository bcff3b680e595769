# tokenguard/services/tokens/dto.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Signed access JWT.
    :type access_token: str
    :param refresh_token: Opaque persisted refresh token value.
    :type refresh_token: str
    :param expires_at: Access token expiry (epoch seconds).
    :type expires_at: int
    :param refresh_expires_at: Refresh token expiry (epoch seconds).
    :type refresh_expires_at: int
    """

    access_token: str
    refresh_token: str
    expires_at: int
    refresh_expires_at: int


# ------------------------------ Config DTO -------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenConfig:
    """
    Token lifecycle configuration.

    :param access_expires: Access token lifetime.
    :param refresh_expires: Refresh token lifetime.
    :param blacklist_enabled: Consult the blacklist on every validation.
    :param blacklist_after_refresh: Blacklist the presented access token on refresh.
    :param invalidate_on_credential_change: Move the watermark on credential changes.
    :param refresh_accepts_expired_access: Let an expired access token identify
        the principal at refresh time.
    """

    access_expires: timedelta = timedelta(days=1)
    refresh_expires: timedelta = timedelta(days=7)
    blacklist_enabled: bool = False
    blacklist_after_refresh: bool = False
    invalidate_on_credential_change: bool = False
    refresh_accepts_expired_access: bool = True

    @property
    def checks_blacklist(self) -> bool:
        """Blacklisting after refresh is pointless unless validation consults it."""
        return self.blacklist_enabled or self.blacklist_after_refresh

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> TokenConfig:
        """Build the configuration from a Flask-style config mapping."""
        return cls(
            access_expires=timedelta(seconds=int(config.get("ACCESS_TOKEN_TTL_SECONDS", 86400))),
            refresh_expires=timedelta(
                seconds=int(config.get("REFRESH_TOKEN_TTL_SECONDS", 604800))
            ),
            blacklist_enabled=bool(config.get("BLACKLIST_ENABLED", False)),
            blacklist_after_refresh=bool(config.get("BLACKLIST_AFTER_REFRESH", False)),
            invalidate_on_credential_change=bool(
                config.get("INVALIDATE_ON_CREDENTIAL_CHANGE", False)
            ),
            refresh_accepts_expired_access=bool(
                config.get("REFRESH_ACCEPTS_EXPIRED_ACCESS", True)
            ),
        )

"""
Token transport strategies.

The token service only deals in raw strings; these adapters move them in and
out of HTTP requests and responses. The strategy is chosen once from
``TOKEN_TRANSPORT`` and never branched on elsewhere.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol

from flask import Request, Response

from tokenguard.core.config import TRANSPORT_COOKIES, TRANSPORT_HEADERS
from tokenguard.services.tokens.dto import TokenPairOut

ACCESS_TOKEN_HEADER = "Access-Token"
REFRESH_TOKEN_HEADER = "Refresh-Token"
EXPIRE_AT_HEADER = "Expire-At"

ACCESS_TOKEN_COOKIE = "access_token"
REFRESH_TOKEN_COOKIE = "refresh_token"
COOKIE_PATH = "/"


class TokenTransport(Protocol):
    """Read tokens from requests and write token pairs to responses."""

    def read_access_token(self, request: Request) -> str | None: ...
    def read_refresh_token(self, request: Request) -> str | None: ...
    def write_pair(self, response: Response, pair: TokenPairOut) -> None: ...
    def clear(self, response: Response) -> None: ...


class HeaderTransport(TokenTransport):
    """Tokens travel in ``Access-Token`` / ``Refresh-Token`` / ``Expire-At`` headers."""

    def read_access_token(self, request: Request) -> str | None:
        token = request.headers.get(ACCESS_TOKEN_HEADER)
        if token:
            return token.strip()
        # Also accept the conventional bearer scheme.
        scheme, _, value = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
        return None

    def read_refresh_token(self, request: Request) -> str | None:
        token = request.headers.get(REFRESH_TOKEN_HEADER)
        return token.strip() if token else None

    def write_pair(self, response: Response, pair: TokenPairOut) -> None:
        response.headers[ACCESS_TOKEN_HEADER] = pair.access_token
        response.headers[REFRESH_TOKEN_HEADER] = pair.refresh_token
        response.headers[EXPIRE_AT_HEADER] = str(pair.expires_at)

    def clear(self, response: Response) -> None:
        # Nothing is stored client-side on our behalf.
        return None


class CookieTransport(TokenTransport):
    """
    Tokens travel in HttpOnly ``access_token`` / ``refresh_token`` cookies.

    Both cookies expire together with the refresh token.
    """

    def __init__(self, *, secure: bool = True, samesite: str | None = "Lax") -> None:
        self.secure = secure
        self.samesite = samesite

    def read_access_token(self, request: Request) -> str | None:
        return request.cookies.get(ACCESS_TOKEN_COOKIE) or None

    def read_refresh_token(self, request: Request) -> str | None:
        return request.cookies.get(REFRESH_TOKEN_COOKIE) or None

    def write_pair(self, response: Response, pair: TokenPairOut) -> None:
        expires = datetime.fromtimestamp(pair.refresh_expires_at, tz=UTC)
        for name, value in (
            (ACCESS_TOKEN_COOKIE, pair.access_token),
            (REFRESH_TOKEN_COOKIE, pair.refresh_token),
        ):
            response.set_cookie(
                name,
                value,
                expires=expires,
                path=COOKIE_PATH,
                httponly=True,
                secure=self.secure,
                samesite=self.samesite,
            )

    def clear(self, response: Response) -> None:
        response.delete_cookie(ACCESS_TOKEN_COOKIE, path=COOKIE_PATH)
        response.delete_cookie(REFRESH_TOKEN_COOKIE, path=COOKIE_PATH)


def get_transport(
    mode: str,
    *,
    secure: bool = True,
    samesite: str | None = "Lax",
) -> TokenTransport:
    """Return the transport strategy for ``mode`` (``headers`` or ``cookies``)."""
    if mode == TRANSPORT_COOKIES:
        return CookieTransport(secure=secure, samesite=samesite)
    if mode == TRANSPORT_HEADERS:
        return HeaderTransport()
    raise ValueError(f"Unknown token transport {mode!r}")

# tests/unit/api/test_transport.py
"""Header and cookie transport strategies."""

from __future__ import annotations

import pytest
from flask import Flask, Response, request

from tokenguard.api.transport import (
    CookieTransport,
    HeaderTransport,
    get_transport,
)
from tokenguard.services.tokens.dto import TokenPairOut

PAIR = TokenPairOut(
    access_token="acc.tok.sig",
    refresh_token="opaque-refresh",
    expires_at=1_700_000_900,
    refresh_expires_at=1_700_604_800,
)


@pytest.fixture
def flask_app() -> Flask:
    return Flask(__name__)


def test_get_transport_selects_strategy():
    assert isinstance(get_transport("headers"), HeaderTransport)
    cookies = get_transport("cookies", secure=False, samesite="Strict")
    assert isinstance(cookies, CookieTransport)
    assert cookies.secure is False
    assert cookies.samesite == "Strict"
    with pytest.raises(ValueError):
        get_transport("carrier-pigeon")


# -------------------------------- Headers --------------------------------- #
def test_header_transport_reads_tokens(flask_app):
    transport = HeaderTransport()
    headers = {"Access-Token": " acc.tok.sig ", "Refresh-Token": "opaque-refresh"}
    with flask_app.test_request_context(headers=headers):
        assert transport.read_access_token(request) == "acc.tok.sig"
        assert transport.read_refresh_token(request) == "opaque-refresh"


def test_header_transport_accepts_bearer_scheme(flask_app):
    transport = HeaderTransport()
    with flask_app.test_request_context(headers={"Authorization": "Bearer acc.tok.sig"}):
        assert transport.read_access_token(request) == "acc.tok.sig"
    with flask_app.test_request_context(headers={"Authorization": "Basic dXNlcjpwYXNz"}):
        assert transport.read_access_token(request) is None


def test_header_transport_missing_tokens(flask_app):
    transport = HeaderTransport()
    with flask_app.test_request_context():
        assert transport.read_access_token(request) is None
        assert transport.read_refresh_token(request) is None


def test_header_transport_writes_pair():
    response = Response()
    HeaderTransport().write_pair(response, PAIR)

    assert response.headers["Access-Token"] == "acc.tok.sig"
    assert response.headers["Refresh-Token"] == "opaque-refresh"
    assert response.headers["Expire-At"] == "1700000900"
    assert "Set-Cookie" not in response.headers


# -------------------------------- Cookies --------------------------------- #
def test_cookie_transport_reads_tokens(flask_app):
    transport = CookieTransport()
    cookie = "access_token=acc.tok.sig; refresh_token=opaque-refresh"
    with flask_app.test_request_context(headers={"Cookie": cookie}):
        assert transport.read_access_token(request) == "acc.tok.sig"
        assert transport.read_refresh_token(request) == "opaque-refresh"


def test_cookie_transport_ignores_headers(flask_app):
    transport = CookieTransport()
    with flask_app.test_request_context(headers={"Access-Token": "acc.tok.sig"}):
        assert transport.read_access_token(request) is None


def test_cookie_transport_writes_http_only_cookies():
    response = Response()
    CookieTransport(secure=True, samesite="Lax").write_pair(response, PAIR)

    cookies = response.headers.getlist("Set-Cookie")
    assert len(cookies) == 2
    by_name = {c.split("=", 1)[0]: c for c in cookies}
    assert by_name["access_token"].startswith("access_token=acc.tok.sig")
    assert by_name["refresh_token"].startswith("refresh_token=opaque-refresh")
    for cookie in cookies:
        assert "HttpOnly" in cookie
        assert "Secure" in cookie
        assert "Path=/" in cookie
        assert "SameSite=Lax" in cookie
        # Both cookies expire with the refresh token.
        assert "21 Nov 2023 22:13:20 GMT" in cookie
    assert "Access-Token" not in response.headers


def test_cookie_transport_clear_expires_cookies():
    response = Response()
    CookieTransport().clear(response)

    cookies = response.headers.getlist("Set-Cookie")
    assert {c.split("=", 1)[0] for c in cookies} == {"access_token", "refresh_token"}
    assert all("Max-Age=0" in c for c in cookies)

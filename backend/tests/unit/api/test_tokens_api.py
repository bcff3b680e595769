# tests/unit/api/test_tokens_api.py
"""HTTP surface of the token lifecycle: refresh, verify and sign-out."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from flask import Response

from tokenguard.api.deps import set_token_pair
from tokenguard.core.container import get_state

TOKENS_URL = "/api/v1/tokens"
VERIFY_URL = "/api/v1/tokens/verify"


def _issue(principal, **kwargs):
    return get_state().service().issue_pair(principal, **kwargs)


def _auth(pair, *, refresh=True):
    headers = {"Access-Token": pair.access_token}
    if refresh:
        headers["Refresh-Token"] = pair.refresh_token
    return headers


def _assert_problem(resp, status=401):
    assert resp.status_code == status
    assert resp.mimetype == "application/problem+json"
    body = resp.get_json()
    assert body["status"] == status
    assert body["request_id"]
    return body


# -------------------------------- Verify ---------------------------------- #
def test_verify_returns_principal(client, app, principal):
    pair = _issue(principal)

    resp = client.get(VERIFY_URL, headers={"Access-Token": pair.access_token})

    assert resp.status_code == 200
    assert resp.get_json()["data"]["id"] == "42"


def test_verify_accepts_bearer_header(client, app, principal):
    pair = _issue(principal)

    resp = client.get(VERIFY_URL, headers={"Authorization": f"Bearer {pair.access_token}"})

    assert resp.status_code == 200


def test_verify_without_token_is_401(client):
    body = _assert_problem(client.get(VERIFY_URL))
    assert body["code"] == "unauthorized"


def test_verify_rejects_garbage_with_bearer_challenge(client):
    resp = client.get(VERIFY_URL, headers={"Access-Token": "garbage"})

    _assert_problem(resp)
    assert resp.headers["WWW-Authenticate"] == "Bearer"


def test_verify_rejects_expired_token(client, app, principal):
    pair = _issue(principal, expired_token=True)

    body = _assert_problem(client.get(VERIFY_URL, headers={"Access-Token": pair.access_token}))
    assert body["detail"] == "Access token expired"


def test_verify_rejects_token_older_than_watermark(client, app, principal):
    pair = _issue(principal)
    principal.token_issued_at = datetime.now(UTC) + timedelta(seconds=5)

    _assert_problem(client.get(VERIFY_URL, headers={"Access-Token": pair.access_token}))


# -------------------------------- Refresh --------------------------------- #
def test_refresh_rotates_pair_in_headers(client, app, principal):
    pair = _issue(principal)

    resp = client.post(TOKENS_URL, headers=_auth(pair))

    assert resp.status_code == 200
    body = resp.get_json()["data"]
    assert body["message"] == "Token refreshed successfully"
    assert body["expires_at"] == int(resp.headers["Expire-At"])
    assert resp.headers["Refresh-Token"] != pair.refresh_token

    new_access = resp.headers["Access-Token"]
    assert client.get(VERIFY_URL, headers={"Access-Token": new_access}).status_code == 200


def test_refresh_token_cannot_be_reused(client, app, principal):
    pair = _issue(principal)
    assert client.post(TOKENS_URL, headers=_auth(pair)).status_code == 200

    body = _assert_problem(client.post(TOKENS_URL, headers=_auth(pair)))
    assert body["detail"] == "Invalid refresh token"


def test_refresh_without_refresh_token_is_401(client, app, principal):
    pair = _issue(principal)

    body = _assert_problem(client.post(TOKENS_URL, headers=_auth(pair, refresh=False)))
    assert body["detail"] == "Refresh token is missing"


def test_refresh_without_access_token_is_401(client, app, principal):
    pair = _issue(principal)

    _assert_problem(client.post(TOKENS_URL, headers={"Refresh-Token": pair.refresh_token}))


def test_refresh_accepts_expired_access_token(client, app, principal):
    pair = _issue(principal, expired_token=True)

    resp = client.post(TOKENS_URL, headers=_auth(pair))

    assert resp.status_code == 200


def test_refresh_with_expired_refresh_token_is_401(client, app, principal):
    pair = _issue(principal, expired_refresh_token=True)

    _assert_problem(client.post(TOKENS_URL, headers=_auth(pair)))


def test_blacklist_after_refresh_revokes_old_access(make_app, principal):
    application = make_app(BLACKLIST_AFTER_REFRESH=True)
    client = application.test_client()
    with application.app_context():
        pair = _issue(principal)

    assert client.post(TOKENS_URL, headers=_auth(pair)).status_code == 200

    body = _assert_problem(client.get(VERIFY_URL, headers={"Access-Token": pair.access_token}))
    assert body["detail"] == "Access token has been revoked"


# ------------------------------- Sign-out --------------------------------- #
def test_sign_out_destroys_refresh_token(client, app, principal):
    pair = _issue(principal)

    resp = client.delete(TOKENS_URL, headers=_auth(pair))
    assert resp.status_code == 200
    assert resp.get_json()["data"]["message"] == "Signed out successfully"

    _assert_problem(client.post(TOKENS_URL, headers=_auth(pair)))


def test_sign_out_blacklists_access_when_enabled(make_app, principal):
    application = make_app(BLACKLIST_ENABLED=True)
    client = application.test_client()
    with application.app_context():
        pair = _issue(principal)

    assert client.delete(TOKENS_URL, headers=_auth(pair)).status_code == 200
    _assert_problem(client.get(VERIFY_URL, headers={"Access-Token": pair.access_token}))


# ------------------------------ Cookie mode ------------------------------- #
@pytest.fixture
def cookie_app(make_app):
    return make_app(TOKEN_TRANSPORT="cookies")


def test_cookie_mode_refresh_and_verify(cookie_app, principal):
    client = cookie_app.test_client()
    with cookie_app.app_context():
        pair = _issue(principal)
    client.set_cookie("access_token", pair.access_token)
    client.set_cookie("refresh_token", pair.refresh_token)

    assert client.get(VERIFY_URL).status_code == 200

    resp = client.post(TOKENS_URL)
    assert resp.status_code == 200
    assert "Access-Token" not in resp.headers
    set_cookies = resp.headers.getlist("Set-Cookie")
    assert {c.split("=", 1)[0] for c in set_cookies} == {"access_token", "refresh_token"}
    assert all("HttpOnly" in c for c in set_cookies)


def test_cookie_mode_ignores_header_tokens(cookie_app, principal):
    client = cookie_app.test_client()
    with cookie_app.app_context():
        pair = _issue(principal)

    _assert_problem(client.get(VERIFY_URL, headers={"Access-Token": pair.access_token}))


def test_cookie_mode_sign_out_clears_cookies(cookie_app, principal):
    client = cookie_app.test_client()
    with cookie_app.app_context():
        pair = _issue(principal)
    client.set_cookie("access_token", pair.access_token)
    client.set_cookie("refresh_token", pair.refresh_token)

    resp = client.delete(TOKENS_URL)

    assert resp.status_code == 200
    assert all("Max-Age=0" in c for c in resp.headers.getlist("Set-Cookie"))


# ------------------------------- Sign-in hook ----------------------------- #
def test_set_token_pair_attaches_tokens_to_response(app, principal):
    with app.test_request_context():
        response = Response()
        pair = set_token_pair(response, principal)

    assert response.headers["Access-Token"] == pair.access_token
    assert response.headers["Refresh-Token"] == pair.refresh_token


# -------------------------------- Health ---------------------------------- #
def test_health_reports_store_backend(client):
    resp = client.get("/api/v1/health")

    assert resp.status_code == 200
    assert resp.get_json()["store"] == {"backend": "memory", "status": "ok"}

# tests/unit/services/test_token_service.py
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from tokenguard.services._shared.clock import to_timestamp
from tokenguard.services._shared.errors import (
    EncodingError,
    Expired,
    InvalidRefreshToken,
    InvalidSignature,
    MissingIssuedAt,
    MissingRefreshToken,
    Revoked,
    StoreUnavailable,
    Unauthorized,
)
from tokenguard.services._shared.ports import PrincipalRecord
from tokenguard.services.tokens.dto import TokenPairOut


# -------------------------------- Issue ----------------------------------- #
def test_issue_pair_computes_expirations_from_one_clock_read(service, principal, clock):
    """Access/refresh expiry derive from the same captured ``now``."""
    pair = service.issue_pair(principal)
    now_ts = to_timestamp(clock.now())

    assert isinstance(pair, TokenPairOut)
    assert pair.expires_at == now_ts + 15 * 60
    assert pair.refresh_expires_at == now_ts + 7 * 24 * 3600

    claims = service.codec.decode(pair.access_token, now=clock.now())
    assert claims["sub"] == "42"
    assert claims["iat"] == now_ts
    assert claims["exp"] == pair.expires_at


def test_issue_pair_persists_refresh_token(service, principal):
    pair = service.issue_pair(principal)

    view = service.refresh_store.get(principal_id="42", token=pair.refresh_token)
    assert view is not None
    assert to_timestamp(view.expires_at) == pair.refresh_expires_at
    assert len(pair.refresh_token) >= 32


def test_issue_pair_merges_custom_claims_without_overriding_reserved(service, principals, clock):
    sneaky = principals.add(
        PrincipalRecord(id="7", claims={"role": "editor", "sub": "1", "exp": 1})
    )

    pair = service.issue_pair(sneaky)
    claims = service.codec.decode(pair.access_token, now=clock.now())

    assert claims["role"] == "editor"
    assert claims["sub"] == "7"
    assert claims["exp"] == pair.expires_at


def test_issue_pair_encoding_failure_persists_nothing(service, principals):
    broken = principals.add(PrincipalRecord(id="5", claims={"blob": object()}))

    with pytest.raises(EncodingError):
        service.issue_pair(broken)
    assert service.refresh_store.destroy_all_for_principal("5") == 0


def test_issue_pair_expired_variants_for_tests(service, principal, clock):
    pair = service.issue_pair(principal, expired_token=True, expired_refresh_token=True)

    with pytest.raises(Expired):
        service.validate_access(pair.access_token)
    with pytest.raises(InvalidRefreshToken):
        service.refresh(principal, pair.refresh_token)


# ------------------------------- Validate --------------------------------- #
def test_validate_access_returns_principal_at_issue_time(service, principal):
    pair = service.issue_pair(principal)
    assert service.validate_access(pair.access_token) is principal


def test_validate_access_expires_after_ttl(service, principal, clock):
    pair = service.issue_pair(principal)

    clock.advance(15 * 60 - 1)
    assert service.validate_access(pair.access_token) is principal

    clock.advance(1)
    with pytest.raises(Expired):
        service.validate_access(pair.access_token)


def test_validate_access_rejects_unknown_token(service):
    with pytest.raises(InvalidSignature):
        service.validate_access("not-a-token")


def test_validate_access_requires_issued_at(service, principal, clock):
    service.codec.forge("forged", {"sub": "42", "exp": to_timestamp(clock.now()) + 60})
    with pytest.raises(MissingIssuedAt):
        service.validate_access("forged")


def test_validate_access_rejects_unknown_principal(service, principals, clock):
    ghost = PrincipalRecord(id="ghost")
    pair = service.issue_pair(ghost)

    with pytest.raises(Unauthorized):
        service.validate_access(pair.access_token)


# ----------------------------- Invalidation ------------------------------- #
def test_invalidate_all_tokens_rejects_earlier_tokens(make_service, principal, clock):
    service = make_service(invalidate_on_credential_change=True)
    old = service.issue_pair(principal)

    clock.advance(1)
    watermark = service.invalidate_all_tokens(principal)
    assert watermark == clock.now()
    assert principal.token_issued_at == watermark

    with pytest.raises(Unauthorized):
        service.validate_access(old.access_token)

    clock.advance(1)
    fresh = service.issue_pair(principal)
    assert service.validate_access(fresh.access_token) is principal


def test_invalidate_all_tokens_is_noop_when_disabled(service, principal, clock):
    pair = service.issue_pair(principal)
    clock.advance(5)

    assert service.invalidate_all_tokens(principal) is None
    assert principal.token_issued_at is None
    assert service.validate_access(pair.access_token) is principal


def test_token_issued_in_watermark_second_is_accepted(make_service, principal, clock):
    """The watermark must be *strictly* greater than ``iat`` to reject."""
    service = make_service(invalidate_on_credential_change=True)
    service.invalidate_all_tokens(principal)
    pair = service.issue_pair(principal)

    assert service.validate_access(pair.access_token) is principal


# -------------------------------- Refresh --------------------------------- #
def test_refresh_rotates_and_blocks_reuse(service, principal):
    first = service.issue_pair(principal)

    second = service.refresh(principal, first.refresh_token, access_token=first.access_token)
    assert second.refresh_token != first.refresh_token
    assert service.refresh_store.get(principal_id="42", token=first.refresh_token) is None
    assert service.refresh_store.get(principal_id="42", token=second.refresh_token) is not None

    with pytest.raises(InvalidRefreshToken):
        service.refresh(principal, first.refresh_token)


def test_refresh_requires_a_token(service, principal):
    with pytest.raises(MissingRefreshToken):
        service.refresh(principal, None)
    with pytest.raises(MissingRefreshToken):
        service.refresh(principal, "")


def test_refresh_rejects_token_of_another_principal(service, principal, principals):
    other = principals.add(PrincipalRecord(id="99"))
    pair = service.issue_pair(principal)

    with pytest.raises(InvalidRefreshToken):
        service.refresh(other, pair.refresh_token)
    # The rightful owner can still use it.
    assert service.refresh(principal, pair.refresh_token)


def test_refresh_rejects_expired_refresh_token(service, principal, clock):
    pair = service.issue_pair(principal)
    clock.advance(timedelta(days=7).total_seconds())

    with pytest.raises(InvalidRefreshToken):
        service.refresh(principal, pair.refresh_token)


def test_refresh_encoding_failure_keeps_presented_token(service, principal):
    pair = service.issue_pair(principal)
    principal.claims["blob"] = object()

    with pytest.raises(EncodingError):
        service.refresh(principal, pair.refresh_token)
    assert service.refresh_store.get(principal_id="42", token=pair.refresh_token) is not None

    del principal.claims["blob"]
    assert service.refresh(principal, pair.refresh_token)


def test_concurrent_refresh_has_exactly_one_winner(service, principal):
    pair = service.issue_pair(principal)
    workers = 8
    barrier = threading.Barrier(workers)

    def attempt() -> str:
        barrier.wait()
        try:
            service.refresh(principal, pair.refresh_token)
        except InvalidRefreshToken:
            return "rejected"
        return "ok"

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(lambda _: attempt(), range(workers)))

    assert results.count("ok") == 1
    assert results.count("rejected") == workers - 1


def test_blacklist_after_refresh_revokes_presented_access_token(make_service, principal):
    service = make_service(blacklist_after_refresh=True)
    first = service.issue_pair(principal)

    second = service.refresh(principal, first.refresh_token, access_token=first.access_token)

    with pytest.raises(Revoked):
        service.validate_access(first.access_token)
    assert service.validate_access(second.access_token) is principal


def test_without_blacklist_after_refresh_old_access_token_stays_valid(service, principal):
    first = service.issue_pair(principal)
    service.refresh(principal, first.refresh_token, access_token=first.access_token)

    assert service.validate_access(first.access_token) is principal


def test_blacklist_failure_after_refresh_is_best_effort(make_service, principal, monkeypatch):
    service = make_service(blacklist_after_refresh=True)
    first = service.issue_pair(principal)

    def _boom(**_: object) -> None:
        raise StoreUnavailable()

    monkeypatch.setattr(service.blacklist, "add", _boom)
    second = service.refresh(principal, first.refresh_token, access_token=first.access_token)

    assert second.access_token != first.access_token
    # Accepted risk window: the consumed refresh token stays consumed.
    assert service.refresh_store.get(principal_id="42", token=first.refresh_token) is None


def test_authenticate_for_refresh_accepts_expired_access(service, principal, clock):
    pair = service.issue_pair(principal)
    clock.advance(16 * 60)

    assert service.authenticate_for_refresh(pair.access_token) is principal


def test_authenticate_for_refresh_can_require_live_access(make_service, principal, clock):
    service = make_service(refresh_accepts_expired_access=False)
    pair = service.issue_pair(principal)
    clock.advance(16 * 60)

    with pytest.raises(Expired):
        service.authenticate_for_refresh(pair.access_token)


def test_short_ttl_scenario(make_service, principal, clock):
    """1s access / 60s refresh: access expires, refresh still rotates."""
    service = make_service(
        access_expires=timedelta(seconds=1),
        refresh_expires=timedelta(seconds=60),
    )
    pair = service.issue_pair(principal)

    clock.advance(2)
    with pytest.raises(Expired):
        service.validate_access(pair.access_token)

    who = service.authenticate_for_refresh(pair.access_token)
    renewed = service.refresh(who, pair.refresh_token, access_token=pair.access_token)
    assert service.validate_access(renewed.access_token) is principal


# ------------------------------- Revocation ------------------------------- #
def test_revoke_blacklists_access_and_destroys_refresh(make_service, principal):
    service = make_service(blacklist_enabled=True)
    pair = service.issue_pair(principal)

    destroyed = service.revoke(
        principal, access_token=pair.access_token, refresh_token=pair.refresh_token
    )

    assert destroyed == 1
    with pytest.raises(Revoked):
        service.validate_access(pair.access_token)
    with pytest.raises(InvalidRefreshToken):
        service.refresh(principal, pair.refresh_token)


def test_revoke_without_refresh_token_destroys_all(service, principal):
    pairs = [service.issue_pair(principal) for _ in range(3)]

    assert service.revoke(principal) == 3
    for pair in pairs:
        assert service.refresh_store.get(principal_id="42", token=pair.refresh_token) is None


def test_blacklist_access_token_is_noop_when_blacklist_disabled(service, principal):
    pair = service.issue_pair(principal)

    assert service.blacklist_access_token(pair.access_token) is False
    assert service.validate_access(pair.access_token) is principal

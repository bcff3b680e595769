from __future__ import annotations

import itertools
import json
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Protocol

from tokenguard.services._shared.clock import SystemClock, to_timestamp
from tokenguard.services._shared.errors import (
    EncodingError,
    Expired,
    InvalidSignature,
    MissingIssuedAt,
)

SUBJECT_CLAIM = "sub"
ISSUED_AT_CLAIM = "iat"
EXPIRES_CLAIM = "exp"
RESERVED_CLAIMS = frozenset({SUBJECT_CLAIM, ISSUED_AT_CLAIM, EXPIRES_CLAIM})


class TokenCodec(Protocol):
    """Port for signing and verifying access tokens."""

    def encode(self, claims: Mapping[str, Any]) -> str:
        """
        Sign ``claims`` with the configured secret and algorithm.

        :raises EncodingError: If the claims are malformed.
        """

    def decode(
        self,
        token: str,
        *,
        verify_expiry: bool = True,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Verify ``token`` and return its claims.

        :param verify_expiry: Reject tokens whose ``exp`` is not after ``now``.
        :param now: Reference time for the expiry check (wall clock when omitted).
        :raises InvalidSignature: If the token does not verify.
        :raises MissingIssuedAt: If ``iat`` is absent.
        :raises Expired: If ``verify_expiry`` and the token has expired.
        """


def check_claims(claims: Mapping[str, Any]) -> dict[str, Any]:
    """Validate claims before signing and return a plain ``dict`` copy."""
    if not isinstance(claims, Mapping):
        raise EncodingError("Claims must be a mapping.")
    if claims.get(SUBJECT_CLAIM) in (None, ""):
        raise EncodingError("Claims must carry a subject.")
    try:
        json.dumps(dict(claims))
    except (TypeError, ValueError) as exc:
        raise EncodingError("Claims must be JSON-serializable.") from exc
    return dict(claims)


def check_decoded(
    claims: Mapping[str, Any],
    *,
    verify_expiry: bool,
    now: datetime | None,
) -> dict[str, Any]:
    """
    Apply the checks shared by every codec after the signature verified.

    ``iat`` is mandatory regardless of ``verify_expiry``.
    """
    if claims.get(ISSUED_AT_CLAIM) is None:
        raise MissingIssuedAt()
    if verify_expiry:
        exp = claims.get(EXPIRES_CLAIM)
        reference = to_timestamp(now or SystemClock().now())
        if exp is None or int(exp) <= reference:
            raise Expired()
    return dict(claims)


class StubTokenCodec(TokenCodec):
    """Deterministic, unsigned codec used in unit tests."""

    def __init__(self) -> None:
        self._seq = itertools.count(1)
        self._issued: dict[str, dict[str, Any]] = {}

    def encode(self, claims: Mapping[str, Any]) -> str:
        payload = check_claims(claims)
        token = f"at.{payload[SUBJECT_CLAIM]}.{next(self._seq)}"
        self._issued[token] = payload
        return token

    def decode(
        self,
        token: str,
        *,
        verify_expiry: bool = True,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        claims = self._issued.get(token)
        if claims is None:
            raise InvalidSignature()
        return check_decoded(claims, verify_expiry=verify_expiry, now=now)

    def forge(self, token: str, claims: Mapping[str, Any]) -> None:
        """Register arbitrary claims under ``token`` (e.g. without ``iat``)."""
        self._issued[token] = dict(claims)

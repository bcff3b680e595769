# tokenguard/infra/jwt/flask_jwt_token_codec.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, cast

import jwt as pyjwt
from flask_jwt_extended.exceptions import JWTExtendedException

from tokenguard.services._shared.errors import EncodingError, Expired, InvalidSignature
from tokenguard.services._shared.ports.token_codec import (
    SUBJECT_CLAIM,
    TokenCodec,
    check_claims,
    check_decoded,
)


@dataclass(slots=True)
class FlaskJWTTokenCodec(TokenCodec):
    """
    Adapter for Flask-JWT-Extended.

    Signing secret and algorithm come from ``JWT_SECRET_KEY`` / ``JWT_ALGORITHM``.
    ``iat`` and ``exp`` are passed as claim overrides so the caller's captured
    clock is authoritative; the expiry check runs in :func:`check_decoded`
    against that same clock.

    .. note::
       Requires an active Flask app context with proper JWT settings.
    """

    def encode(self, claims: Mapping[str, Any]) -> str:
        from flask_jwt_extended import create_access_token as _create_access

        payload = check_claims(claims)
        identity = str(payload.pop(SUBJECT_CLAIM))
        try:
            token = _create_access(
                identity=identity,
                additional_claims=payload,
                expires_delta=False,  # exp is supplied in the claims
                fresh=False,
            )
        except (TypeError, ValueError) as exc:
            raise EncodingError() from exc
        return cast(str, token)

    def decode(
        self,
        token: str,
        *,
        verify_expiry: bool = True,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        from flask_jwt_extended import decode_token

        try:
            # Expiry is enforced below against the caller's clock.
            claims = cast(dict[str, Any], decode_token(token, allow_expired=True))
        except pyjwt.ExpiredSignatureError as exc:  # pragma: no cover - allow_expired
            raise Expired() from exc
        except (pyjwt.InvalidTokenError, JWTExtendedException) as exc:
            # Covers bad signatures, malformed tokens, wrong algorithm and an iat
            # in the future; never echo token contents.
            raise InvalidSignature() from exc
        return check_decoded(claims, verify_expiry=verify_expiry, now=now)

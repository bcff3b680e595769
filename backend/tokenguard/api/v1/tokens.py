"""Token endpoints: refresh, sign-out and verification."""

from __future__ import annotations

from flask import Blueprint, g, request

from tokenguard.api.deps import (
    current_principal,
    get_token_service,
    get_token_transport,
    json_response,
    require_auth,
    timing,
)
from tokenguard.schemas import MessageSchema, PrincipalSchema, TokenRefreshedSchema
from tokenguard.services._shared.errors import InvalidSignature

bp = Blueprint("tokens", __name__)

refreshed_schema = TokenRefreshedSchema()
message_schema = MessageSchema()
principal_schema = PrincipalSchema()


@bp.post("")
@timing
def refresh():
    """
    Rotate the presented refresh token and return a new token pair.

    The access token identifies the principal (it may be expired when
    ``REFRESH_ACCEPTS_EXPIRED_ACCESS`` is on); the refresh token authorizes
    the rotation.
    """

    transport = get_token_transport()
    service = get_token_service()

    access_token = transport.read_access_token(request)
    if not access_token:
        raise InvalidSignature("Access token is missing")
    principal = service.authenticate_for_refresh(access_token)

    pair = service.refresh(
        principal,
        transport.read_refresh_token(request),
        access_token=access_token,
    )
    body = {
        "data": refreshed_schema.dump(
            {"message": "Token refreshed successfully", "expires_at": pair.expires_at}
        )
    }
    response = json_response(body)
    transport.write_pair(response, pair)
    return response


@bp.delete("")
@require_auth
@timing
def sign_out():
    """Revoke the presented tokens (or every refresh token) and clear cookies."""

    transport = get_token_transport()
    get_token_service().revoke(
        current_principal(),
        access_token=g.access_token,
        refresh_token=transport.read_refresh_token(request),
    )
    response = json_response({"data": message_schema.dump({"message": "Signed out successfully"})})
    transport.clear(response)
    return response


@bp.get("/verify")
@require_auth
@timing
def verify():
    """Return the principal resolved from the presented access token."""

    return json_response({"data": principal_schema.dump(current_principal())})

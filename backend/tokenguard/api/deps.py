"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar, cast

from flask import Response, current_app, g, jsonify, request

from tokenguard.api.transport import TokenTransport, get_transport
from tokenguard.core.container import get_state
from tokenguard.core.logger import ensure_request_id
from tokenguard.services._shared.base import ServiceContext
from tokenguard.services._shared.errors import InvalidSignature
from tokenguard.services._shared.ports import Principal
from tokenguard.services.tokens.dto import TokenPairOut
from tokenguard.services.tokens.service import TokenService

F = TypeVar("F", bound=Callable[..., Any])


def get_token_service() -> TokenService:
    """Return a request-scoped :class:`TokenService`."""

    return get_state().service(ServiceContext(request_id=ensure_request_id()))


def get_token_transport() -> TokenTransport:
    """Return the transport strategy configured for the current app."""

    state = get_state()
    return get_transport(
        state.transport_mode,
        secure=bool(current_app.config.get("COOKIE_SECURE", True)),
        samesite=current_app.config.get("COOKIE_SAMESITE", "Lax"),
    )


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token; exposes ``g.current_principal``."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        token = get_token_transport().read_access_token(request)
        if not token:
            raise InvalidSignature("Access token is missing")
        g.current_principal = get_token_service().validate_access(token)
        g.access_token = token
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_principal() -> Principal:
    """Return the principal resolved by :func:`require_auth`."""

    return cast(Principal, g.current_principal)


def set_token_pair(response: Response, principal: Principal) -> TokenPairOut:
    """
    Issue a token pair for an already authenticated principal and attach it.

    Intended for the application's own sign-in endpoint.
    """

    pair = get_token_service().issue_pair(principal)
    get_token_transport().write_pair(response, pair)
    return pair


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]

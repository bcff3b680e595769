"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask or HTTP directly. They serve as stable contracts between the token
codec, the stores and the lifecycle service.

The translation to HTTP responses (RFC 7807) is handled by
``tokenguard/core/errors.py``. Messages are coarse-grained by kind and never
carry token contents.
"""

from __future__ import annotations

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer translates them to :class:`~tokenguard.core.errors.APIError`.
    """

    default_message = "Service error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class TokenError(ServiceError):
    """Base class for every token validation failure (terminal for the request)."""

    default_message = "Invalid token"


# --------------------------------------------------------------------------- #
# Codec errors
# --------------------------------------------------------------------------- #


class EncodingError(TokenError):
    """Raised when claims cannot be encoded into a signed token."""

    default_message = "Unable to encode token claims"


class InvalidSignature(TokenError):
    """Raised when a token is malformed or its signature does not verify."""

    default_message = "Invalid access token"


class Expired(TokenError):
    """Raised when the ``exp`` claim is in the past."""

    default_message = "Access token expired"


class MissingIssuedAt(TokenError):
    """Raised when the mandatory ``iat`` claim is absent."""

    default_message = "Access token has no issued-at claim"


# --------------------------------------------------------------------------- #
# Lifecycle errors
# --------------------------------------------------------------------------- #


class Unauthorized(TokenError):
    """Raised when the principal is unknown or its watermark invalidates the token."""

    default_message = "Access token is no longer valid"


class Revoked(TokenError):
    """Raised when the access token has been blacklisted."""

    default_message = "Access token has been revoked"


class InvalidRefreshToken(TokenError):
    """Raised when a refresh token is unknown, expired or already consumed."""

    default_message = "Invalid refresh token"


class MissingRefreshToken(InvalidRefreshToken):
    """Raised when no refresh token was presented at all."""

    default_message = "Refresh token is missing"


# --------------------------------------------------------------------------- #
# Infrastructure
# --------------------------------------------------------------------------- #


class StoreUnavailable(ServiceError):
    """
    Raised when a durable store times out or cannot be reached.

    This is the only error a caller may reasonably retry; it is never an
    authorization decision.
    """

    default_message = "Token store temporarily unavailable"


__all__ = [
    "ServiceError",
    "TokenError",
    "EncodingError",
    "InvalidSignature",
    "Expired",
    "MissingIssuedAt",
    "Unauthorized",
    "Revoked",
    "InvalidRefreshToken",
    "MissingRefreshToken",
    "StoreUnavailable",
]

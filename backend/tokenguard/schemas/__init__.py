"""Convenience exports for application schemas."""

from __future__ import annotations

from .tokens import MessageSchema, PrincipalSchema, TokenRefreshedSchema

__all__ = [
    "MessageSchema",
    "PrincipalSchema",
    "TokenRefreshedSchema",
]

"""Service layer public API.

This package exposes the essential building blocks for the service layer so that
callers can import from :mod:`tokenguard.services` without knowing internal structure.

Re-exports
----------
- Base primitives (from ``tokenguard.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

- Token lifecycle service (from ``tokenguard.services.tokens``)
    * :class:`TokenService`
    * DTOs: :class:`TokenPairOut`, :class:`TokenConfig`
"""

from __future__ import annotations

# Base primitives (service base + request-scoped context)
from ._shared.base import BaseService, ServiceContext

# Token lifecycle service + DTOs
from .tokens.dto import TokenConfig, TokenPairOut
from .tokens.service import TokenService

__all__ = [
    # Base
    "BaseService",
    "ServiceContext",
    # Tokens
    "TokenService",
    "TokenPairOut",
    "TokenConfig",
]

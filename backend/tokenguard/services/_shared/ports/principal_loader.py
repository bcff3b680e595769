from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Principal(Protocol):
    """
    Authenticated identity the tokens are issued for.

    :ivar id: Unique identifier (rendered as a string inside tokens).
    :ivar token_issued_at: Watermark; access tokens issued before it are rejected.
    """

    id: Any
    token_issued_at: datetime | None


@runtime_checkable
class CustomClaimsPrincipal(Principal, Protocol):
    """Principal that contributes extra claims to the signed payload."""

    def jwt_token_payload(self) -> Mapping[str, Any]: ...


class PrincipalLoader(Protocol):
    """Port to the persistence of principals (accounts live outside this package)."""

    def load(self, principal_id: str) -> Principal | None: ...
    def set_token_issued_at(self, principal: Principal, issued_at: datetime) -> None: ...


@dataclass
class PrincipalRecord:
    """Plain principal used by the in-memory loader and tests."""

    id: str
    token_issued_at: datetime | None = None
    claims: dict[str, Any] = field(default_factory=dict)

    def jwt_token_payload(self) -> Mapping[str, Any]:
        return dict(self.claims)


class InMemoryPrincipalLoader(PrincipalLoader):
    """Dictionary-backed principal loader."""

    def __init__(self, principals: Mapping[str, Principal] | None = None) -> None:
        self._principals: dict[str, Principal] = dict(principals or {})

    def add(self, principal: Principal) -> Principal:
        self._principals[str(principal.id)] = principal
        return principal

    def load(self, principal_id: str) -> Principal | None:
        return self._principals.get(str(principal_id))

    def set_token_issued_at(self, principal: Principal, issued_at: datetime) -> None:
        principal.token_issued_at = issued_at
        self._principals[str(principal.id)] = principal

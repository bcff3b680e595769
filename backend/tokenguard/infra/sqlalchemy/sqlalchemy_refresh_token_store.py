"""
SQLAlchemy implementation of the refresh token store.

Consumption is a single conditional ``DELETE``; the database guarantees that
only one concurrent statement can remove a given row.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, scoped_session

from tokenguard.models import RefreshToken
from tokenguard.services._shared.clock import from_timestamp, to_timestamp
from tokenguard.services._shared.errors import StoreUnavailable
from tokenguard.services._shared.ports import RefreshTokenStore, RefreshTokenView


@contextmanager
def transaction(session: Session | scoped_session) -> Iterator[None]:
    """
    Commit on success, rollback on error.

    Connectivity failures and lock timeouts surface as ``StoreUnavailable``.
    """
    try:
        yield
        session.commit()
    except OperationalError as exc:
        session.rollback()
        raise StoreUnavailable() from exc
    except SQLAlchemyError:
        session.rollback()
        raise


@contextmanager
def reading(session: Session | scoped_session) -> Iterator[None]:
    """
    Read-only counterpart of :func:`transaction`.

    A failed read still leaves the session in a failed state, so it is rolled back.
    """
    try:
        yield
    except OperationalError as exc:
        session.rollback()
        raise StoreUnavailable() from exc


@dataclass(slots=True)
class SQLAlchemyRefreshTokenStore(RefreshTokenStore):
    """
    Refresh tokens in the ``refresh_tokens`` table.

    :param session: Session (or Flask-SQLAlchemy scoped session) to run on.
    """

    session: Session | scoped_session

    def create(
        self,
        *,
        principal_id: str,
        token: str,
        expires_at: datetime,
        now: datetime | None = None,
    ) -> None:
        with transaction(self.session):
            self.session.add(
                RefreshToken(principal_id=principal_id, token=token, expires_at=expires_at)
            )

    def consume(self, *, principal_id: str, token: str, now: datetime) -> bool:
        stmt = (
            delete(RefreshToken)
            .where(
                RefreshToken.principal_id == principal_id,
                RefreshToken.token == token,
                RefreshToken.expires_at > now,
            )
            .execution_options(synchronize_session=False)
        )
        with transaction(self.session):
            result = self.session.execute(stmt)
        return result.rowcount == 1

    def get(self, *, principal_id: str, token: str) -> RefreshTokenView | None:
        stmt = select(RefreshToken).where(
            RefreshToken.principal_id == principal_id,
            RefreshToken.token == token,
        )
        with reading(self.session):
            row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            return None
        return RefreshTokenView(
            principal_id=row.principal_id,
            token=row.token,
            # Normalise naive values returned by backends without tz support.
            expires_at=from_timestamp(to_timestamp(row.expires_at)),
        )

    def destroy_all_for_principal(self, principal_id: str) -> int:
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.principal_id == principal_id)
            .execution_options(synchronize_session=False)
        )
        with transaction(self.session):
            result = self.session.execute(stmt)
        return int(result.rowcount or 0)

    def purge_expired(self, now: datetime) -> int:
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        with transaction(self.session):
            result = self.session.execute(stmt)
        return int(result.rowcount or 0)

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, scoped_session

from tokenguard.infra.sqlalchemy.sqlalchemy_refresh_token_store import reading, transaction
from tokenguard.models import BlacklistedToken
from tokenguard.services._shared.ports.blacklist_store import BlacklistStore, token_digest


@dataclass(slots=True)
class SQLAlchemyBlacklistStore(BlacklistStore):
    """Blacklist rows in the ``blacklisted_tokens`` table."""

    session: Session | scoped_session

    def is_blacklisted(self, token: str) -> bool:
        stmt = select(exists().where(BlacklistedToken.token_digest == token_digest(token)))
        with reading(self.session):
            return bool(self.session.execute(stmt).scalar())

    def add(self, *, token: str, expires_at: datetime, now: datetime | None = None) -> None:
        try:
            with transaction(self.session):
                self.session.add(
                    BlacklistedToken(token_digest=token_digest(token), expires_at=expires_at)
                )
        except IntegrityError:
            # Already blacklisted; inserts are idempotent.
            return

    def purge_expired(self, now: datetime) -> int:
        stmt = (
            delete(BlacklistedToken)
            .where(BlacklistedToken.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        with transaction(self.session):
            result = self.session.execute(stmt)
        return int(result.rowcount or 0)

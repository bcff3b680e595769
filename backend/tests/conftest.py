"""Pytest fixtures for the token lifecycle service and its Flask surface.

Unit tests wire :class:`TokenService` to in-memory doubles and a manual clock;
API tests build the Flask app with :class:`TestingConfig` and an in-memory
principal loader.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from flask import Flask
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from tokenguard import create_app
from tokenguard.core.config import TestingConfig
from tokenguard.core.extensions import metadata
from tokenguard.services._shared.ports import (
    InMemoryBlacklistStore,
    InMemoryPrincipalLoader,
    InMemoryRefreshTokenStore,
    PrincipalRecord,
    StubTokenCodec,
)
from tokenguard.services.tokens.dto import TokenConfig
from tokenguard.services.tokens.service import TokenService


class ManualClock:
    """Clock whose time only moves when a test advances it."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


# ------------------------------ Unit wiring ------------------------------- #


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def principals() -> InMemoryPrincipalLoader:
    return InMemoryPrincipalLoader()


@pytest.fixture()
def principal(principals: InMemoryPrincipalLoader) -> PrincipalRecord:
    """A registered principal with a custom claim."""
    return principals.add(PrincipalRecord(id="42", claims={"role": "admin"}))  # type: ignore[return-value]


@pytest.fixture()
def make_service(
    clock: ManualClock, principals: InMemoryPrincipalLoader
) -> Callable[..., TokenService]:
    """
    Factory building a :class:`TokenService` wired to in-memory doubles.

    Keyword arguments override :class:`TokenConfig` fields.
    """

    def _factory(**cfg: Any) -> TokenService:
        defaults: dict[str, Any] = {
            "access_expires": timedelta(minutes=15),
            "refresh_expires": timedelta(days=7),
        }
        defaults.update(cfg)
        return TokenService(
            codec=StubTokenCodec(),
            refresh_store=InMemoryRefreshTokenStore(),
            blacklist_store=InMemoryBlacklistStore(),
            principals=principals,
            token_cfg=TokenConfig(**defaults),
            clock=clock,
        )

    return _factory


@pytest.fixture()
def service(make_service: Callable[..., TokenService]) -> TokenService:
    return make_service()


# ------------------------------ Flask wiring ------------------------------ #


@pytest.fixture()
def make_app(principals: InMemoryPrincipalLoader) -> Callable[..., Flask]:
    """Factory creating a testing app; keyword arguments override config keys."""

    def _factory(**overrides: Any) -> Flask:
        config = type("Config", (TestingConfig,), dict(overrides))
        app = create_app(config, principals=principals, instance_relative_config=False)
        app.logger.setLevel("WARNING")
        return app

    return _factory


@pytest.fixture()
def app(make_app: Callable[..., Flask]) -> Generator[Flask, None, None]:
    """Create a Flask application configured for testing, inside an app context."""
    application = make_app()
    with application.app_context():
        yield application


@pytest.fixture()
def client(app: Flask) -> Any:
    """Return a Flask test client."""
    return app.test_client()


@pytest.fixture()
def freeze_time() -> Callable[[str | datetime | None], Any]:
    """Factory returning :func:`freezegun.freeze_time`.

    Examples
    --------
    >>> def test_with_frozen_time(freeze_time):
    ...     with freeze_time("2024-01-01") as frozen:
    ...         frozen.tick(2)
    """

    from freezegun import freeze_time as _freeze_time

    def _factory(target: str | datetime | None = None) -> Any:
        return _freeze_time(target or datetime.now(UTC))

    return _factory


# --------------------------- SQLAlchemy wiring ---------------------------- #


@pytest.fixture()
def sa_session(tmp_path) -> Generator[scoped_session[Session], None, None]:
    """
    Thread-local sessions on a throwaway SQLite file with the token tables.

    A file database (not ``:memory:``) lets every thread open its own connection.
    """
    # Importing the models registers their tables on the shared metadata.
    from tokenguard import models as _models  # noqa: F401

    engine = create_engine(f"sqlite:///{tmp_path / 'tokens.db'}", future=True)
    metadata.create_all(engine)
    scoped = scoped_session(sessionmaker(bind=engine, future=True))
    try:
        yield scoped
    finally:
        scoped.remove()
        engine.dispose()

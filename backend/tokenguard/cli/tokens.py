"""Flask CLI commands for token store housekeeping."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from tokenguard.core.container import get_state

LOGGER = logging.getLogger(__name__)


@click.group("tokens")
def tokens_cli() -> None:
    """Token store maintenance commands."""


@tokens_cli.command("purge")
@with_appcontext
def purge() -> None:
    """Delete expired refresh tokens and blacklist entries."""
    state = get_state()
    now = state.clock.now()
    refresh_purged = state.refresh_store.purge_expired(now)
    blacklist_purged = state.blacklist_store.purge_expired(now)
    LOGGER.info("tokens.purged", extra={"purged": refresh_purged + blacklist_purged})
    click.echo(f"Purged refresh_tokens={refresh_purged} blacklisted_tokens={blacklist_purged}")


@tokens_cli.command("init-db")
@with_appcontext
def init_db() -> None:
    """Create the token tables (``sqlalchemy`` backend)."""
    from tokenguard.core.extensions import db

    db.create_all()
    click.echo("Token tables created.")

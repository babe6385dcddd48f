"""Flask CLI commands for refresh token maintenance."""

from __future__ import annotations

import click
from flask import current_app
from flask.cli import with_appcontext

from tracker_auth.infra.wiring import build_refresh_token_store
from tracker_auth.uow.sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork


@click.group("tokens")
def tokens_cli() -> None:
    """Refresh token maintenance."""


@tokens_cli.command("revoke-user")
@click.argument("email")
@with_appcontext
def revoke_user_command(email: str) -> None:
    """Revoke every refresh token of the user with ``EMAIL`` (forced sign-out)."""
    with SQLAlchemyReadOnlyUnitOfWork() as uow:
        user = uow.users.get_by_email(email)
        if user is None:
            raise click.ClickException(f"No user with email {email!r}")
        user_id = user.id
    revoked = build_refresh_token_store(current_app.config).revoke_all_for_user(user_id)
    click.echo(f"Revoked {revoked} refresh token(s) for {email}.")

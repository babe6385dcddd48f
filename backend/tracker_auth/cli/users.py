"""Flask CLI commands for account administration."""

from __future__ import annotations

import logging

import click
from flask import current_app
from flask.cli import with_appcontext

from tracker_auth.core.extensions import db
from tracker_auth.infra.wiring import build_auth_service, build_refresh_token_store
from tracker_auth.services.auth.dto import RegisterIn
from tracker_auth.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

LOGGER = logging.getLogger(__name__)


def _set_active(email: str, active: bool) -> int:
    """Flip ``is_active`` for ``email`` and return the user id."""
    with SQLAlchemyUnitOfWork() as uow:
        user = uow.users.get_by_email(email)
        if user is None:
            raise click.ClickException(f"No user with email {email!r}")
        uow.users.update(user, is_active=active)
        return user.id


@click.group("users")
def users_cli() -> None:
    """User account administration."""


@users_cli.command("create-db")
@with_appcontext
def create_db_command() -> None:
    """Create every table that does not exist yet."""
    db.create_all()
    click.echo("Database tables created.")


@users_cli.command("create")
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--first-name", required=True)
@click.option("--last-name", required=True)
@with_appcontext
def create_command(email: str, password: str, first_name: str, last_name: str) -> None:
    """Register a user from the command line."""
    service = build_auth_service(current_app.config)
    result = service.register(
        RegisterIn(email=email, password=password, first_name=first_name, last_name=last_name)
    )
    if not result.success or result.data is None:
        raise click.ClickException(result.message or "Registration failed")
    click.echo(f"Created user {result.data.id} <{result.data.email}>")


@users_cli.command("deactivate")
@click.argument("email")
@with_appcontext
def deactivate_command(email: str) -> None:
    """Deactivate a user and revoke all of the user's refresh tokens."""
    user_id = _set_active(email, False)
    revoked = build_refresh_token_store(current_app.config).revoke_all_for_user(user_id)
    LOGGER.info("user.deactivated user_id=%s revoked=%s", user_id, revoked)
    click.echo(f"Deactivated {email}; revoked {revoked} refresh token(s).")


@users_cli.command("activate")
@click.argument("email")
@with_appcontext
def activate_command(email: str) -> None:
    """Re-activate a previously deactivated user."""
    user_id = _set_active(email, True)
    LOGGER.info("user.activated user_id=%s", user_id)
    click.echo(f"Activated {email}.")

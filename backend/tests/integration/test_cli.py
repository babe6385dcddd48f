"""Tests for the ``users`` and ``tokens`` Flask CLI groups."""

from __future__ import annotations

import pytest
from tracker_auth.models.user import User
from tracker_auth.services.auth.dto import LoginIn, RefreshIn

from tests.factories.user import UserFactory


@pytest.fixture()
def runner(app):
    return app.test_cli_runner()


def test_create_user(runner, session, auth_service):
    result = runner.invoke(
        args=[
            "users", "create", "Carol@Example.com",
            "--password", "Secret123!", "--first-name", "Carol", "--last-name", "Danvers",
        ]
    )

    assert result.exit_code == 0, result.output
    assert "carol@example.com" in result.output
    assert auth_service.login(LoginIn(email="carol@example.com", password="Secret123!")).success


def test_create_duplicate_user_fails(runner, session):
    UserFactory(email="carol@example.com")

    result = runner.invoke(
        args=[
            "users", "create", "carol@example.com",
            "--password", "Secret123!", "--first-name", "C", "--last-name", "D",
        ]
    )

    assert result.exit_code != 0
    assert "already exists" in result.output


def test_deactivate_revokes_tokens_and_activate_restores_login(runner, session, auth_service):
    UserFactory(email="dave@example.com", password="Secret123!")
    pair = auth_service.login(LoginIn(email="dave@example.com", password="Secret123!")).data

    result = runner.invoke(args=["users", "deactivate", "dave@example.com"])

    assert result.exit_code == 0, result.output
    assert "revoked 1" in result.output
    assert session.query(User).filter_by(email="dave@example.com").one().is_active is False
    assert not auth_service.refresh(RefreshIn(refresh_token=pair.refresh_token)).success

    result = runner.invoke(args=["users", "activate", "dave@example.com"])

    assert result.exit_code == 0, result.output
    assert auth_service.login(LoginIn(email="dave@example.com", password="Secret123!")).success


def test_unknown_email(runner, session):
    result = runner.invoke(args=["users", "deactivate", "ghost@example.com"])

    assert result.exit_code != 0
    assert "No user with email" in result.output


def test_tokens_revoke_user(runner, session, auth_service):
    UserFactory(email="erin@example.com", password="Secret123!")
    for _ in range(2):
        auth_service.login(LoginIn(email="erin@example.com", password="Secret123!"))

    result = runner.invoke(args=["tokens", "revoke-user", "erin@example.com"])

    assert result.exit_code == 0, result.output
    assert "Revoked 2" in result.output

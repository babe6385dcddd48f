"""Compose the authentication service from the configured adapters."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta
from typing import Any

from tracker_auth.core.extensions import get_redis
from tracker_auth.infra.jwt.flask_jwt_token_signer import FlaskJWTTokenSigner
from tracker_auth.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore
from tracker_auth.infra.security.werkzeug_password_hasher import WerkzeugPasswordHasher
from tracker_auth.infra.sqlalchemy.sql_refresh_token_store import SQLRefreshTokenStore
from tracker_auth.services._shared.base import ServiceContext
from tracker_auth.services._shared.ports import RefreshTokenStore
from tracker_auth.services.auth.service import AuthenticationService


def build_refresh_token_store(config: Mapping[str, Any]) -> RefreshTokenStore:
    """Return the store selected by ``REFRESH_TOKEN_STORE`` (``sql`` or ``redis``)."""
    if str(config.get("REFRESH_TOKEN_STORE", "sql")).lower() == "redis":
        return RedisRefreshTokenStore(get_redis())
    return SQLRefreshTokenStore()


def build_auth_service(
    config: Mapping[str, Any], *, ctx: ServiceContext | None = None
) -> AuthenticationService:
    """
    Build an :class:`AuthenticationService` for the current app.

    :param config: Flask config of the running app.
    :param ctx: Request-scoped context forwarded to the service.
    """
    return AuthenticationService(
        hasher=WerkzeugPasswordHasher(method=str(config.get("PASSWORD_HASH_METHOD", "scrypt"))),
        signer=FlaskJWTTokenSigner(),
        store=build_refresh_token_store(config),
        refresh_token_lifetime=timedelta(days=int(config.get("JWT_REFRESH_TOKEN_DAYS", 7))),
        ctx=ctx,
    )

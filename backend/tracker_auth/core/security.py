"""Access-token settings and the bearer-token middleware responses.

Translates the project's token settings into the keys consumed by
``flask-jwt-extended`` and registers the callbacks that answer every
unauthenticated request to a protected endpoint with the same 401 body.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify

from tracker_auth.core.config import SIGNING_ALGORITHM, validate_auth_settings
from tracker_auth.core.errors import Unauthorized
from tracker_auth.core.extensions import jwt

log = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = "Authorization token is missing or invalid"


def _unauthorized() -> tuple[Response, int]:
    return jsonify(Unauthorized(UNAUTHORIZED_MESSAGE).to_body()), HTTPStatus.UNAUTHORIZED


def apply_jwt_settings(app: Flask) -> None:
    """Validate token settings and derive ``flask-jwt-extended`` configuration.

    :param app: Application whose config holds ``JWT_SECRET_KEY``,
        ``JWT_ISSUER``, ``JWT_AUDIENCE`` and the lifetime settings.
    :raises tracker_auth.core.config.ConfigurationError: When settings are
        missing or unsafe, so the process fails before serving traffic.
    """
    config = app.config
    validate_auth_settings(config)

    minutes = int(config.get("JWT_ACCESS_TOKEN_MINUTES", 15))
    config["JWT_ACCESS_TOKEN_MINUTES"] = minutes
    config["JWT_REFRESH_TOKEN_DAYS"] = int(config.get("JWT_REFRESH_TOKEN_DAYS", 7))

    config["JWT_ALGORITHM"] = SIGNING_ALGORITHM
    config["JWT_DECODE_ALGORITHMS"] = [SIGNING_ALGORITHM]
    config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(minutes=minutes)
    config["JWT_ENCODE_ISSUER"] = config["JWT_ISSUER"]
    config["JWT_DECODE_ISSUER"] = config["JWT_ISSUER"]
    config["JWT_ENCODE_AUDIENCE"] = config["JWT_AUDIENCE"]
    config["JWT_DECODE_AUDIENCE"] = config["JWT_AUDIENCE"]
    config["JWT_DECODE_LEEWAY"] = 0
    config["JWT_TOKEN_LOCATION"] = ["headers"]
    config["JWT_IDENTITY_CLAIM"] = "sub"


def init_app(app: Flask) -> None:
    """Apply token settings and register the 401 middleware callbacks."""

    apply_jwt_settings(app)

    @jwt.unauthorized_loader
    def _missing_token(reason: str):
        log.info("auth.missing_token reason=%s", reason)
        return _unauthorized()

    @jwt.invalid_token_loader
    def _invalid_token(reason: str):
        log.info("auth.invalid_token reason=%s", reason)
        return _unauthorized()

    @jwt.expired_token_loader
    def _expired_token(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]):
        log.info("auth.expired_token sub=%s", jwt_payload.get("sub"))
        return _unauthorized()

    @jwt.token_verification_failed_loader
    def _verification_failed(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]):
        return _unauthorized()


__all__ = ["UNAUTHORIZED_MESSAGE", "apply_jwt_settings", "init_app"]

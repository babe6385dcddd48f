# tracker_auth/infra/jwt/flask_jwt_token_signer.py
from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import cast

from flask import current_app
from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import ExpiredSignatureError, PyJWTError

from tracker_auth.services._shared.ports import (
    AccessClaims,
    InvalidToken,
    TokenSigner,
    TokenSubject,
    custom_claims_for,
)

ACCESS_TOKEN_TYPE = "access"


@dataclass(slots=True)
class FlaskJWTTokenSigner(TokenSigner):
    """
    Adapter for Flask-JWT-Extended.

    Signing key, algorithm, issuer, audience and leeway all come from the app
    config populated by :func:`tracker_auth.core.security.apply_jwt_settings`.

    .. note::
       Requires an active Flask app context.

    :param refresh_token_bytes: Entropy of opaque refresh tokens, in bytes.
    """

    refresh_token_bytes: int = 32

    @property
    def access_token_lifetime(self) -> timedelta:
        return timedelta(minutes=int(current_app.config["JWT_ACCESS_TOKEN_MINUTES"]))

    def issue_access_token(self, user: TokenSubject) -> str:
        # Flask-JWT-Extended adds jti, iat, nbf, exp, iss, aud, type and fresh.
        return cast(
            str,
            create_access_token(
                identity=str(user.id),
                additional_claims=custom_claims_for(user),
                expires_delta=self.access_token_lifetime,
            ),
        )

    def issue_refresh_token(self) -> str:
        return secrets.token_urlsafe(self.refresh_token_bytes)

    def validate_and_decode(
        self, token: str, *, validate_lifetime: bool = True
    ) -> AccessClaims | InvalidToken:
        if not isinstance(token, str) or not token.strip():
            return InvalidToken("empty token")
        try:
            payload = decode_token(token, allow_expired=not validate_lifetime)
        except ExpiredSignatureError:
            return InvalidToken("token expired", expired=True)
        except (PyJWTError, JWTExtendedException, ValueError) as exc:
            return InvalidToken(type(exc).__name__)

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            return InvalidToken("not an access token")
        try:
            return AccessClaims.from_payload(payload)
        except ValueError as exc:
            return InvalidToken(str(exc))

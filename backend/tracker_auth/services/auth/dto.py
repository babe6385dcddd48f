# tracker_auth/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from tracker_auth.models.base import as_utc

if TYPE_CHECKING:
    from tracker_auth.models.user import User

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for registration.

    :param email: User email (normalized by the service).
    :type email: str
    :param password: Raw password (hashed before storage).
    :type password: str
    :param first_name: Given name.
    :type first_name: str
    :param last_name: Family name.
    :type last_name: str
    """

    email: str
    password: str
    first_name: str
    last_name: str


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: User email.
    :type email: str
    :param password: Raw password (to be verified).
    :type password: str
    """

    email: str
    password: str


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Opaque refresh token string.
    :type refresh_token: str
    """

    refresh_token: str


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class UserOut:
    """Public projection of a user. The password hash is never part of it."""

    id: int
    email: str
    first_name: str | None
    last_name: str | None
    full_name: str
    is_active: bool
    created_at: datetime

    @classmethod
    def from_model(cls, user: User) -> UserOut:
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            full_name=user.full_name,
            is_active=bool(user.is_active),
            created_at=as_utc(user.created_at),
        )


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Encoded access JWT.
    :type access_token: str
    :param refresh_token: Opaque refresh token.
    :type refresh_token: str
    :param expires_in: Access token lifetime in seconds.
    :type expires_in: int
    :param token_type: Authorization scheme, always ``"Bearer"``.
    :type token_type: str
    """

    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"

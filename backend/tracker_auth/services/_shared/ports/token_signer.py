from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Final, Protocol

#: Bumped whenever the set or meaning of custom claims changes.
CLAIMS_VERSION: Final[int] = 1

# Claim names as they appear in the signed payload
SUBJECT_CLAIM: Final[str] = "sub"
USER_ID_CLAIM: Final[str] = "uid"
EMAIL_CLAIM: Final[str] = "email"
GIVEN_NAME_CLAIM: Final[str] = "given_name"
FAMILY_NAME_CLAIM: Final[str] = "family_name"
ACTIVE_CLAIM: Final[str] = "active"
VERSION_CLAIM: Final[str] = "ver"


class TokenSubject(Protocol):
    """Anything carrying the user fields embedded in an access token."""

    id: int
    email: str
    first_name: str | None
    last_name: str | None
    is_active: bool


def custom_claims_for(user: TokenSubject) -> dict[str, Any]:
    """Return the non-registered claims written for ``user``."""
    return {
        USER_ID_CLAIM: int(user.id),
        EMAIL_CLAIM: user.email,
        GIVEN_NAME_CLAIM: user.first_name,
        FAMILY_NAME_CLAIM: user.last_name,
        ACTIVE_CLAIM: bool(user.is_active),
        VERSION_CLAIM: CLAIMS_VERSION,
    }


def _timestamp(value: Any) -> datetime:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise TypeError(f"expected a numeric timestamp, got {type(value).__name__}")
    return datetime.fromtimestamp(value, tz=UTC)


@dataclass(frozen=True, slots=True)
class AccessClaims:
    """
    Decoded, validated access-token claims.

    :ivar subject: ``sub`` claim (the user id as a string).
    :ivar user_id: ``uid`` claim.
    :ivar email: ``email`` claim.
    :ivar given_name: ``given_name`` claim.
    :ivar family_name: ``family_name`` claim.
    :ivar is_active: ``active`` claim at issuance time.
    :ivar jti: Unique token id.
    :ivar issued_at: ``iat`` as an aware UTC datetime.
    :ivar expires_at: ``exp`` as an aware UTC datetime.
    :ivar issuer: ``iss`` claim.
    :ivar audience: ``aud`` claim.
    :ivar version: ``ver`` claim.
    """

    subject: str
    user_id: int
    email: str
    given_name: str | None
    family_name: str | None
    is_active: bool
    jti: str
    issued_at: datetime
    expires_at: datetime
    issuer: str
    audience: str
    version: int = CLAIMS_VERSION

    @property
    def lifetime(self) -> timedelta:
        return self.expires_at - self.issued_at

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> AccessClaims:
        """
        Build claims from a decoded JWT payload.

        :raises ValueError: When a required claim is missing or ill-typed.
        """
        try:
            audience = payload["aud"]
            if isinstance(audience, list | tuple):
                audience = audience[0]
            version = int(payload[VERSION_CLAIM])
            if version != CLAIMS_VERSION:
                raise ValueError(f"unsupported claims version {version}")
            return cls(
                subject=str(payload[SUBJECT_CLAIM]),
                user_id=int(payload[USER_ID_CLAIM]),
                email=str(payload[EMAIL_CLAIM]),
                given_name=payload.get(GIVEN_NAME_CLAIM),
                family_name=payload.get(FAMILY_NAME_CLAIM),
                is_active=bool(payload[ACTIVE_CLAIM]),
                jti=str(payload["jti"]),
                issued_at=_timestamp(payload["iat"]),
                expires_at=_timestamp(payload["exp"]),
                issuer=str(payload["iss"]),
                audience=str(audience),
                version=version,
            )
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise ValueError(f"Malformed access token claims: {exc}") from exc


@dataclass(frozen=True, slots=True)
class InvalidToken:
    """
    Typed validation failure.

    :ivar reason: Short diagnostic for logs; never shown to clients.
    :ivar expired: ``True`` when the only problem is the expiry.
    """

    reason: str
    expired: bool = False


class TokenSigner(Protocol):
    """Port for minting and validating access tokens and minting refresh tokens."""

    @property
    def access_token_lifetime(self) -> timedelta: ...

    def issue_access_token(self, user: TokenSubject) -> str: ...

    def issue_refresh_token(self) -> str: ...

    def validate_and_decode(
        self, token: str, *, validate_lifetime: bool = True
    ) -> AccessClaims | InvalidToken: ...

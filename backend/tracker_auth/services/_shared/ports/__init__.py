"""
tracker_auth.services._shared.ports
===================================

Collection of *ports* (hexagonal interfaces) that define the contracts for
credential hashing, access-token signing and refresh-token persistence.

Modules
-------
- :mod:`password_hasher`:
    Defines :class:`~.PasswordHasher`.

- :mod:`token_signer`:
    Defines :class:`~.TokenSigner`, the typed :class:`~.AccessClaims` record
    and the :class:`~.InvalidToken` failure value.

- :mod:`refresh_token_store`:
    Defines :class:`~.RefreshTokenStore`, :class:`~.RotationResult`,
    :class:`~.RefreshTokenRecord` and an in-memory implementation for tests.

Concrete adapters (werkzeug, Flask-JWT-Extended, SQLAlchemy, Redis) live
under ``tracker_auth.infra``.
"""

from __future__ import annotations

from .password_hasher import PasswordHasher
from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenCollisionError,
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
)
from .token_signer import (
    CLAIMS_VERSION,
    USER_ID_CLAIM,
    AccessClaims,
    InvalidToken,
    TokenSigner,
    TokenSubject,
    custom_claims_for,
)

__all__ = [
    "CLAIMS_VERSION",
    "USER_ID_CLAIM",
    "AccessClaims",
    "InMemoryRefreshTokenStore",
    "InvalidToken",
    "PasswordHasher",
    "RefreshTokenCollisionError",
    "RefreshTokenRecord",
    "RefreshTokenStore",
    "RotationResult",
    "TokenSigner",
    "TokenSubject",
    "custom_claims_for",
]

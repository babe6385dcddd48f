from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum, auto
from typing import Protocol

from tracker_auth.services._shared.errors import ConflictError


def _utc(dt: datetime) -> datetime:
    # naive -> label as UTC (no conversion)
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


class RotationResult(Enum):
    """Outcome of an atomic refresh rotation attempt."""

    OK = auto()
    NOT_FOUND = auto()
    EXPIRED = auto()
    REVOKED = auto()


class RefreshTokenCollisionError(ConflictError):
    """Raised by ``save`` when the token string is already stored."""

    def __init__(self, detail: str = "refresh token already exists") -> None:
        super().__init__(entity="RefreshToken", detail=detail)


@dataclass(frozen=True)
class RefreshTokenRecord:
    """
    Read-model for a stored refresh token.

    :ivar user_id: Owner user id.
    :ivar token: Opaque token string.
    :ivar expires_at: Absolute expiration (UTC).
    :ivar created_at: Issuance instant (UTC).
    :ivar revoked_at: Revocation instant, if revoked.
    :ivar id: Store-assigned identifier (``None`` until saved).
    """

    user_id: int
    token: str
    expires_at: datetime
    created_at: datetime
    revoked_at: datetime | None = None
    id: int | None = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        return _utc(now or datetime.now(UTC)) >= _utc(self.expires_at)

    def is_valid(self, now: datetime | None = None) -> bool:
        return not self.is_revoked and not self.is_expired(now)


class RefreshTokenStore(Protocol):
    """
    Persistent store of issued refresh tokens.

    Records are never deleted. ``revoke``, ``revoke_all_for_user`` and
    ``rotate`` MUST be atomic across processes: the decision "is this token
    still revocable" is made by the backend, not by an in-process check.
    """

    def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        """
        Insert ``record``.

        :returns: The stored record (with ``id`` assigned).
        :raises RefreshTokenCollisionError: If the token string already exists.
        """
        ...

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        """Exact-match lookup by opaque token string."""
        ...

    def revoke(self, token: str) -> bool:
        """
        Revoke ``token`` if not yet revoked. Idempotent.

        :returns: ``True`` if this call changed the record.
        """
        ...

    def revoke_all_for_user(self, user_id: int) -> int:
        """
        Revoke every non-revoked token of the user.

        :returns: Number of tokens affected.
        """
        ...

    def rotate(
        self, old_token: str, replacement: RefreshTokenRecord, *, now: datetime
    ) -> RotationResult:
        """
        Atomically revoke ``old_token`` and save ``replacement``.

        The revoke is conditional (token present, unrevoked and unexpired at
        ``now``). When the replacement cannot be stored the revoke is undone
        and the error propagates.

        :returns: ``RotationResult.OK`` on success, otherwise why the old token
            could not be consumed.
        """
        ...


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-memory refresh token store with atomic rotation behavior.

    .. note::
       Uses a threading lock to simulate atomicity in unit tests; it is not
       shared between processes.
    """

    def __init__(self) -> None:
        self._by_token: dict[str, RefreshTokenRecord] = {}
        self._seq = 0
        self._lock = threading.Lock()

    def _insert(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        if record.token in self._by_token:
            raise RefreshTokenCollisionError()
        self._seq += 1
        stored = replace(record, id=self._seq)
        self._by_token[record.token] = stored
        return stored

    def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        with self._lock:
            return self._insert(record)

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        return self._by_token.get(token)

    def revoke(self, token: str) -> bool:
        with self._lock:
            current = self._by_token.get(token)
            if current is None or current.is_revoked:
                return False
            self._by_token[token] = replace(current, revoked_at=datetime.now(UTC))
            return True

    def revoke_all_for_user(self, user_id: int) -> int:
        now = datetime.now(UTC)
        with self._lock:
            owned = [
                r for r in self._by_token.values() if r.user_id == user_id and not r.is_revoked
            ]
            for r in owned:
                self._by_token[r.token] = replace(r, revoked_at=now)
            return len(owned)

    def rotate(
        self, old_token: str, replacement: RefreshTokenRecord, *, now: datetime
    ) -> RotationResult:
        with self._lock:
            current = self._by_token.get(old_token)
            if current is None:
                return RotationResult.NOT_FOUND
            if current.is_revoked:
                return RotationResult.REVOKED
            if current.is_expired(now):
                return RotationResult.EXPIRED
            if replacement.token in self._by_token:
                raise RefreshTokenCollisionError()
            self._by_token[old_token] = replace(current, revoked_at=now)
            self._insert(replacement)
            return RotationResult.OK

    def all_records(self) -> list[RefreshTokenRecord]:
        """Snapshot of every stored record (test helper)."""
        return list(self._by_token.values())

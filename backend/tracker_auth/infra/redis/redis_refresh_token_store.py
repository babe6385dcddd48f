# comments in English; reST docstrings
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import redis  # type: ignore[import-untyped]

from tracker_auth.services._shared.ports import (
    RefreshTokenCollisionError,
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
)


def _s(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


def _iso(dt: datetime) -> str:
    # naive -> label as UTC (no conversion)
    return (dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)).isoformat()


@dataclass(slots=True)
class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed refresh token store with atomic rotation.

    Layout: one hash per token (``rt:<token>``), one set per user indexing
    the user's tokens (``rt:u:<user_id>``), and a counter (``rt:seq``) for
    record ids. Hashes carry no TTL: revoked and expired tokens stay as an
    audit trail, like rows in the relational store.

    Conditional writes use WATCH/MULTI/EXEC (optimistic locking), so the
    "still revocable" check and the write happen atomically even with many
    application processes.

    :param r: A Redis client (already connected).
    """

    r: redis.Redis

    # -------------------- helpers --------------------

    @staticmethod
    def _k(token: str) -> str:
        return f"rt:{token}"

    @staticmethod
    def _ku(user_id: int) -> str:
        return f"rt:u:{user_id}"

    SEQ_KEY = "rt:seq"

    @staticmethod
    def _mapping(record: RefreshTokenRecord, record_id: int) -> dict[str, str]:
        return {
            "id": str(record_id),
            "user_id": str(record.user_id),
            "expires_at": _iso(record.expires_at),
            "created_at": _iso(record.created_at),
            "revoked_at": _iso(record.revoked_at) if record.revoked_at else "",
        }

    @staticmethod
    def _from_hash(token: str, h: dict[Any, Any]) -> RefreshTokenRecord:
        fields = {_s(k): _s(v) for k, v in h.items()}
        revoked = fields.get("revoked_at", "")
        return RefreshTokenRecord(
            id=int(fields["id"]),
            user_id=int(fields["user_id"]),
            token=token,
            expires_at=datetime.fromisoformat(fields["expires_at"]),
            created_at=datetime.fromisoformat(fields["created_at"]),
            revoked_at=datetime.fromisoformat(revoked) if revoked else None,
        )

    # -------------------- API ------------------------

    def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        key = self._k(record.token)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    if p.exists(key):
                        p.unwatch()
                        raise RefreshTokenCollisionError()
                    record_id = int(self.r.incr(self.SEQ_KEY))
                    p.multi()
                    p.hset(key, mapping=self._mapping(record, record_id))
                    p.sadd(self._ku(record.user_id), record.token)
                    p.execute()
                return RefreshTokenRecord(
                    id=record_id,
                    user_id=record.user_id,
                    token=record.token,
                    expires_at=record.expires_at,
                    created_at=record.created_at,
                    revoked_at=record.revoked_at,
                )
            except redis.WatchError:
                # Concurrent write on the same key; re-check
                continue

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        h = self.r.hgetall(self._k(token))
        if not h:
            return None
        return self._from_hash(token, h)

    def revoke(self, token: str) -> bool:
        key = self._k(token)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    revoked_at = p.hget(key, "revoked_at")
                    if not p.exists(key) or _s(revoked_at):
                        p.unwatch()
                        return False
                    p.multi()
                    p.hset(key, "revoked_at", _iso(datetime.now(UTC)))
                    p.execute()
                return True
            except redis.WatchError:
                continue

    def revoke_all_for_user(self, user_id: int) -> int:
        key_u = self._ku(user_id)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key_u)
                    tokens = sorted(_s(m) for m in p.smembers(key_u))
                    if tokens:
                        p.watch(*(self._k(t) for t in tokens))
                    pending = [t for t in tokens if not _s(p.hget(self._k(t), "revoked_at"))]
                    if not pending:
                        p.unwatch()
                        return 0
                    now = _iso(datetime.now(UTC))
                    p.multi()
                    for t in pending:
                        p.hset(self._k(t), "revoked_at", now)
                    p.execute()
                return len(pending)
            except redis.WatchError:
                continue

    def rotate(
        self, old_token: str, replacement: RefreshTokenRecord, *, now: datetime
    ) -> RotationResult:
        """
        Atomically consume ``old_token`` and create ``replacement``.

        Uses WATCH/MULTI/EXEC: if another client touches either key between
        the checks and EXEC, the transaction is discarded and re-evaluated, so
        exactly one concurrent rotation of the same token can succeed. EXEC is
        all-or-nothing, so the revoke is never visible without the new token.
        """
        k_old = self._k(old_token)
        k_new = self._k(replacement.token)
        now_utc = now.replace(tzinfo=UTC) if now.tzinfo is None else now.astimezone(UTC)

        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(k_old, k_new)
                    h = p.hgetall(k_old)
                    if not h:
                        p.unwatch()
                        return RotationResult.NOT_FOUND
                    current = self._from_hash(old_token, h)
                    if current.is_revoked:
                        p.unwatch()
                        return RotationResult.REVOKED
                    if current.is_expired(now_utc):
                        p.unwatch()
                        return RotationResult.EXPIRED
                    if p.exists(k_new):
                        p.unwatch()
                        raise RefreshTokenCollisionError()
                    record_id = int(self.r.incr(self.SEQ_KEY))

                    p.multi()
                    p.hset(k_old, "revoked_at", _iso(now_utc))
                    p.hset(k_new, mapping=self._mapping(replacement, record_id))
                    p.sadd(self._ku(replacement.user_id), replacement.token)
                    p.execute()
                return RotationResult.OK
            except redis.WatchError:
                # Concurrent modification detected; retry loop
                continue

# tracker_auth/infra/sqlalchemy/sql_refresh_token_store.py
from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from tracker_auth.models.base import as_utc, utcnow
from tracker_auth.models.refresh_token import RefreshToken
from tracker_auth.services._shared.errors import violates
from tracker_auth.services._shared.ports import (
    RefreshTokenCollisionError,
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
)
from tracker_auth.uow.sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork

TOKEN_UNIQUE_CONSTRAINT = "uq_refresh_tokens_token"


def to_record(row: RefreshToken) -> RefreshTokenRecord:
    """Map an ORM row to the store's read model."""
    return RefreshTokenRecord(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        expires_at=as_utc(row.expires_at),
        created_at=as_utc(row.created_at),
        revoked_at=as_utc(row.revoked_at) if row.revoked_at else None,
    )


class SQLRefreshTokenStore(RefreshTokenStore):
    """
    Relational refresh token store.

    Each call runs in its own unit of work. Rotation relies on the guarded
    ``UPDATE`` in :meth:`RefreshTokenRepository.revoke_if_active`: of two
    concurrent rotations of the same token only one sees ``rowcount == 1``,
    whichever process it runs in.

    :param uow_factory: Read-write unit of work factory.
    :param ro_uow_factory: Read-only unit of work factory.
    """

    def __init__(
        self,
        *,
        uow_factory: Callable[[], SQLAlchemyUnitOfWork] = SQLAlchemyUnitOfWork,
        ro_uow_factory: Callable[[], SQLAlchemyReadOnlyUnitOfWork] = SQLAlchemyReadOnlyUnitOfWork,
    ) -> None:
        self._uow = uow_factory
        self._ro_uow = ro_uow_factory

    @staticmethod
    def _new_row(record: RefreshTokenRecord) -> RefreshToken:
        return RefreshToken(
            user_id=record.user_id,
            token=record.token,
            expires_at=as_utc(record.expires_at),
            created_at=as_utc(record.created_at),
        )

    @staticmethod
    def _translate(exc: IntegrityError) -> Exception:
        if violates(exc, TOKEN_UNIQUE_CONSTRAINT):
            return RefreshTokenCollisionError()
        return exc

    def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        try:
            with self._uow() as uow:
                row = uow.refresh_tokens.add(self._new_row(record))
                stored = to_record(row)
        except IntegrityError as exc:
            raise self._translate(exc) from exc
        return stored

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        with self._ro_uow() as uow:
            row = uow.refresh_tokens.get_by_token(token)
            return to_record(row) if row is not None else None

    def revoke(self, token: str) -> bool:
        with self._uow() as uow:
            return uow.refresh_tokens.revoke(token, now=utcnow())

    def revoke_all_for_user(self, user_id: int) -> int:
        with self._uow() as uow:
            return uow.refresh_tokens.revoke_all_for_user(user_id, now=utcnow())

    def rotate(
        self, old_token: str, replacement: RefreshTokenRecord, *, now: datetime
    ) -> RotationResult:
        try:
            with self._uow() as uow:
                repo = uow.refresh_tokens
                if not repo.revoke_if_active(old_token, now=as_utc(now)):
                    row = repo.get_by_token(old_token)
                    if row is None:
                        return RotationResult.NOT_FOUND
                    return RotationResult.REVOKED if row.is_revoked else RotationResult.EXPIRED
                # A failing insert rolls the revocation above back with it
                repo.add(self._new_row(replacement))
        except IntegrityError as exc:
            raise self._translate(exc) from exc
        return RotationResult.OK

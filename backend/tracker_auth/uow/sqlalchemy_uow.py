"""
SQLAlchemy implementation of UnitOfWork for Flask.
"""

from __future__ import annotations

from contextlib import suppress

from flask import current_app
from sqlalchemy import event, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import InvalidRequestError, SQLAlchemyError
from sqlalchemy.orm import Session, scoped_session

from tracker_auth.core.extensions import db
from tracker_auth.repositories import RefreshTokenRepository, UserRepository
from tracker_auth.uow.base import UnitOfWork


class SQLAlchemyRepositoryContainer:
    """Provide repository instances that share a SQLAlchemy session."""

    def __init__(self, *, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session=self.session)
        self.refresh_tokens = RefreshTokenRepository(session=self.session)


class SQLAlchemyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    SQLAlchemy-backed UoW using the Flask-scoped session.

    Everything staged inside the ``with`` block is committed together when the
    block exits normally and rolled back together when it raises.
    """

    def __init__(self) -> None:
        super().__init__(session=db.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # No-op: the session is lazily started on the first statement.
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        else:
            self.rollback()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read-only Unit of Work backed by the Flask-scoped SQLAlchemy session.

    - Starts (and later rolls back) its own transaction when the session is
      idle; otherwise attaches to the running one and leaves it alone.
    - On PostgreSQL/MySQL applies ``SET TRANSACTION READ ONLY`` and the
      requested isolation level to transactions it owns.
    - Installs write guards on the ORM flush and on the cursor, so any DML
      raises ``RuntimeError`` even where the database cannot enforce it.
    - Disallows ``commit()``.

    ORM objects loaded here are expired by the final rollback; map them to
    DTOs before leaving the ``with`` block.
    """

    _WRITE_PREFIXES = (
        "insert",
        "update",
        "delete",
        "merge",
        "alter",
        "drop",
        "truncate",
        "create",
        "replace",
        "grant",
        "revoke",
    )
    _READONLY_DIALECTS = ("postgresql", "mysql", "mariadb")

    def __init__(
        self,
        *,
        isolation_level: str | None = "READ COMMITTED",
        enforce_db_readonly: bool = True,
    ) -> None:
        super().__init__(session=db.session)
        self.isolation_level = isolation_level
        self.enforce_db_readonly = enforce_db_readonly
        self._owns_txn = False
        self._conn: Connection | None = None

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        try:
            self.session.begin()
            self._owns_txn = True
        except InvalidRequestError:
            # A transaction is already running on this session: attach to it
            self._owns_txn = False

        self._conn = self.session.connection()
        self._install_listeners()

        if self._owns_txn and self._conn.dialect.name in self._READONLY_DIALECTS:
            try:
                if self.isolation_level:
                    iso = self.isolation_level.upper().strip()
                    self.session.execute(text(f"SET TRANSACTION ISOLATION LEVEL {iso}"))
                if self.enforce_db_readonly:
                    self.session.execute(text("SET TRANSACTION READ ONLY"))
            except SQLAlchemyError as exc:
                current_app.logger.warning(
                    "SET TRANSACTION directives failed (%s). Falling back to guards-only.", exc
                )
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._owns_txn:
                self.session.rollback()
        finally:
            self._remove_listeners()
            self._owns_txn = False
            self._conn = None

    def commit(self) -> None:
        """
        :raises RuntimeError: always, to prevent accidental writes.
        """
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()

    # ----------------------------- Guards -----------------------------------

    def _before_flush(self, session, flush_context, instances) -> None:
        if session.new or session.dirty or session.deleted:
            raise RuntimeError(
                "Read-only UnitOfWork: ORM flush blocked (new/dirty/deleted objects present)."
            )

    def _before_cursor_execute(
        self, conn, cursor, statement, parameters, context, executemany
    ) -> None:
        first_token = statement.lstrip().split(None, 1)[0].lower() if statement else ""
        if first_token.startswith(self._WRITE_PREFIXES):
            raise RuntimeError(f"Read-only UnitOfWork: SQL statement blocked: {first_token.upper()}")

    def _install_listeners(self) -> None:
        # Keep the bound methods so removal targets the exact registered objects
        self._flush_guard = self._before_flush
        self._cursor_guard = self._before_cursor_execute
        # Listen on the concrete Session; a scoped_session target would be class-wide
        self._flush_target = (
            self.session() if isinstance(self.session, scoped_session) else self.session
        )
        event.listen(self._flush_target, "before_flush", self._flush_guard)
        event.listen(self._conn, "before_cursor_execute", self._cursor_guard)

    def _remove_listeners(self) -> None:
        with suppress(Exception):
            event.remove(self._flush_target, "before_flush", self._flush_guard)
        if self._conn is not None:
            with suppress(Exception):
                event.remove(self._conn, "before_cursor_execute", self._cursor_guard)

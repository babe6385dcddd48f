# tracker_auth/services/_shared/base.py
from __future__ import annotations

from dataclasses import dataclass

from tracker_auth.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)


@dataclass(slots=True)
class ServiceContext:
    """
    Request-scoped data forwarded into service log lines.

    :param request_id: Correlation id of the HTTP request (``None`` from the CLI).
    """

    request_id: str | None = None


class BaseService:
    """
    Base class for services that read users through units of work.

    Writes to ``users`` go through :meth:`rw_uow`; lookups go through
    :meth:`ro_uow`, which refuses to flush or run write statements. Refresh
    token state is owned by the store port, not by these scopes.
    """

    #: Isolation requested for read-only scopes on backends that support it
    read_isolation: str | None = "READ COMMITTED"

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        self.ctx = ctx or ServiceContext()

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """Return a unit of work that commits on a clean exit."""
        return SQLAlchemyUnitOfWork()

    def ro_uow(self) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Return a read-only unit of work.

        :returns: Scope that always rolls back and asks the database for a
            read-only transaction when the dialect allows it.
        :rtype: SQLAlchemyReadOnlyUnitOfWork
        """
        return SQLAlchemyReadOnlyUnitOfWork(
            isolation_level=self.read_isolation, enforce_db_readonly=True
        )

"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never depend on Flask or
HTTP. Adapters raise them and public service operations translate them into
an :class:`~tracker_auth.services._shared.result.AuthResult`.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    PostgreSQL reports the constraint name; SQLite reports the offending
    ``table.column``, so ``uq_<table>_<column>`` names are matched on that
    form as well.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    constraint_name : str
        The name of the database constraint to match (e.g., 'uq_users_email').

    Returns
    -------
    bool
        True if the IntegrityError matches the given constraint.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    name = constraint_name.lower()
    if name in message:
        return True
    if name.startswith("uq_") and "unique" in message:
        table_column = name[len("uq_") :]
        return any(
            f"{table_column[:i]}.{table_column[i + 1:]}" in message
            for i, ch in enumerate(table_column)
            if ch == "_"
        )
    return False


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from repositories, adapters or domain logic.
    """

    pass


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "RefreshToken").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"

"""Generic repository base for SQLAlchemy 2.x.

Shared persistence-only helpers for the user and refresh-token repositories:
primary-key lookups, whitelisted equality filters and whitelisted updates.
Transactions belong to the units of work in :mod:`tracker_auth.uow`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar, cast

from sqlalchemy import Select, and_, func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from tracker_auth.core.extensions import db

E = TypeVar("E")  # SQLAlchemy mapped entity type


class BaseRepository(Generic[E]):
    """Generic, persistence-only repository for a single aggregate.

    Subclasses MUST define:

    * ``model``: the SQLAlchemy mapped class.

    Subclasses MAY override:

    * ``_filterable_fields`` to whitelist equality filters.
    * ``_updatable_fields`` to whitelist keys allowed for updates.

    This class NEVER opens, commits or rolls back transactions.
    """

    #: SQLAlchemy mapped model (must be set by subclasses)
    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        """Initialise the repository with an optional SQLAlchemy session.

        When no explicit session is provided the repository falls back to the
        Flask-scoped session exposed by ``tracker_auth.core.extensions``.

        :param session: Session shared across the Unit of Work scope.
        :type session: :class:`sqlalchemy.orm.Session` | None
        """
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        """Return the injected session, or the Flask-scoped one."""
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    # ------------------------------ Extensibility ----------------------------

    def _pk_attr(self) -> InstrumentedAttribute[Any] | None:
        """Return the model's primary-key attribute (``model.id``) if available."""
        return getattr(self.model, "id", None)

    def _filterable_fields(self) -> Mapping[str, InstrumentedAttribute[Any]]:
        """Whitelist mapping of public filter keys to model attributes.

        Unknown keys passed to :meth:`find_one` / :meth:`exists` are ignored.
        """
        return {}

    def _updatable_fields(self) -> set[str]:
        """Whitelist of public keys that can be assigned on update."""
        return set()

    # ------------------------------ Internals --------------------------------

    def _apply_equality_filters(
        self,
        stmt: Select[Any],
        filters: Mapping[str, Any] | None,
    ) -> Select[Any]:
        """Apply whitelisted equality filters to ``stmt``.

        :param stmt: Input select to filter.
        :type stmt: :class:`sqlalchemy.sql.Select`
        :param filters: Field=value mapping (equality only).
        :type filters: Mapping[str, Any] | None
        :returns: Filtered select.
        :rtype: :class:`sqlalchemy.sql.Select`
        """
        if not filters:
            return stmt
        allowed = self._filterable_fields()
        clauses: list[Any] = []
        for k, v in filters.items():
            col = allowed.get(k)
            if isinstance(col, InstrumentedAttribute):
                clauses.append(col == v)
        return stmt.where(and_(*clauses)) if clauses else stmt

    def _sanitize_update_fields(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Return only whitelisted update keys.

        :raises ValueError: If unknown keys are present, or the repository
            exposes no updatable fields at all.
        """
        allowed = self._updatable_fields()
        if not allowed:
            # Fail-closed to avoid accidental mass-assignment
            if fields:
                raise ValueError("No updatable fields configured for this repository.")
            return {}
        unknown = [k for k in fields if k not in allowed]
        if unknown:
            raise ValueError(f"Unknown or non-updatable fields: {unknown}")
        return dict(fields)

    # --------------------------------- CRUD ----------------------------------

    def add(self, instance: E) -> E:
        """Stage a new entity and flush to materialize the PK.

        Constraint violations surface here as ``IntegrityError``.
        """
        self.session.add(instance)
        self.flush()
        return instance

    def get(self, entity_id: Any) -> E | None:
        """Retrieve a single entity by primary key.

        :param entity_id: Primary-key value.
        :type entity_id: Any
        :returns: Entity or ``None``.
        :rtype: E | None
        :raises RuntimeError: If no PK attribute can be detected.
        """
        pk_attr = self._pk_attr()
        if pk_attr is None:
            raise RuntimeError("BaseRepository.get requires a detectable PK attribute.")
        result = self.session.execute(select(self.model).where(pk_attr == entity_id))
        return cast(E | None, result.scalars().first())

    def find_one(self, **filters: Any) -> E | None:
        """Find a single entity by whitelisted equality filters."""
        stmt: Select[Any] = self._apply_equality_filters(select(self.model), filters)
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def exists(self, **filters: Any) -> bool:
        """Return ``True`` when at least one row matches the filters."""
        pk_attr = self._pk_attr()
        if pk_attr is None:
            raise RuntimeError("BaseRepository.exists requires a detectable PK attribute.")
        stmt: Select[Any] = self._apply_equality_filters(select(pk_attr), filters)
        return self.session.execute(stmt.limit(1)).first() is not None

    def count(self) -> int:
        """Return the total number of rows for the aggregate."""
        stmt = select(func.count()).select_from(self.model)
        return int(self.session.execute(stmt).scalar_one())

    def flush(self) -> None:
        """Flush pending changes to the database without committing."""
        self.session.flush()

    # ----------------------------- Safe updates -------------------------------

    def update(self, instance: E, **fields: Any) -> E:
        """Assign whitelisted keys to ``instance`` and flush.

        The assignment uses ``setattr`` to trigger SQLAlchemy ``@validates``
        decorators defined on the mapped class.

        :raises ValueError: On keys outside ``_updatable_fields``.
        """
        for k, v in self._sanitize_update_fields(fields).items():
            setattr(instance, k, v)
        self.flush()
        return instance

"""User repository for persistence-level user lookups."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from tracker_auth.models.user import User, normalize_email
from tracker_auth.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Credential checks live in the authentication service, which owns the
    password hasher; this repository only finds and stores rows.
    """

    model = User

    def _filterable_fields(self):
        return {"email": User.email, "is_active": User.is_active}

    def _updatable_fields(self):
        """Publicly allowed updatable fields (never the password hash)."""
        return {"first_name", "last_name", "is_active"}

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.email == normalize_email(email))
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_email(self, email: str) -> bool:
        """Return ``True`` when a user with the provided email exists.

        :param email: Email address to normalise and search.
        :type email: str
        :returns: ``True`` if a row is found; otherwise ``False``.
        :rtype: bool
        """
        stmt = select(User.id).where(User.email == normalize_email(email))
        return bool(self.session.execute(stmt).first())

"""User model definition for the authentication service."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String, UniqueConstraint, true
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from tracker_auth.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin

if TYPE_CHECKING:
    from .refresh_token import RefreshToken


def normalize_email(value: str) -> str:
    """Return the canonical (trimmed, lower-cased) form of an email address."""
    return value.strip().lower()


class User(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Authentication identity.

    Fields
    ------
    email : str
        Login email. Stored normalized (lowercase, trimmed), which makes the
        unique constraint case-insensitive.
    password_hash : str
        Opaque output of the password hasher. Never serialized.
    first_name, last_name : str | None
        Optional display names.
    is_active : bool
        Soft-deactivation flag; users are never hard-deleted.
    created_at, updated_at : datetime
        Audit timestamps (from mixin).
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(254), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )

    refresh_tokens: Mapped[list[RefreshToken]] = relationship(
        back_populates="user", lazy="noload", passive_deletes=True
    )

    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    @property
    def full_name(self) -> str:
        """Display name built from first and last name."""
        return " ".join(part for part in (self.first_name, self.last_name) if part).strip()

    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Normalize and validate email.

        :param key: Field name (``email``).
        :type key: str
        :param value: Email to normalize.
        :type value: str
        :returns: Normalized email (lowercased/trimmed).
        :rtype: str
        :raises ValueError: If email is missing or malformed.
        """
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        v = normalize_email(value)
        # Minimal sanity check; full validation happens at API layer.
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Email format looks invalid.")
        return v

    @validates("password_hash")
    def _require_hash(self, key: str, value: str) -> str:
        if not isinstance(value, str) or not value:
            raise ValueError("Password hash is required.")
        return value

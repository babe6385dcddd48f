"""Refresh token model: one row per issued opaque refresh token."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracker_auth.core.extensions import db

from .base import PKMixin, ReprMixin, as_utc, utcnow

if TYPE_CHECKING:
    from .user import User


class RefreshToken(PKMixin, ReprMixin, db.Model):
    """
    Persisted refresh token.

    Rows are never deleted: revocation only stamps ``revoked_at`` so the
    table doubles as an audit trail of every issued token.

    Fields
    ------
    user_id : int
        Owning user.
    token : str
        Opaque, URL-safe random string (unique).
    expires_at : datetime
        Absolute expiry (UTC).
    revoked_at : datetime | None
        Revocation instant; once set it is never cleared.
    created_at : datetime
        Issuance instant (UTC).
    """

    __tablename__ = "refresh_tokens"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token: Mapped[str] = mapped_column(String(128), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="refresh_tokens")

    __table_args__ = (
        UniqueConstraint("token", name="uq_refresh_tokens_token"),
        Index("ix_refresh_tokens_user_id_expires_at", "user_id", "expires_at"),
    )

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        """``True`` once ``now`` reaches ``expires_at``."""
        return as_utc(now or utcnow()) >= as_utc(self.expires_at)

    def is_valid(self, now: datetime | None = None) -> bool:
        """Neither expired nor revoked."""
        return not self.is_revoked and not self.is_expired(now)

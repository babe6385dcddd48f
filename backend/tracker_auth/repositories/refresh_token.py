"""Refresh token repository: lookups and conditional revocation."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import cast

from sqlalchemy import select, update

from tracker_auth.models.refresh_token import RefreshToken
from tracker_auth.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only repository for :class:`RefreshToken`.

    Revocations are single ``UPDATE`` statements guarded by
    ``revoked_at IS NULL`` so the database, not the process, decides which of
    two concurrent callers wins. Reads use ``populate_existing`` because those
    bulk updates bypass the session's identity map.
    """

    model = RefreshToken

    def _filterable_fields(self):
        return {"token": RefreshToken.token, "user_id": RefreshToken.user_id}

    def get_by_token(self, token: str) -> RefreshToken | None:
        """Return the row whose opaque string equals ``token`` exactly."""
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.token == token)
            .execution_options(populate_existing=True)
        )
        return cast(RefreshToken | None, self.session.execute(stmt).scalars().first())

    def list_for_user(self, user_id: int) -> Sequence[RefreshToken]:
        """Return every token row owned by ``user_id``, oldest first."""
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .order_by(RefreshToken.created_at.asc(), RefreshToken.id.asc())
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalars().all()

    def revoke_if_active(self, token: str, *, now: datetime) -> bool:
        """Revoke ``token`` only if it is unrevoked and unexpired at ``now``.

        :returns: ``True`` when this call performed the revocation. ``False``
            means the token is unknown, expired, or already revoked (possibly
            by a concurrent rotation).
        """
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.token == token,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def revoke(self, token: str, *, now: datetime) -> bool:
        """Stamp ``revoked_at`` unless already set. Idempotent.

        :returns: ``True`` if the row changed state.
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.token == token, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def revoke_all_for_user(self, user_id: int, *, now: datetime) -> int:
        """Revoke every non-revoked token of ``user_id``; return the count."""
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return int(self.session.execute(stmt).rowcount or 0)

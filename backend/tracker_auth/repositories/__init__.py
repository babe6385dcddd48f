"""Repository package exposing persistence-layer access for all domain models."""

from __future__ import annotations

from tracker_auth.repositories.base import BaseRepository
from tracker_auth.repositories.refresh_token import RefreshTokenRepository
from tracker_auth.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "RefreshTokenRepository",
    "UserRepository",
]

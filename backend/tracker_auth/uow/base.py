"""
Abstract Unit of Work contract shared by the writer and read-only scopes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tracker_auth.repositories import RefreshTokenRepository, UserRepository


class UnitOfWork(ABC):
    """
    Transactional boundary around the user and refresh-token repositories.

    A writer scope commits on a clean exit and rolls back when the block
    raises; a read-only scope always rolls back.

    :ivar users: Repository over :class:`tracker_auth.models.User`.
    :ivar refresh_tokens: Repository over
        :class:`tracker_auth.models.RefreshToken`.
    """

    users: UserRepository
    refresh_tokens: RefreshTokenRepository

    @abstractmethod
    def __enter__(self) -> UnitOfWork: ...
    @abstractmethod
    def __exit__(self, exc_type, exc, tb) -> None: ...
    @abstractmethod
    def commit(self) -> None: ...
    @abstractmethod
    def rollback(self) -> None: ...

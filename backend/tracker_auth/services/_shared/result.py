"""Typed outcome returned by authentication use cases."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class FailureKind(str, Enum):
    """Why an operation failed; drives the HTTP status picked by the gateway."""

    DOMAIN = "domain"
    INFRASTRUCTURE = "infrastructure"


@dataclass(frozen=True)
class AuthResult(Generic[T]):
    """
    Success flag plus either a payload or a user-facing message.

    :ivar success: ``True`` when the operation completed.
    :ivar data: Payload on success, ``None`` otherwise.
    :ivar message: Human-readable message (always set on failure).
    :ivar errors: Additional messages, if any.
    :ivar kind: Failure category; ``None`` on success.
    """

    success: bool
    data: T | None = None
    message: str | None = None
    errors: tuple[str, ...] = field(default_factory=tuple)
    kind: FailureKind | None = None

    @classmethod
    def ok(cls, data: T, message: str | None = None) -> AuthResult[T]:
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(
        cls,
        message: str,
        *,
        kind: FailureKind = FailureKind.DOMAIN,
        errors: tuple[str, ...] = (),
    ) -> AuthResult[T]:
        return cls(success=False, message=message, errors=errors or (message,), kind=kind)

    @property
    def is_infrastructure_failure(self) -> bool:
        return not self.success and self.kind is FailureKind.INFRASTRUCTURE

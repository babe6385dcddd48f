"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import LoginSchema, RefreshSchema, RegisterSchema, TokenPairSchema
from .user import UserSchema

__all__ = [
    "LoginSchema",
    "RefreshSchema",
    "RegisterSchema",
    "TokenPairSchema",
    "UserSchema",
]

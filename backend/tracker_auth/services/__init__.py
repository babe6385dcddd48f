"""Service layer public API.

This package exposes the essential building blocks for the service layer so
that callers can import from :mod:`tracker_auth.services` without knowing
internal structure.

Re-exports
----------
- Base primitives (from ``tracker_auth.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

- Outcome type (from ``tracker_auth.services._shared.result``)
    * :class:`AuthResult`
    * :class:`FailureKind`

- Authentication service (from ``tracker_auth.services.auth``)
    * :class:`AuthenticationService`
    * DTOs: :class:`RegisterIn`, :class:`LoginIn`, :class:`RefreshIn`,
      :class:`UserOut`, :class:`TokenPairOut`
"""

from __future__ import annotations

from ._shared.base import BaseService, ServiceContext
from ._shared.result import AuthResult, FailureKind
from .auth.dto import LoginIn, RefreshIn, RegisterIn, TokenPairOut, UserOut
from .auth.service import AuthenticationService

__all__ = [
    # Base
    "BaseService",
    "ServiceContext",
    "AuthResult",
    "FailureKind",
    # Authentication
    "AuthenticationService",
    "RegisterIn",
    "LoginIn",
    "RefreshIn",
    "UserOut",
    "TokenPairOut",
]

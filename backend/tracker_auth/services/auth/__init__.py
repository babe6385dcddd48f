"""Authentication use cases."""

from .dto import LoginIn, RefreshIn, RegisterIn, TokenPairOut, UserOut
from .service import AuthenticationService

__all__ = [
    "AuthenticationService",
    "LoginIn",
    "RefreshIn",
    "RegisterIn",
    "TokenPairOut",
    "UserOut",
]

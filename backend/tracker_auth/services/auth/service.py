# tracker_auth/services/auth/service.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import timedelta
from typing import Any

from sqlalchemy.exc import IntegrityError

from tracker_auth.models.base import utcnow
from tracker_auth.models.user import User, normalize_email
from tracker_auth.services._shared.base import BaseService, ServiceContext
from tracker_auth.services._shared.errors import violates
from tracker_auth.services._shared.ports import (
    USER_ID_CLAIM,
    PasswordHasher,
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
    TokenSigner,
)
from tracker_auth.services._shared.result import AuthResult, FailureKind
from tracker_auth.services.auth.dto import (
    LoginIn,
    RefreshIn,
    RegisterIn,
    TokenPairOut,
    UserOut,
)

log = logging.getLogger(__name__)

# User-facing messages
DUPLICATE_EMAIL = "User with this email already exists"
REGISTRATION_FAILED = "Registration failed"
INVALID_CREDENTIALS = "Invalid email or password"
ACCOUNT_DEACTIVATED = "Account is deactivated"
LOGIN_FAILED = "Login failed"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
USER_NOT_FOUND_OR_INACTIVE = "User not found or inactive"
TOKEN_REFRESH_FAILED = "Token refresh failed"
LOGOUT_FAILED = "Logout failed"

USER_EMAIL_CONSTRAINT = "uq_users_email"

# Dummy hashes per hasher configuration, for logins with an unknown email
_TIMING_HASHES: dict[str, str] = {}


class AuthenticationService(BaseService):
    """
    Authentication lifecycle service (register / login / refresh / logout).

    Access tokens come from a :class:`TokenSigner`; refresh tokens are opaque
    strings whose state lives in a :class:`RefreshTokenStore`. Every refresh
    consumes the presented token and stores its replacement in one atomic
    step (rotation), so a refresh token works exactly once.

    Every public method returns an :class:`AuthResult`. Domain failures carry
    a user-facing message; unexpected errors are logged with their traceback
    and reported as infrastructure failures with a generic message.

    .. note::
       Logout revokes refresh tokens only. Access tokens already issued stay
       valid until they expire, which the short access lifetime bounds.
    """

    def __init__(
        self,
        *,
        hasher: PasswordHasher,
        signer: TokenSigner,
        store: RefreshTokenStore,
        refresh_token_lifetime: timedelta = timedelta(days=7),
        ctx: ServiceContext | None = None,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param hasher: Credential hasher.
        :param signer: Access token signer and refresh token generator.
        :param store: Refresh token persistence (atomic rotation).
        :param refresh_token_lifetime: Validity window of new refresh tokens.
        :param ctx: Optional request-scoped context (used in log lines).
        """
        super().__init__(ctx=ctx)
        self.hasher = hasher
        self.signer = signer
        self.store = store
        self.refresh_token_lifetime = refresh_token_lifetime

    # ------------------------------------------------------------------ #
    # Register
    # ------------------------------------------------------------------ #

    def register(self, dto: RegisterIn) -> AuthResult[UserOut]:
        """
        Create an active user.

        :param dto: Registration input.
        :returns: The public projection of the new user, or a failure with
            the duplicate-email message.
        """
        email = normalize_email(dto.email)
        try:
            with self.ro_uow() as uow:
                if uow.users.exists_by_email(email):
                    return AuthResult.fail(DUPLICATE_EMAIL)

            password_hash = self.hasher.hash(dto.password)
            with self.rw_uow() as uow:
                user = uow.users.add(
                    User(
                        email=email,
                        password_hash=password_hash,
                        first_name=dto.first_name,
                        last_name=dto.last_name,
                        is_active=True,
                    )
                )
                out = UserOut.from_model(user)
        except IntegrityError as exc:
            # Lost a race against a concurrent registration of the same email
            if violates(exc, USER_EMAIL_CONSTRAINT):
                return AuthResult.fail(DUPLICATE_EMAIL)
            log.exception("register.failed request_id=%s", self.ctx.request_id)
            return AuthResult.fail(REGISTRATION_FAILED, kind=FailureKind.INFRASTRUCTURE)
        except ValueError as exc:
            return AuthResult.fail(REGISTRATION_FAILED, errors=(str(exc),))
        except Exception:
            log.exception("register.failed request_id=%s", self.ctx.request_id)
            return AuthResult.fail(REGISTRATION_FAILED, kind=FailureKind.INFRASTRUCTURE)

        log.info("user.registered user_id=%s", out.id)
        return AuthResult.ok(out)

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn) -> AuthResult[TokenPairOut]:
        """
        Authenticate credentials and issue a fresh token pair.

        Unknown email and wrong password produce the same message so callers
        cannot probe which emails are registered.

        :param dto: Login input.
        :returns: Access/refresh token pair.
        """
        try:
            # Password checks run after the read scope has closed
            with self.ro_uow() as uow:
                user = uow.users.get_by_email(dto.email)
                subject = UserOut.from_model(user) if user is not None else None
                password_hash = user.password_hash if user is not None else None

            if subject is None or password_hash is None:
                # Spend the same hashing work as a real check
                self.hasher.verify(dto.password, self._timing_hash())
                log.warning("login.failed reason=unknown_email")
                return AuthResult.fail(INVALID_CREDENTIALS)
            if not self.hasher.verify(dto.password, password_hash):
                log.warning("login.failed reason=bad_password user_id=%s", subject.id)
                return AuthResult.fail(INVALID_CREDENTIALS)
            if not subject.is_active:
                log.warning("login.failed reason=inactive user_id=%s", subject.id)
                return AuthResult.fail(ACCOUNT_DEACTIVATED)

            pair = self._issue_pair(subject)
        except Exception:
            log.exception("login.failed request_id=%s", self.ctx.request_id)
            return AuthResult.fail(LOGIN_FAILED, kind=FailureKind.INFRASTRUCTURE)

        log.info("login.succeeded user_id=%s", subject.id)
        return AuthResult.ok(pair)

    # ------------------------------------------------------------------ #
    # Refresh with atomic rotation
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn) -> AuthResult[TokenPairOut]:
        """
        Rotate a refresh token and emit a new token pair.

        Security
        --------
        - The presented token must exist, be unrevoked and unexpired.
        - Presenting an already revoked token is logged as possible reuse of
          a stolen token.
        - The store revokes the old token and saves the new one atomically;
          of two concurrent refreshes with the same token only one succeeds.
        """
        token = dto.refresh_token
        if not token:
            return AuthResult.fail(INVALID_REFRESH_TOKEN)

        try:
            now = utcnow()
            record = self.store.find_by_token(token)
            if record is None:
                log.info("refresh_token.unknown")
                return AuthResult.fail(INVALID_REFRESH_TOKEN)
            if record.is_revoked:
                self._log_reuse(record)
                return AuthResult.fail(INVALID_REFRESH_TOKEN)
            if record.is_expired(now):
                log.info("refresh_token.expired token_id=%s", record.id)
                return AuthResult.fail(INVALID_REFRESH_TOKEN)

            with self.ro_uow() as uow:
                user = uow.users.get(record.user_id)
                if user is None or not user.is_active:
                    return AuthResult.fail(USER_NOT_FOUND_OR_INACTIVE)
                subject = UserOut.from_model(user)

            access_token = self.signer.issue_access_token(subject)
            replacement = self._new_record(subject.id)
            outcome = self.store.rotate(token, replacement, now=now)
            if outcome is not RotationResult.OK:
                if outcome is RotationResult.REVOKED:
                    # Lost a race, or replayed between lookup and rotation
                    self._log_reuse(record)
                return AuthResult.fail(INVALID_REFRESH_TOKEN)
        except Exception:
            log.exception("refresh.failed request_id=%s", self.ctx.request_id)
            return AuthResult.fail(TOKEN_REFRESH_FAILED, kind=FailureKind.INFRASTRUCTURE)

        return AuthResult.ok(self._pair(access_token, replacement.token))

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, user_id: int) -> AuthResult[int]:
        """
        Revoke every refresh token of ``user_id``.

        :returns: Number of tokens revoked by this call.
        """
        try:
            revoked = self.store.revoke_all_for_user(int(user_id))
        except Exception:
            log.exception("logout.failed user_id=%s", user_id)
            return AuthResult.fail(LOGOUT_FAILED, kind=FailureKind.INFRASTRUCTURE)
        log.info("logout user_id=%s revoked=%s", user_id, revoked)
        return AuthResult.ok(revoked)

    # ------------------------------------------------------------------ #
    # Current user
    # ------------------------------------------------------------------ #

    def get_current_user(self, principal: Mapping[str, Any]) -> AuthResult[UserOut | None]:
        """
        Resolve the user behind already-validated token claims.

        :param principal: Decoded claims; ``uid`` is preferred, ``sub`` is
            the fallback.
        :returns: Success with the user, or success with ``None`` when the
            claim is missing, unparseable or the user no longer exists.
        """
        user_id = user_id_from_claims(principal)
        if user_id is None:
            return AuthResult.ok(None)
        try:
            with self.ro_uow() as uow:
                user = uow.users.get(user_id)
                out = UserOut.from_model(user) if user is not None else None
        except Exception:
            log.exception("current_user.failed user_id=%s", user_id)
            return AuthResult.fail("Failed to load user", kind=FailureKind.INFRASTRUCTURE)
        return AuthResult.ok(out)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _new_record(self, user_id: int) -> RefreshTokenRecord:
        now = utcnow()
        return RefreshTokenRecord(
            user_id=user_id,
            token=self.signer.issue_refresh_token(),
            expires_at=now + self.refresh_token_lifetime,
            created_at=now,
        )

    def _pair(self, access_token: str, refresh_token: str) -> TokenPairOut:
        seconds = int(self.signer.access_token_lifetime.total_seconds())
        return TokenPairOut(
            access_token=access_token, refresh_token=refresh_token, expires_in=seconds
        )

    def _issue_pair(self, subject: UserOut) -> TokenPairOut:
        access_token = self.signer.issue_access_token(subject)
        stored = self.store.save(self._new_record(subject.id))
        return self._pair(access_token, stored.token)

    def _timing_hash(self) -> str:
        key = repr(self.hasher)
        if key not in _TIMING_HASHES:
            _TIMING_HASHES[key] = self.hasher.hash("timing-equalizer")
        return _TIMING_HASHES[key]

    def _log_reuse(self, record: RefreshTokenRecord) -> None:
        log.warning(
            "refresh_token.reuse_detected user_id=%s token_id=%s request_id=%s",
            record.user_id,
            record.id,
            self.ctx.request_id,
        )


def user_id_from_claims(principal: Mapping[str, Any]) -> int | None:
    """Return the integer user id from ``uid`` (or ``sub``), or ``None``."""
    raw = principal.get(USER_ID_CLAIM)
    if raw is None:
        raw = principal.get("sub")
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None

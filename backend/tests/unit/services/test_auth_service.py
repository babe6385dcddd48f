# tests/unit/services/test_auth_service.py
from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest
from freezegun import freeze_time
from tracker_auth.models.user import User
from tracker_auth.services._shared.ports import InMemoryRefreshTokenStore
from tracker_auth.services._shared.result import FailureKind
from tracker_auth.services.auth.dto import LoginIn, RefreshIn, RegisterIn, TokenPairOut, UserOut
from tracker_auth.services.auth.service import (
    ACCOUNT_DEACTIVATED,
    DUPLICATE_EMAIL,
    INVALID_CREDENTIALS,
    INVALID_REFRESH_TOKEN,
    LOGIN_FAILED,
    REGISTRATION_FAILED,
    TOKEN_REFRESH_FAILED,
    USER_NOT_FOUND_OR_INACTIVE,
    AuthenticationService,
)

from tests.factories.user import UserFactory
from tests.helpers.auth import claims_of

SERVICE_LOGGER = "tracker_auth.services.auth.service"


def _register(service, email="alice@example.com", password="Secret123!"):
    return service.register(
        RegisterIn(email=email, password=password, first_name="Alice", last_name="Liddell")
    )


def _login(service, email="member@example.com", password="Passw0rd!") -> TokenPairOut:
    result = service.login(LoginIn(email=email, password=password))
    assert result.success, result.message
    return result.data


class _BrokenStore(InMemoryRefreshTokenStore):
    def save(self, record):
        raise RuntimeError("datastore unreachable")


# ------------------------------ Register ---------------------------------- #
class TestRegister:
    def test_creates_active_user_and_hides_hash(self, auth_service, session):
        result = _register(auth_service, email="  Alice@Example.com ")

        assert result.success
        out = result.data
        assert isinstance(out, UserOut)
        assert out.email == "alice@example.com"
        assert out.full_name == "Alice Liddell"
        assert out.is_active is True
        assert out.created_at is not None
        assert not hasattr(out, "password_hash")

        stored = session.query(User).filter_by(email="alice@example.com").one()
        assert stored.password_hash != "Secret123!"
        assert auth_service.hasher.verify("Secret123!", stored.password_hash)

    def test_duplicate_email_is_a_domain_failure(self, auth_service, session):
        assert _register(auth_service).success

        result = _register(auth_service, email="ALICE@example.com")

        assert not result.success
        assert result.message == DUPLICATE_EMAIL
        assert result.kind is FailureKind.DOMAIN
        assert session.query(User).filter_by(email="alice@example.com").count() == 1

    def test_unique_constraint_race_maps_to_duplicate(self, auth_service, monkeypatch):
        """A concurrent insert that slips past the pre-check still reads as a duplicate."""
        UserFactory(email="alice@example.com")
        from tracker_auth.repositories.user import UserRepository

        monkeypatch.setattr(UserRepository, "exists_by_email", lambda self, email: False)

        result = _register(auth_service)

        assert result.message == DUPLICATE_EMAIL

    def test_unexpected_failure_is_generic(self, auth_service, monkeypatch, caplog):
        def boom(_plaintext):
            raise RuntimeError("hasher exploded")

        auth_service.hasher = SimpleNamespace(hash=boom, verify=lambda *a: False)

        with caplog.at_level(logging.ERROR, logger=SERVICE_LOGGER):
            result = _register(auth_service)

        assert result.message == REGISTRATION_FAILED
        assert result.is_infrastructure_failure
        assert "hasher exploded" not in result.message
        assert any(r.exc_info for r in caplog.records)


# -------------------------------- Login ----------------------------------- #
class TestLogin:
    def test_issues_pair_and_persists_refresh_token(self, auth_service, user, sql_store):
        with freeze_time("2025-03-01 09:00:00"):
            pair = _login(auth_service)
            record = sql_store.find_by_token(pair.refresh_token)

        assert pair.token_type == "Bearer"
        assert pair.expires_in == 900
        assert record is not None
        assert record.user_id == user.id
        assert record.expires_at == datetime(2025, 3, 8, 9, 0, tzinfo=UTC)
        assert not record.is_revoked

    def test_access_token_carries_user_claims(self, auth_service, user):
        pair = _login(auth_service)

        claims = claims_of(pair.access_token)
        assert claims["email"] == "member@example.com"
        assert claims["uid"] == user.id
        assert claims["sub"] == str(user.id)
        assert claims["given_name"] == user.first_name
        assert claims["family_name"] == user.last_name

    def test_unknown_email_and_wrong_password_look_identical(self, auth_service, user):
        unknown = auth_service.login(LoginIn(email="ghost@example.com", password="Passw0rd!"))
        wrong = auth_service.login(LoginIn(email="member@example.com", password="nope"))

        assert unknown.success is wrong.success is False
        assert unknown.message == wrong.message == INVALID_CREDENTIALS
        assert unknown.errors == wrong.errors

    def test_email_lookup_is_case_insensitive(self, auth_service, user):
        assert _login(auth_service, email="MEMBER@example.com").access_token

    def test_inactive_account_is_reported(self, auth_service, session):
        UserFactory(email="sleepy@example.com", password="Passw0rd!", is_active=False)

        result = auth_service.login(LoginIn(email="sleepy@example.com", password="Passw0rd!"))

        assert result.message == ACCOUNT_DEACTIVATED

    def test_inactive_check_happens_after_password_check(self, auth_service, session):
        UserFactory(email="sleepy@example.com", password="Passw0rd!", is_active=False)

        result = auth_service.login(LoginIn(email="sleepy@example.com", password="wrong"))

        assert result.message == INVALID_CREDENTIALS

    def test_store_failure_is_infrastructure(self, hasher, signer, user):
        service = AuthenticationService(hasher=hasher, signer=signer, store=_BrokenStore())

        result = service.login(LoginIn(email="member@example.com", password="Passw0rd!"))

        assert result.message == LOGIN_FAILED
        assert result.is_infrastructure_failure

    def test_password_is_verified_outside_the_read_scope(
        self, hasher, signer, sql_store, user, session
    ):
        in_transaction_during_verify = []

        def verify(plaintext, hashed):
            in_transaction_during_verify.append(session().in_transaction())
            return hasher.verify(plaintext, hashed)

        spy = SimpleNamespace(hash=hasher.hash, verify=verify)
        service = AuthenticationService(hasher=spy, signer=signer, store=sql_store)

        assert service.login(LoginIn(email="member@example.com", password="Passw0rd!")).success
        unknown = service.login(LoginIn(email="ghost@example.com", password="Passw0rd!"))

        assert unknown.message == INVALID_CREDENTIALS
        assert in_transaction_during_verify == [False, False]


# ------------------------------- Refresh ---------------------------------- #
class TestRefresh:
    def test_rotates_and_blocks_reuse(self, auth_service, user, sql_store, caplog):
        pair1 = _login(auth_service)

        second = auth_service.refresh(RefreshIn(refresh_token=pair1.refresh_token))
        assert second.success
        pair2 = second.data
        assert pair2.refresh_token != pair1.refresh_token
        assert claims_of(pair2.access_token)["email"] == "member@example.com"

        with caplog.at_level(logging.WARNING, logger=SERVICE_LOGGER):
            reused = auth_service.refresh(RefreshIn(refresh_token=pair1.refresh_token))

        assert reused.message == INVALID_REFRESH_TOKEN
        assert reused.kind is FailureKind.DOMAIN
        assert any("refresh_token.reuse_detected" in r.getMessage() for r in caplog.records)
        assert sql_store.find_by_token(pair1.refresh_token).is_revoked
        assert sql_store.find_by_token(pair2.refresh_token).is_valid()

    def test_unknown_and_empty_tokens(self, auth_service):
        assert auth_service.refresh(RefreshIn(refresh_token="nope")).message == (
            INVALID_REFRESH_TOKEN
        )
        assert auth_service.refresh(RefreshIn(refresh_token="")).message == INVALID_REFRESH_TOKEN

    def test_expired_token(self, auth_service, user):
        with freeze_time("2025-01-01 00:00:00"):
            pair = _login(auth_service)

        with freeze_time("2025-01-08 00:00:00"):
            result = auth_service.refresh(RefreshIn(refresh_token=pair.refresh_token))

        assert result.message == INVALID_REFRESH_TOKEN

    def test_still_valid_just_before_expiry(self, auth_service, user):
        with freeze_time("2025-01-01 00:00:00"):
            pair = _login(auth_service)

        with freeze_time("2025-01-07 23:59:59"):
            result = auth_service.refresh(RefreshIn(refresh_token=pair.refresh_token))

        assert result.success

    def test_inactive_owner(self, auth_service, user, session):
        pair = _login(auth_service)
        user.is_active = False
        session.commit()

        result = auth_service.refresh(RefreshIn(refresh_token=pair.refresh_token))

        assert result.message == USER_NOT_FOUND_OR_INACTIVE

    def test_concurrent_refresh_with_same_token_has_one_winner(self, hasher, signer, user):
        """The second refresh lands between the first one's lookup and its rotation."""

        class InterleavingStore(InMemoryRefreshTokenStore):
            competitor = None
            outcomes: list = []

            def rotate(self, old_token, replacement, *, now):
                competitor, self.competitor = self.competitor, None
                if competitor is not None:
                    self.outcomes.append(competitor())
                return super().rotate(old_token, replacement, now=now)

        store = InterleavingStore()
        service = AuthenticationService(hasher=hasher, signer=signer, store=store)
        token = _login(service).refresh_token
        store.competitor = lambda: service.refresh(RefreshIn(refresh_token=token))

        first = service.refresh(RefreshIn(refresh_token=token))
        (second,) = store.outcomes

        assert [first.success, second.success].count(True) == 1
        assert first.message == INVALID_REFRESH_TOKEN
        assert len([r for r in store.all_records() if r.is_valid()]) == 1

    def test_failed_save_rolls_back_revocation(self, auth_service, user, signer, sql_store):
        """If the replacement cannot be stored the presented token stays usable."""
        pair = _login(auth_service)
        taken = _login(auth_service).refresh_token
        auth_service.signer = SimpleNamespace(
            access_token_lifetime=signer.access_token_lifetime,
            issue_access_token=signer.issue_access_token,
            issue_refresh_token=lambda: taken,
        )

        result = auth_service.refresh(RefreshIn(refresh_token=pair.refresh_token))

        assert result.message == TOKEN_REFRESH_FAILED
        assert result.is_infrastructure_failure
        assert sql_store.find_by_token(pair.refresh_token).is_valid()

        auth_service.signer = signer
        assert auth_service.refresh(RefreshIn(refresh_token=pair.refresh_token)).success


# -------------------------------- Logout ---------------------------------- #
class TestLogout:
    def test_revokes_every_refresh_token(self, auth_service, user):
        first = _login(auth_service)
        second = _login(auth_service)

        result = auth_service.logout(user.id)

        assert result.success
        assert result.data == 2
        for pair in (first, second):
            refreshed = auth_service.refresh(RefreshIn(refresh_token=pair.refresh_token))
            assert refreshed.message == INVALID_REFRESH_TOKEN

    def test_is_idempotent(self, auth_service, user):
        _login(auth_service)
        assert auth_service.logout(user.id).data == 1
        assert auth_service.logout(user.id).data == 0

    def test_access_tokens_stay_valid_until_expiry(self, auth_service, user, signer):
        pair = _login(auth_service)
        auth_service.logout(user.id)

        assert signer.validate_and_decode(pair.access_token).user_id == user.id


# ----------------------------- Current user ------------------------------- #
class TestGetCurrentUser:
    def test_reads_uid_claim(self, auth_service, user):
        result = auth_service.get_current_user({"uid": user.id})
        assert result.data.email == "member@example.com"

    def test_falls_back_to_sub(self, auth_service, user):
        result = auth_service.get_current_user({"sub": str(user.id)})
        assert result.data.id == user.id

    @pytest.mark.parametrize("principal", [{}, {"uid": "abc"}, {"sub": ""}, {"uid": True}])
    def test_missing_or_unparseable_claim(self, auth_service, principal):
        result = auth_service.get_current_user(principal)
        assert result.success
        assert result.data is None

    def test_unknown_user(self, auth_service):
        assert auth_service.get_current_user({"uid": 987654}).data is None


# ------------------------------- Scenario --------------------------------- #
def test_alice_end_to_end(auth_service, signer):
    assert _register(auth_service).success

    pair = _login(auth_service, email="alice@example.com", password="Secret123!")
    assert pair.expires_in == 900
    assert signer.validate_and_decode(pair.access_token).email == "alice@example.com"

    rotated = auth_service.refresh(RefreshIn(refresh_token=pair.refresh_token)).data
    assert auth_service.refresh(RefreshIn(refresh_token=pair.refresh_token)).success is False

    user_id = signer.validate_and_decode(rotated.access_token).user_id
    assert auth_service.logout(user_id).success
    assert auth_service.refresh(RefreshIn(refresh_token=rotated.refresh_token)).success is False


def test_refresh_lifetime_is_configurable(hasher, signer, user):
    store = InMemoryRefreshTokenStore()
    service = AuthenticationService(
        hasher=hasher, signer=signer, store=store, refresh_token_lifetime=timedelta(hours=1)
    )
    with freeze_time("2025-05-05 10:00:00"):
        pair = _login(service)

    (record,) = store.all_records()
    assert record.token == pair.refresh_token
    assert record.expires_at == datetime(2025, 5, 5, 11, 0, tzinfo=UTC)

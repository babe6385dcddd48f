"""Factory Boy definition for :class:`tracker_auth.models.refresh_token.RefreshToken`."""

from __future__ import annotations

import secrets
from datetime import timedelta

import factory
from tracker_auth.models.base import utcnow
from tracker_auth.models.refresh_token import RefreshToken

from tests.factories import BaseFactory
from tests.factories.user import UserFactory


class RefreshTokenFactory(BaseFactory):
    """Build persisted refresh token rows, valid for seven days by default."""

    class Meta:
        model = RefreshToken

    id = None
    user = factory.SubFactory(UserFactory)
    token = factory.LazyFunction(lambda: secrets.token_urlsafe(32))
    created_at = factory.LazyFunction(utcnow)
    expires_at = factory.LazyAttribute(lambda o: o.created_at + timedelta(days=7))
    revoked_at = None

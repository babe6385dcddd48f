# tests/unit/infra/test_redis_refresh_token_store.py
"""
Redis-specific tests for RedisRefreshTokenStore using fakeredis.

Key layout and the optimistic-locking retry are checked here; behaviour
shared with the other stores lives in ``test_refresh_token_stores.py``.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import fakeredis
import pytest
from tracker_auth.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore
from tracker_auth.services._shared.ports import RefreshTokenRecord, RotationResult


@pytest.fixture
def fake_redis():
    """Provide a fresh FakeRedis instance for each test."""
    r = fakeredis.FakeRedis()
    r.flushall()
    return r


@pytest.fixture
def store(fake_redis):
    """Provide a RedisRefreshTokenStore backed by FakeRedis."""
    return RedisRefreshTokenStore(r=fake_redis)


def _record(token: str, user_id: int = 7) -> RefreshTokenRecord:
    now = datetime.now(UTC)
    return RefreshTokenRecord(
        user_id=user_id, token=token, expires_at=now + timedelta(days=7), created_at=now
    )


def test_save_writes_hash_and_user_index(store, fake_redis):
    store.save(_record("abc"))

    assert fake_redis.exists("rt:abc")
    assert fake_redis.hget("rt:abc", "user_id") == b"7"
    assert fake_redis.hget("rt:abc", "revoked_at") == b""
    assert fake_redis.smembers("rt:u:7") == {b"abc"}


def test_records_have_no_ttl(store, fake_redis):
    store.save(_record("abc"))
    assert fake_redis.ttl("rt:abc") == -1


def test_ids_are_sequential(store):
    first = store.save(_record("a"))
    second = store.save(_record("b"))
    assert second.id == first.id + 1


def test_rotate_retries_after_watch_error(store, fake_redis, monkeypatch):
    """A concurrent write between WATCH and EXEC forces a re-evaluation."""
    store.save(_record("old"))
    real_pipeline = fake_redis.pipeline
    calls = {"n": 0}

    def flaky_pipeline(*args, **kwargs):
        pipe = real_pipeline(*args, **kwargs)
        calls["n"] += 1
        if calls["n"] == 1:
            real_execute = pipe.execute

            def execute(*a, **kw):
                # Another client rotates the same token first
                fake_redis.hset("rt:old", "revoked_at", datetime.now(UTC).isoformat())
                return real_execute(*a, **kw)

            pipe.execute = execute
        return pipe

    monkeypatch.setattr(fake_redis, "pipeline", flaky_pipeline)

    result = store.rotate("old", _record("new"), now=datetime.now(UTC))

    assert result is RotationResult.REVOKED
    assert calls["n"] == 2
    assert not fake_redis.exists("rt:new")

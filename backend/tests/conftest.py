"""Pytest fixtures configuring an isolated transactional database layer.

Each test runs inside a SAVEPOINT-backed transaction against an in-memory
SQLite database so data changes never leak between cases.
"""

from __future__ import annotations

import os

import pytest
from sqlalchemy import event
from sqlalchemy.orm import scoped_session, sessionmaker
from tracker_auth.core.extensions import db as _db  # Flask-SQLAlchemy instance
from tracker_auth.factory import create_app  # application factory under test
from tracker_auth.infra.jwt.flask_jwt_token_signer import FlaskJWTTokenSigner
from tracker_auth.infra.security.werkzeug_password_hasher import WerkzeugPasswordHasher
from tracker_auth.infra.sqlalchemy.sql_refresh_token_store import SQLRefreshTokenStore
from tracker_auth.services.auth.service import AuthenticationService

# Cheap hashing keeps the suite fast; production uses scrypt
TEST_HASH_METHOD = "pbkdf2:sha256:1000"

# Flask-SQLAlchemy's own scoped session, before the `session` fixture swaps it
FLASK_SCOPED_SESSION = _db.session


class TestConfig:
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - Uses an in-memory SQLite database for speed.
    - Disables rate limiting and the proxy middleware.
    - Avoids hitting external services (no Redis).
    """

    __test__ = False  # keep pytest from collecting this as a test class
    TESTING = True
    DEBUG = False
    ENVIRONMENT = "testing"
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = "test-signing-key-that-is-at-least-32-bytes-long"
    JWT_ISSUER = "tracker-auth-tests"
    JWT_AUDIENCE = "tracker-web-tests"
    JWT_ACCESS_TOKEN_MINUTES = 15
    JWT_REFRESH_TOKEN_DAYS = 7
    REFRESH_TOKEN_STORE = "sql"
    PASSWORD_HASH_METHOD = TEST_HASH_METHOD
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"
    USE_PROXYFIX = False
    LOG_LEVEL = "WARNING"


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestConfig` applied and logging
        noise reduced.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    os.environ.pop("REDIS_URL", None)
    app = create_app(TestConfig, instance_relative_config=False)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture(scope="session")
def db(app):
    """Create database tables once per test session.

    Parameters
    ----------
    app: flask.Flask
        Application fixture ensuring the Flask context is available.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        engine = _db.engine

        # pysqlite opens transactions lazily, which breaks SAVEPOINT handling;
        # hand transaction control to SQLAlchemy instead.
        @event.listens_for(engine, "connect")
        def _sqlite_autocommit(dbapi_connection, connection_record):  # pragma: no cover
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _sqlite_begin(conn):  # pragma: no cover
            conn.exec_driver_sql("BEGIN")

        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db):
    """Keep a dedicated DBAPI connection open for the whole session.

    Parameters
    ----------
    db: flask_sqlalchemy.SQLAlchemy
        Database extension used to retrieve the engine.

    Yields
    ------
    sqlalchemy.engine.Connection
        Connection reused by nested transactions in each test.
    """
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db, connection):
    """Provide a SQLAlchemy session wrapped in a nested transaction.

    Parameters
    ----------
    db: flask_sqlalchemy.SQLAlchemy
        Database extension whose ``session`` attribute is temporarily
        reassigned.
    connection: sqlalchemy.engine.Connection
        Shared connection maintaining the outer transaction.

    Yields
    ------
    sqlalchemy.orm.scoping.scoped_session
        Scoped session bound to the shared connection; automatically rolled
        back after each test.

    Notes
    -----
    The session joins the connection in ``create_savepoint`` mode: each
    ``commit()`` issued by units of work releases a SAVEPOINT and each
    ``rollback()`` rolls back to it, while the outer transaction discards
    everything when the test ends.
    """
    # 1) Top-level transaction
    top_trans = connection.begin()

    # 2) Scoped session bound to the connection
    SessionFactory = sessionmaker(
        bind=connection, join_transaction_mode="create_savepoint", autoflush=False
    )
    scoped = scoped_session(SessionFactory)

    # 3) Monkey-patch db.session so app code uses this scoped session
    original_session = db.session
    db.session.remove()
    db.session = scoped

    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = original_session
        top_trans.rollback()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


@pytest.fixture()
def client(app):
    """Return a Flask test client."""
    return app.test_client()


@pytest.fixture()
def hasher():
    """Password hasher configured like the test app."""
    return WerkzeugPasswordHasher(method=TEST_HASH_METHOD)


@pytest.fixture()
def signer(app):
    """Token signer bound to the test app's JWT settings."""
    return FlaskJWTTokenSigner()


@pytest.fixture()
def sql_store(session):
    """Relational refresh token store using the transactional session."""
    return SQLRefreshTokenStore()


@pytest.fixture()
def auth_service(hasher, signer, sql_store):
    """Authentication service wired to the SQL store."""
    return AuthenticationService(hasher=hasher, signer=signer, store=sql_store)


@pytest.fixture()
def user(session):
    """Persist and return an active user whose password is ``Passw0rd!``."""
    from tests.factories.user import UserFactory

    return UserFactory(email="member@example.com", password="Passw0rd!")


# -- Hook up Factory Boy to pytest SQLAlchemy session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(session):
    """Wire Factory Boy's session helper to the transactional session fixture."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(session)
    yield

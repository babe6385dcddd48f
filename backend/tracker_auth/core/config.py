"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

MIN_SECRET_BYTES: Final[int] = 32
SIGNING_ALGORITHM: Final[str] = "HS256"

# Load .env in development (no-op when the file is absent)
load_dotenv()


class ConfigurationError(RuntimeError):
    """Raised at startup when required settings are missing or inconsistent."""


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    try:
        return int(val)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {val!r}") from exc


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str | None
        Flask secret used for session signing.
    JWT_SECRET_KEY: str | None
        Symmetric key signing access tokens. Required, at least 32 bytes.
    JWT_ISSUER: str | None
        ``iss`` claim written into and required from access tokens.
    JWT_AUDIENCE: str | None
        ``aud`` claim written into and required from access tokens.
    JWT_ACCESS_TOKEN_MINUTES: int
        Access token lifetime in minutes (``15`` by default).
    JWT_REFRESH_TOKEN_DAYS: int
        Refresh token lifetime in days (``7`` by default).
    REFRESH_TOKEN_STORE: str
        ``"sql"`` (default) or ``"redis"``; selects the refresh token backend.
    PASSWORD_HASH_METHOD: str
        Werkzeug hashing method; ``scrypt`` keeps hashing memory-hard.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    REDIS_URL: str | None
        Optional Redis connection string. Required when
        ``REFRESH_TOKEN_STORE`` is ``"redis"``.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.
    AUTH_LOGIN_RATE_LIMIT: str
        Flask-Limiter expression applied to ``POST /api/auth/login``.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes. Secrets have no defaults; the
    application factory refuses to start without them.
    """

    API_BASE_PREFIX = "/api"
    ENVIRONMENT = os.getenv(ENV_VAR, "development")
    APP_VERSION = os.getenv("APP_VERSION", "dev")

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ISSUER = os.getenv("JWT_ISSUER")
    JWT_AUDIENCE = os.getenv("JWT_AUDIENCE")
    JWT_ACCESS_TOKEN_MINUTES = env_int("JWT_ACCESS_TOKEN_MINUTES", 15)
    JWT_REFRESH_TOKEN_DAYS = env_int("JWT_REFRESH_TOKEN_DAYS", 7)
    PASSWORD_HASH_METHOD = os.getenv("PASSWORD_HASH_METHOD", "scrypt")
    REFRESH_TOKEN_STORE = os.getenv("REFRESH_TOKEN_STORE", "sql")

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Redis
    REDIS_URL = os.getenv("REDIS_URL")
    REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "2.0"))

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:4200")

    # Reverse proxy
    USE_PROXYFIX = env_bool("USE_PROXYFIX", True)
    PROXY_TRUSTED_HOPS = env_int("PROXY_TRUSTED_HOPS", 1)

    # Rate limiting
    RATELIMIT_ENABLED = env_bool("RATELIMIT_ENABLED", True)
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    AUTH_LOGIN_RATE_LIMIT = os.getenv("AUTH_LOGIN_RATE_LIMIT", "10 per minute")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and honors ``SQLALCHEMY_ECHO`` for verbose
    SQL logging when requested.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    ENVIRONMENT = "testing"
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    PROPAGATE_EXCEPTIONS = True
    RATELIMIT_ENABLED = False


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled while relying on WSGI-level log
    configuration for noise control. Pool checkout is bounded by
    ``DATABASE_POOL_TIMEOUT`` so datastore calls cannot hang a worker.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_timeout": env_int("DATABASE_POOL_TIMEOUT", 5),
    }


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)


def validate_auth_settings(config: Mapping[str, Any]) -> None:
    """Fail fast when token settings are absent or unsafe.

    :param config: Flask config mapping (or any mapping with the same keys).
    :raises ConfigurationError: On a missing/short secret, missing issuer or
        audience, non-positive lifetimes, or an access lifetime that is not
        strictly shorter than the refresh lifetime.
    """
    secret = config.get("JWT_SECRET_KEY")
    if not secret:
        raise ConfigurationError("JWT_SECRET_KEY is required")
    if len(str(secret).encode("utf-8")) < MIN_SECRET_BYTES:
        raise ConfigurationError(f"JWT_SECRET_KEY must be at least {MIN_SECRET_BYTES} bytes")
    for key in ("JWT_ISSUER", "JWT_AUDIENCE"):
        if not config.get(key):
            raise ConfigurationError(f"{key} is required")

    minutes = int(config.get("JWT_ACCESS_TOKEN_MINUTES", 15))
    days = int(config.get("JWT_REFRESH_TOKEN_DAYS", 7))
    if minutes <= 0 or days <= 0:
        raise ConfigurationError("Token lifetimes must be positive")
    if timedelta(minutes=minutes) >= timedelta(days=days):
        raise ConfigurationError("Access token lifetime must be shorter than refresh lifetime")

    store = str(config.get("REFRESH_TOKEN_STORE", "sql")).lower()
    if store not in {"sql", "redis"}:
        raise ConfigurationError(f"Unknown REFRESH_TOKEN_STORE {store!r}")
    if store == "redis" and not config.get("REDIS_URL"):
        raise ConfigurationError("REDIS_URL is required when REFRESH_TOKEN_STORE=redis")

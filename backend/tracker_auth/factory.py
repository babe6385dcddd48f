"""Application factory for the authentication service."""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask

from tracker_auth.core.config import CONFIG_MAP, BaseConfig, get_config
from tracker_auth.core.logger import configure_logging, init_app as init_logging

log = logging.getLogger(__name__)


def _resolve_config(config: str | type[BaseConfig] | object | None) -> Any:
    # "testing" / "production" map to the bundled classes; other strings are
    # import paths handed to Flask as-is.
    if config is None:
        return get_config()
    if isinstance(config, str):
        return CONFIG_MAP.get(config.strip().lower(), config)
    return config


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    Wiring order matters: token settings are validated first, then the proxy
    middleware, extensions, request logging, CORS, blueprints, error handlers
    and CLI commands are attached.

    :param config: Config class, object, environment name or import path.
        Defaults to the class selected by ``APP_ENV``.
    :param instance_relative_config: Load ``instance/<filename>`` overrides.
    :param instance_config_filename: Name of the optional instance file.
    :raises tracker_auth.core.config.ConfigurationError: When the token
        settings are missing or unsafe; the app never starts half-configured.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(_resolve_config(config))
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from tracker_auth.core import cors, errors, extensions, proxy, security

    security.init_app(app)
    proxy.init_app(app)
    extensions.init_app(app)
    init_logging(app)
    cors.init_app(app)

    from tracker_auth.api import init_app as init_api

    init_api(app)
    errors.init_app(app)

    from tracker_auth import cli as app_cli

    app_cli.init_app(app)

    @app.shell_context_processor
    def _shell_context() -> dict[str, Any]:
        from tracker_auth.models import RefreshToken, User

        return {"db": extensions.db, "User": User, "RefreshToken": RefreshToken}

    log.info(
        "app.created environment=%s refresh_token_store=%s",
        app.config.get("ENVIRONMENT"),
        app.config.get("REFRESH_TOKEN_STORE", "sql"),
    )
    return app

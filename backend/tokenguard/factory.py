"""Application factory wiring Flask extensions and blueprints."""

from __future__ import annotations

from flask import Flask

from tokenguard.core.config import BaseConfig, get_config
from tokenguard.core.logger import configure_logging, init_app as init_logging
from tokenguard.services._shared.clock import Clock
from tokenguard.services._shared.ports import PrincipalLoader


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    principals: PrincipalLoader | None = None,
    clock: Clock | None = None,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    :param config: Config object/class or import path (``APP_ENV`` when omitted).
    :param principals: Loader resolving principal ids to principals.
    :param clock: Time source for the token service (UTC wall clock by default).
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from tokenguard.core import extensions

    extensions.init_app(app)

    from tokenguard.core import container

    container.init_app(app, principals=principals, clock=clock)

    init_logging(app)

    from tokenguard.core import cors

    cors.init_app(app)

    from tokenguard.api import init_app as init_api

    init_api(app)

    from tokenguard.core import errors

    errors.init_app(app)

    from tokenguard import cli as app_cli

    app_cli.init_app(app)

    return app

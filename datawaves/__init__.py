"""
DataWaves: mobile data bundle resale service.

Flask application factory. Configuration is resolved and validated first so a
misconfigured production deploy fails before anything is wired up.
"""

import logging
from typing import Optional

import sentry_sdk
from flask import Flask
from sentry_sdk.integrations.flask import FlaskIntegration

from datawaves.config import Environment, get_config

logger = logging.getLogger(__name__)


def setup_sentry(app: Flask) -> None:
    """Initialize Sentry error tracking"""
    sentry_dsn = app.config.get("SENTRY_DSN")

    if sentry_dsn and app.config.get("ENVIRONMENT") == Environment.PRODUCTION.value:
        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment="production",
            release=app.config.get("APP_VERSION", "1.0.0"),
            send_default_pii=False,
        )
        app.logger.info("Sentry error tracking initialized")


def create_app(config_name: Optional[str] = None) -> Flask:
    """
    Application factory.

    Args:
        config_name: development, testing or production. Defaults to
            ``FLASK_CONFIG`` from the environment.

    Raises:
        ConfigurationError: If the configuration is unknown or invalid.
    """
    from datawaves.cli import register_commands
    from datawaves.error_handlers import register_error_handlers
    from datawaves.extensions import init_extensions
    from datawaves.logging_config import setup_logging
    from datawaves.middleware import init_request_id_middleware
    from datawaves.purchases.services import init_purchases
    from datawaves.routes import register_blueprints

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    init_request_id_middleware(app)
    setup_logging(app)
    setup_sentry(app)

    init_extensions(app)
    init_purchases(app)

    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    app.logger.info(f"Application initialized in {app.config['ENVIRONMENT']} mode")
    return app

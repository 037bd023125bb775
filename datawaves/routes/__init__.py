import logging

logger = logging.getLogger(__name__)


def register_blueprints(app):
    """Register all API blueprints"""
    from datawaves.routes.admin import admin_bp
    from datawaves.routes.auth import auth_bp
    from datawaves.routes.health import health_bp
    from datawaves.routes.plans import plans_bp
    from datawaves.routes.purchase import purchase_bp
    from datawaves.routes.validation import validation_bp

    for blueprint in (health_bp, auth_bp, plans_bp, validation_bp, purchase_bp, admin_bp):
        app.register_blueprint(blueprint)

    logger.info("API blueprints registered")
    return app

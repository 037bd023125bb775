# datawaves/extensions.py
"""
Flask extensions initialization module.
"""

import logging

from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_mail import Mail
from flask_sqlalchemy import SQLAlchemy

# Initialize extensions
db = SQLAlchemy()
jwt = JWTManager()
cors = CORS()
mail = Mail()
limiter = Limiter(key_func=get_remote_address)

logger = logging.getLogger(__name__)


def init_extensions(app):
    """Initialize all Flask extensions for the given app."""
    db.init_app(app)
    logger.info("SQLAlchemy initialized")

    jwt.init_app(app)
    setup_jwt_callbacks()
    logger.info("JWT Manager initialized")

    cors.init_app(
        app,
        resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", [])}},
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=600,
    )
    logger.info("CORS initialized")

    mail.init_app(app)
    logger.info("Flask-Mail initialized")

    limiter.init_app(app)
    if app.config.get("RATELIMIT_STORAGE_URI", "memory://").startswith("memory://"):
        logger.warning("Using in-memory rate limiting storage - NOT RECOMMENDED FOR PRODUCTION")

    return app


def setup_jwt_callbacks():
    """Return JSON bodies shaped like the rest of the API for JWT failures."""
    from flask import jsonify

    @jwt.unauthorized_loader
    def missing_token_callback(reason):
        return jsonify({
            "error": "AuthenticationError",
            "message": "Authentication required",
            "code": "AUTH_REQUIRED",
        }), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(reason):
        return jsonify({
            "error": "AuthenticationError",
            "message": "Invalid token",
            "code": "INVALID_TOKEN",
        }), 401

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({
            "error": "AuthenticationError",
            "message": "Token has expired",
            "code": "TOKEN_EXPIRED",
        }), 401

    @jwt.user_lookup_loader
    def user_lookup_callback(jwt_header, jwt_data):
        from datawaves.models.user import User

        return db.session.get(User, int(jwt_data["sub"]))

    @jwt.user_lookup_error_loader
    def user_lookup_error_callback(jwt_header, jwt_data):
        return jsonify({
            "error": "AuthenticationError",
            "message": "User no longer exists",
            "code": "AUTH_REQUIRED",
        }), 401

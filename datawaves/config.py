"""
Configuration management for the DataWaves purchase service.
Values come from the environment with development defaults; production fails fast.
"""

import os
import json
from datetime import timedelta
from enum import Enum
from typing import Dict, Type


class Environment(str, Enum):
    """Environment types"""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class ConfigurationError(Exception):
    """Raised when configuration validation fails"""
    pass


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_list(name: str, default: str = "") -> list:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


def _env_json(name: str, default: dict) -> dict:
    raw = os.getenv(name)
    if not raw:
        return dict(default)
    try:
        return json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be valid JSON: {e}")


class BaseConfig:
    """
    Base configuration shared by all environments.
    """

    # ============================================
    # APPLICATION
    # ============================================
    APP_NAME = os.getenv("APP_NAME", "DataWaves")
    APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
    ENVIRONMENT = Environment.DEVELOPMENT.value
    DEBUG = False
    TESTING = False
    APP_URL = os.getenv("APP_URL", "http://localhost:5000").rstrip("/")

    # ============================================
    # SECURITY
    # ============================================
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-immediately-in-production")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=int(os.getenv("JWT_ACCESS_HOURS", "12")))
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_ERROR_MESSAGE_KEY = "error"

    # ============================================
    # DATABASE
    # ============================================
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///datawaves.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # ============================================
    # CORS / RATE LIMITING
    # ============================================
    CORS_ORIGINS = _env_list("CORS_ORIGINS", "http://localhost:3000")
    RATELIMIT_ENABLED = _env_bool("RATELIMIT_ENABLED", "True")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_HEADERS_ENABLED = True
    PURCHASE_RATE_LIMIT = os.getenv("PURCHASE_RATE_LIMIT", "10 per minute")
    VALIDATION_RATE_LIMIT = os.getenv("VALIDATION_RATE_LIMIT", "30 per minute")

    # ============================================
    # OUTBOUND HTTP
    # ============================================
    HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))

    # ============================================
    # PAYMENT GATEWAY (PAYSTACK)
    # ============================================
    PAYSTACK_SECRET_KEY = os.getenv("PAYSTACK_SECRET_KEY", "")
    PAYSTACK_BASE_URL = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co")
    PAYSTACK_CALLBACK_URL = os.getenv("PAYSTACK_CALLBACK_URL", f"{APP_URL}/api/purchase/callback")
    PAYMENT_SUCCESS_URL = os.getenv("PAYMENT_SUCCESS_URL", "/payment-success.html")
    PAYMENT_FAILED_URL = os.getenv("PAYMENT_FAILED_URL", "/payment-failed.html")
    PAYMENT_PENDING_URL = os.getenv("PAYMENT_PENDING_URL", "/payment-pending.html")

    # ============================================
    # AGGREGATOR (RELOADLY)
    # ============================================
    RELOADLY_CLIENT_ID = os.getenv("RELOADLY_CLIENT_ID", "")
    RELOADLY_CLIENT_SECRET = os.getenv("RELOADLY_CLIENT_SECRET", "")
    RELOADLY_BASE_URL = os.getenv("RELOADLY_BASE_URL", "https://topups-sandbox.reloadly.com")
    RELOADLY_AUTH_URL = os.getenv("RELOADLY_AUTH_URL", "https://auth.reloadly.com/oauth/token")
    RELOADLY_OPERATOR_IDS = _env_json("RELOADLY_OPERATOR_IDS", {
        "mtn": 1,
        "telecel": 2,
        "airteltigo": 3,
    })
    LOW_BALANCE_THRESHOLD = float(os.getenv("LOW_BALANCE_THRESHOLD", "100"))

    # ============================================
    # PRICING
    # ============================================
    DEFAULT_MARKUPS = _env_json("DEFAULT_MARKUPS", {
        "mtn": 5.0,
        "telecel": 7.5,
        "airteltigo": 6.0,
    })

    # ============================================
    # PHONE VALIDATION
    # ============================================
    PHONE_LOOKUP_URL = os.getenv("PHONE_LOOKUP_URL", "")
    PHONE_LOOKUP_API_KEY = os.getenv("PHONE_LOOKUP_API_KEY", "")
    PHONE_CHECK_FAIL_OPEN = _env_bool("PHONE_CHECK_FAIL_OPEN", "True")

    # ============================================
    # NOTIFICATIONS
    # ============================================
    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", "True")
    MAIL_USE_SSL = _env_bool("MAIL_USE_SSL", "False")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "no-reply@datawaves.com")
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND", "False")
    SMS_API_KEY = os.getenv("SMS_API_KEY", "")
    SMS_API_URL = os.getenv("SMS_API_URL", "https://api.smsphoneapi.com/v1/send")
    ADMIN_ALERT_EMAILS = _env_list("ADMIN_ALERT_EMAILS")
    ADMIN_PHONE = os.getenv("ADMIN_PHONE", "")
    SUPPORT_EMAIL = os.getenv("SUPPORT_EMAIL", "support@datawaves.com")

    # ============================================
    # BACKGROUND JOBS
    # ============================================
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    BALANCE_CHECK_MINUTES = int(os.getenv("BALANCE_CHECK_MINUTES", "30"))

    # ============================================
    # MONITORING & LOGGING
    # ============================================
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_JSON = _env_bool("LOG_JSON", "True")
    LOG_REQUESTS = _env_bool("LOG_REQUESTS", "False")
    SENTRY_DSN = os.getenv("SENTRY_DSN")

    def validate(self) -> None:
        """Hook for environment-specific checks."""
        return None


class DevelopmentConfig(BaseConfig):
    ENVIRONMENT = Environment.DEVELOPMENT.value
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()
    LOG_JSON = _env_bool("LOG_JSON", "False")
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND", "True")


class TestingConfig(BaseConfig):
    ENVIRONMENT = Environment.TESTING.value
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length-for-hs256"
    PAYSTACK_SECRET_KEY = "sk_test_datawaves"
    RELOADLY_CLIENT_ID = "test-client"
    RELOADLY_CLIENT_SECRET = "test-secret"
    RELOADLY_BASE_URL = "https://topups.test"
    RELOADLY_AUTH_URL = "https://auth.test/oauth/token"
    PHONE_LOOKUP_URL = ""
    RATELIMIT_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    ADMIN_ALERT_EMAILS = ["ops@datawaves.test"]
    ADMIN_PHONE = "+233200000000"
    SMS_API_KEY = ""
    LOG_LEVEL = "WARNING"
    LOG_JSON = False
    SENTRY_DSN = None


class ProductionConfig(BaseConfig):
    ENVIRONMENT = Environment.PRODUCTION.value

    def validate(self) -> None:
        """Fail fast on settings that must never be defaulted in production."""
        missing = [
            name for name in ("SECRET_KEY", "JWT_SECRET_KEY", "PAYSTACK_SECRET_KEY", "DATABASE_URL")
            if not os.getenv(name)
        ]
        if missing:
            raise ConfigurationError(f"Missing required settings in production: {', '.join(missing)}")

        if self.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            raise ConfigurationError("SQLite is not allowed in production. Use PostgreSQL or MySQL.")

        if "*" in self.CORS_ORIGINS:
            raise ConfigurationError("CORS wildcard is not allowed in production!")


CONFIGS: Dict[str, Type[BaseConfig]] = {
    Environment.DEVELOPMENT.value: DevelopmentConfig,
    Environment.TESTING.value: TestingConfig,
    Environment.PRODUCTION.value: ProductionConfig,
}


def get_config(name: str = None) -> BaseConfig:
    """Resolve a configuration object by environment name."""
    name = (name or os.getenv("FLASK_CONFIG", Environment.DEVELOPMENT.value)).lower()
    try:
        config_class = CONFIGS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown configuration '{name}'. Expected one of: {', '.join(CONFIGS)}"
        )

    config = config_class()
    config.validate()
    return config

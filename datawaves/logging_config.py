# datawaves/logging_config.py
import logging
import logging.config
from datetime import datetime

from flask import g, has_request_context, request
from pythonjsonlogger import jsonlogger


class RequestIdFilter(logging.Filter):
    """
    Inject request_id into every log record if present.
    """

    def filter(self, record):
        record.request_id = g.get("request_id") if has_request_context() else None
        return True


def build_logging_config(level: str = "INFO", json_output: bool = True) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_id": {
                "()": RequestIdFilter,
            },
        },
        "formatters": {
            "json": {
                "()": jsonlogger.JsonFormatter,
                "fmt": (
                    "%(asctime)s "
                    "%(levelname)s "
                    "%(name)s "
                    "%(message)s "
                    "%(request_id)s "
                    "%(module)s "
                    "%(funcName)s "
                    "%(lineno)d"
                ),
            },
            "simple": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "json" if json_output else "simple",
                "filters": ["request_id"],
            },
        },
        "loggers": {
            "werkzeug": {"level": "WARNING"},
            "sqlalchemy.engine": {"level": "WARNING"},
            "urllib3": {"level": "WARNING"},
        },
        "root": {
            "level": level,
            "handlers": ["default"],
        },
    }


def setup_logging(app):
    """Configure logging for the application"""
    level = app.config.get("LOG_LEVEL", "INFO").upper()
    logging.config.dictConfig(
        build_logging_config(level, app.config.get("LOG_JSON", True))
    )

    @app.before_request
    def log_request():
        if app.config.get("DEBUG") or app.config.get("LOG_REQUESTS"):
            g.start_time = datetime.now()
            app.logger.info(
                f"Request: {request.method} {request.path}",
                extra={"ip": request.remote_addr},
            )

    @app.after_request
    def log_response(response):
        if (app.config.get("DEBUG") or app.config.get("LOG_REQUESTS")) and "start_time" in g:
            duration = (datetime.now() - g.start_time).total_seconds() * 1000
            app.logger.info(
                f"Response: {request.method} {request.path} - {response.status_code}",
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round(duration, 2),
                },
            )
        return response

    app.logger.info(f"Logging configured at {level} level")
    return app


def configure_logging_for_worker(level: str = "INFO"):
    """Configure logging for the Celery worker and standalone scripts."""
    logging.config.dictConfig(build_logging_config(level, json_output=True))


def mask_phone(phone_number: str) -> str:
    """Mask all but the last four digits of a phone number for log output."""
    if not phone_number:
        return phone_number
    phone_number = str(phone_number)
    visible = phone_number[-4:]
    return "*" * (len(phone_number) - len(visible)) + visible

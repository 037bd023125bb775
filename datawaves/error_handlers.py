# datawaves/error_handlers.py
import logging
import traceback

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from datawaves.errors import DomainError

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Register all error handlers for the application"""

    @app.errorhandler(DomainError)
    def handle_domain_error(error):
        log = logger.error if error.status_code >= 500 else logger.warning
        log(
            f"{error.__class__.__name__}: {error.message} - Path: {request.path}",
            extra={"code": error.code},
        )
        response = jsonify({**error.to_dict(), "path": request.path})
        response.status_code = error.status_code
        return response

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        """
        Handles known HTTP errors (404, 401, 403, etc.)
        """
        if e.code == 429:
            logger.warning(f"Too many requests: {str(e)} - Path: {request.path}")
        return jsonify({
            "error": e.name,
            "message": e.description,
            "status_code": e.code,
            "path": request.path,
        }), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        """
        Handles all unexpected server errors without leaking the stack trace.
        """
        logger.error(f"Unhandled exception on {request.path}: {str(e)}")
        logger.error(traceback.format_exc())
        return jsonify({
            "error": "Internal Server Error",
            "message": "Something went wrong. Please try again later.",
            "status_code": 500,
            "path": request.path,
        }), 500

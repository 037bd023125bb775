from datetime import datetime

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from datawaves.extensions import db

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    """
    Health check endpoint that verifies API and database status.
    """
    status = {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "service": current_app.config.get("APP_NAME"),
        "version": current_app.config.get("APP_VERSION"),
        "checks": {"api": "ok"},
    }

    try:
        db.session.execute(text("SELECT 1"))
        status["checks"]["database"] = "ok"
    except Exception as e:
        current_app.logger.error(f"Health check database failure: {str(e)}")
        status["checks"]["database"] = f"error: {str(e)}"
        status["status"] = "degraded"

    return jsonify(status), 200 if status["status"] == "healthy" else 503

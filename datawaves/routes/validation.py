import logging

from flask import Blueprint, current_app, jsonify, request

from datawaves.errors import ValidationError
from datawaves.extensions import limiter
from datawaves.logging_config import mask_phone
from datawaves.purchases.services import get_services
from datawaves.services.phone_validation import supported_networks

logger = logging.getLogger(__name__)

validation_bp = Blueprint("validation", __name__, url_prefix="/api/validation")


@validation_bp.post("/phone")
@limiter.limit(lambda: current_app.config["VALIDATION_RATE_LIMIT"])
def validate_phone():
    """
    Check a phone number against the selected network.

    An invalid number is still a 200 response; ``valid`` and ``code`` carry
    the outcome so the checkout form can explain it.
    """
    data = request.get_json(silent=True) or {}
    phone_number = data.get("phoneNumber")
    network = data.get("network")

    if not phone_number or not network:
        raise ValidationError(
            "Phone number and network are required",
            code="MISSING_FIELDS",
            payload={"valid": False},
        )

    logger.info(
        "Phone validation request",
        extra={"phone": mask_phone(phone_number), "network": network, "ip": request.remote_addr},
    )
    result = get_services().validator.validate(phone_number, network)
    logger.info(
        "Phone validation result",
        extra={"valid": result.valid, "network": network, "code": result.error_code or "SUCCESS"},
    )
    return jsonify(result.to_dict()), 200


@validation_bp.get("/networks")
def networks():
    return jsonify({"success": True, "networks": supported_networks()}), 200

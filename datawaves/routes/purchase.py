import json
import logging
from urllib.parse import urlencode

from flask import Blueprint, current_app, jsonify, redirect, request
from flask_jwt_extended import current_user, jwt_required

from datawaves.errors import NotFoundError, NotificationError, ValidationError
from datawaves.extensions import limiter
from datawaves.purchases.services import get_orchestrator, get_services
from datawaves.purchases.state_machine import PaymentOutcome
from datawaves.services.paystack_service import SIGNATURE_HEADER

logger = logging.getLogger(__name__)

purchase_bp = Blueprint("purchase", __name__, url_prefix="/api/purchase")


def _reference_from(data):
    reference = data.get("reference")
    reference = reference.strip() if isinstance(reference, str) else ""
    if not reference:
        raise ValidationError("Transaction reference is required", code="MISSING_REFERENCE")
    return reference


@purchase_bp.post("/initialize")
@jwt_required()
@limiter.limit(lambda: current_app.config["PURCHASE_RATE_LIMIT"])
def initialize():
    """
    Start a purchase for the authenticated user.

    Returns:
        {reference, redirect_url, amount, status}; the client sends the
        customer to ``redirect_url`` to pay.
    """
    data = request.get_json(silent=True) or {}
    plan_id = data.get("plan_id")
    phone_number = data.get("phone_number")

    if not plan_id or not phone_number:
        raise ValidationError("Plan ID and phone number are required", code="MISSING_FIELDS")
    try:
        plan_id = int(plan_id)
    except (TypeError, ValueError):
        raise ValidationError("Plan ID must be an integer", code="INVALID_PLAN_ID")

    services = get_services()
    plan = services.repository.find_plan_by_id(plan_id)
    if plan is None:
        raise NotFoundError("Plan not found", code="PLAN_NOT_FOUND")

    session = services.orchestrator.initiate_purchase(
        current_user,
        plan,
        phone_number,
        confirmation_method=data.get("confirmation_method"),
        confirmation_contact=data.get("confirmation_contact"),
    )
    return jsonify(session.to_dict()), 200


@purchase_bp.get("/callback")
def callback():
    """Browser redirect from the payment page."""
    reference = _reference_from(request.args)
    logger.info("Payment callback received", extra={"reference": reference})

    outcome = get_orchestrator().confirm_from_callback(reference)

    if outcome is PaymentOutcome.SUCCESS:
        target = current_app.config["PAYMENT_SUCCESS_URL"]
    elif outcome is PaymentOutcome.FAILURE:
        target = current_app.config["PAYMENT_FAILED_URL"]
    else:
        target = current_app.config["PAYMENT_PENDING_URL"]
    return redirect(f"{target}?{urlencode({'reference': reference})}")


@purchase_bp.post("/webhook")
def webhook():
    """
    Server-to-server payment events. The signature is checked against the raw
    body before anything in the payload is read.
    """
    raw_body = request.get_data()
    signature = request.headers.get(SIGNATURE_HEADER)

    if not get_services().payments.validate_signature(raw_body, signature):
        logger.warning("Invalid webhook signature", extra={"ip": request.remote_addr})
        raise ValidationError("Invalid signature", code="INVALID_SIGNATURE")

    try:
        event = json.loads(raw_body)
    except ValueError:
        event = None
    if not isinstance(event, dict):
        raise ValidationError("Webhook body is not a JSON object", code="INVALID_PAYLOAD")

    handled = get_orchestrator().handle_webhook_event(event)
    return jsonify({"status": "ok" if handled else "ignored"}), 200


@purchase_bp.get("/status/<reference>")
@jwt_required()
def status(reference):
    transaction = get_orchestrator().transaction_for(reference, current_user)
    return jsonify({"transaction": transaction.to_dict()}), 200


@purchase_bp.post("/resend-receipt")
@jwt_required()
def resend_receipt():
    reference = _reference_from(request.get_json(silent=True) or {})

    report = get_orchestrator().resend_receipt(reference, current_user)
    if not report.any_succeeded:
        raise NotificationError("Failed to resend receipt", code="RESEND_FAILED")

    channels = [r.channel for r in report.results if r.ok]
    return jsonify({
        "success": True,
        "message": f"Receipt resent via {' and '.join(channels)}",
        "channels": channels,
    }), 200

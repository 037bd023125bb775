import logging
from datetime import datetime, time

from flask import Blueprint, jsonify, request
from flask_jwt_extended import current_user
from sqlalchemy import func

from datawaves.errors import NotFoundError, ValidationError
from datawaves.extensions import db
from datawaves.models.admin_alert import AdminAlert
from datawaves.models.data_plan import DataPlan
from datawaves.models.transaction import Transaction
from datawaves.models.user import User
from datawaves.purchases.services import get_services
from datawaves.purchases.state_machine import TransactionStatus
from datawaves.routes.decorators import admin_required
from datawaves.services.phone_validation import NETWORK_CONFIG, normalize_network
from datawaves.services.pricing_service import to_decimal

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _markups_payload(markups):
    return {network: str(value) for network, value in sorted(markups.all().items())}


@admin_bp.get("/markups")
@admin_required
def list_markups():
    return jsonify({"markups": _markups_payload(get_services().markups)}), 200


@admin_bp.put("/markups/<network>")
@admin_required
def update_markup(network):
    """
    Set the markup percentage for a network.

    The in-process table and the ``network_markups`` row are updated under
    the table's writer lock, so readers never see a half-applied change.
    """
    network = normalize_network(network)
    if network not in NETWORK_CONFIG:
        raise ValidationError("The selected network is not supported", code="UNSUPPORTED_NETWORK")

    data = request.get_json(silent=True) or {}
    markup = data.get("markup")
    if markup is None or isinstance(markup, bool):
        raise ValidationError("Markup is required", code="MISSING_FIELDS")

    markups = get_services().markups
    value = markups.set(network, markup, updated_by=current_user.id)
    logger.info("Markup changed by admin", extra={"network": network, "markup": str(value), "admin_id": current_user.id})
    return jsonify({
        "success": True,
        "network": network,
        "markup": str(value),
        "markups": _markups_payload(markups),
    }), 200


@admin_bp.get("/balance")
@admin_required
def balance():
    result = get_services().aggregator.check_balance()
    return jsonify({
        "balance": str(result.balance),
        "currency": result.currency,
        "low": result.low,
    }), 200


@admin_bp.get("/alerts")
@admin_required
def list_alerts():
    alerts = (
        AdminAlert.query
        .order_by(AdminAlert.is_resolved.asc(), AdminAlert.created_at.desc(), AdminAlert.id.desc())
        .limit(request.args.get("limit", 100, type=int))
        .all()
    )
    return jsonify({"alerts": [alert.to_dict() for alert in alerts]}), 200


@admin_bp.post("/alerts/<int:alert_id>/resolve")
@admin_required
def resolve_alert(alert_id):
    alert = db.session.get(AdminAlert, alert_id)
    if alert is None:
        raise NotFoundError("Alert not found", code="ALERT_NOT_FOUND")
    alert.resolve(current_user.id)
    db.session.commit()
    return jsonify({"alert": alert.to_dict()}), 200


@admin_bp.get("/transactions")
@admin_required
def list_transactions():
    query = Transaction.query
    status = request.args.get("status")
    if status:
        query = query.filter_by(status=status)
    transactions = (
        query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(request.args.get("limit", 100, type=int))
        .all()
    )
    return jsonify({"transactions": [t.to_dict() for t in transactions]}), 200


@admin_bp.get("/dashboard")
@admin_required
def dashboard():
    """Headline numbers for the admin console plus the ten latest purchases."""
    start_of_day = datetime.combine(datetime.utcnow().date(), time.min)
    today = Transaction.query.filter(Transaction.created_at >= start_of_day)

    today_sales = (
        db.session.query(func.coalesce(func.sum(Transaction.amount), 0))
        .filter(
            Transaction.created_at >= start_of_day,
            Transaction.status == TransactionStatus.SUCCESS.value,
        )
        .scalar()
    )
    recent = (
        Transaction.query
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(10)
        .all()
    )

    return jsonify({
        "stats": {
            "total_users": User.query.count(),
            "total_plans": DataPlan.query.filter_by(is_active=True).count(),
            "today_sales": f"{to_decimal(today_sales):.2f}",
            "today_transactions": today.count(),
        },
        "recent_transactions": [t.to_dict() for t in recent],
    }), 200


def _get_plan(plan_id):
    plan = db.session.get(DataPlan, plan_id)
    if plan is None:
        raise NotFoundError("Plan not found", code="PLAN_NOT_FOUND")
    return plan


def _plan_provider(value):
    provider = normalize_network(value)
    if provider not in NETWORK_CONFIG:
        raise ValidationError("The selected network is not supported", code="UNSUPPORTED_NETWORK")
    return provider


def _plan_size(value):
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    size = value.strip() if isinstance(value, str) else ""
    if not size:
        raise ValidationError("Plan size is required", code="MISSING_FIELDS")
    return size


def _plan_price(value):
    if value is None or isinstance(value, bool):
        raise ValidationError("Base price is required", code="MISSING_FIELDS")
    price = to_decimal(value)
    if price < 0:
        raise ValidationError("Base price cannot be negative", code="INVALID_PRICE")
    return price.quantize(to_decimal("0.01"))


@admin_bp.get("/plans")
@admin_required
def list_all_plans():
    plans = DataPlan.query.order_by(DataPlan.provider, DataPlan.base_price, DataPlan.id).all()
    return jsonify({
        "plans": [dict(plan.to_dict(), is_active=plan.is_active) for plan in plans]
    }), 200


@admin_bp.post("/plans")
@admin_required
def create_plan():
    data = request.get_json(silent=True) or {}
    missing = [field for field in ("provider", "size", "base_price") if data.get(field) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", code="MISSING_FIELDS")

    plan = DataPlan(
        provider=_plan_provider(data["provider"]),
        size=_plan_size(data["size"]),
        base_price=_plan_price(data["base_price"]),
    )
    db.session.add(plan)
    db.session.commit()
    logger.info("Plan created by admin", extra={"plan_id": plan.id, "provider": plan.provider, "admin_id": current_user.id})
    return jsonify({"success": True, "plan": dict(plan.to_dict(), is_active=plan.is_active)}), 201


@admin_bp.put("/plans/<int:plan_id>")
@admin_required
def update_plan(plan_id):
    """
    Change any of ``provider``, ``size``, ``base_price`` or ``is_active``.

    Existing transactions keep the amount they were charged; only later
    price reads see the new base price.
    """
    plan = _get_plan(plan_id)
    data = request.get_json(silent=True) or {}

    changes = {}
    if "provider" in data:
        changes["provider"] = _plan_provider(data["provider"])
    if "size" in data:
        changes["size"] = _plan_size(data["size"])
    if "base_price" in data:
        changes["base_price"] = _plan_price(data["base_price"])
    if "is_active" in data:
        if not isinstance(data["is_active"], bool):
            raise ValidationError("is_active must be true or false", code="INVALID_FORMAT")
        changes["is_active"] = data["is_active"]

    for field, value in changes.items():
        setattr(plan, field, value)

    db.session.commit()
    logger.info("Plan updated by admin", extra={"plan_id": plan.id, "admin_id": current_user.id})
    return jsonify({"success": True, "plan": dict(plan.to_dict(), is_active=plan.is_active)}), 200


@admin_bp.delete("/plans/<int:plan_id>")
@admin_required
def delete_plan(plan_id):
    """Withdraw a plan from sale. The row stays because transactions reference it."""
    plan = _get_plan(plan_id)
    plan.is_active = False
    db.session.commit()
    logger.info("Plan withdrawn by admin", extra={"plan_id": plan.id, "admin_id": current_user.id})
    return jsonify({"success": True, "message": "Plan removed"}), 200

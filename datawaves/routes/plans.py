from flask import Blueprint, jsonify, request
from flask_jwt_extended import current_user, jwt_required

from datawaves.models.data_plan import DataPlan
from datawaves.purchases.services import get_services
from datawaves.services.phone_validation import normalize_network

plans_bp = Blueprint("plans", __name__, url_prefix="/api")


@plans_bp.get("/plans")
def list_plans():
    """
    Active plans with ``customer_price`` computed from the current markup.
    Optional ``?network=`` filter accepts network aliases.
    """
    pricing = get_services().pricing
    query = DataPlan.query.filter_by(is_active=True)

    network = request.args.get("network")
    if network:
        query = query.filter(DataPlan.provider == normalize_network(network))

    plans = query.order_by(DataPlan.provider, DataPlan.base_price).all()
    return jsonify({
        "plans": [
            plan.to_dict(customer_price=pricing.charge_amount(plan.base_price, normalize_network(plan.provider)))
            for plan in plans
        ]
    }), 200


@plans_bp.get("/transactions")
@jwt_required()
def my_transactions():
    repository = get_services().repository
    transactions = repository.list_transactions_for_user(current_user.id)
    return jsonify({"transactions": [t.to_dict() for t in transactions]}), 200

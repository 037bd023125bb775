from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest

from datawaves.extensions import db
from datawaves.models import AdminAlert, AlertSeverity, DataPlan, NetworkMarkup, Transaction
from datawaves.services.aggregator_service import AccountBalance
from tests.conftest import MTN_E164


def test_list_markups(client, admin, token_for):
    response = client.authenticated_get("/api/admin/markups", token=token_for(admin))

    assert response.status_code == 200
    assert response.json["markups"] == {"airteltigo": "6.0", "mtn": "5.0", "telecel": "7.5"}


def test_markups_require_admin(client, user, token_for):
    response = client.authenticated_get("/api/admin/markups", token=token_for(user))

    assert response.status_code == 403
    assert response.json["code"] == "ADMIN_REQUIRED"


def test_markups_require_token(client):
    response = client.get("/api/admin/markups")

    assert response.status_code == 401


def test_update_markup_persists_and_reprices(client, admin, plan, token_for):
    """Test a markup change is stored and used for the next price read"""
    response = client.authenticated_put("/api/admin/markups/MTN", token=token_for(admin), json={"markup": 8})

    assert response.status_code == 200
    assert response.json["network"] == "mtn"
    assert response.json["markup"] == "8"
    assert response.json["markups"]["mtn"] == "8"

    row = db.session.get(NetworkMarkup, "mtn")
    assert row.markup == Decimal("8")
    assert row.updated_by == admin.id

    plans = client.get("/api/plans?network=mtn").json["plans"]
    assert plans[0]["customer_price"] == "21.60"


def test_update_markup_accepts_network_alias(client, admin, token_for):
    response = client.authenticated_put("/api/admin/markups/vodafone", token=token_for(admin), json={"markup": "9.25"})

    assert response.status_code == 200
    assert response.json["network"] == "telecel"
    assert response.json["markup"] == "9.25"


@pytest.mark.parametrize("payload,code", [
    ({"markup": -1}, "INVALID_MARKUP"),
    ({"markup": "lots"}, "INVALID_NUMBER"),
    ({}, "MISSING_FIELDS"),
    ({"markup": True}, "MISSING_FIELDS"),
])
def test_update_markup_rejects_bad_values(client, admin, token_for, payload, code):
    response = client.authenticated_put("/api/admin/markups/mtn", token=token_for(admin), json=payload)

    assert response.status_code == 400
    assert response.json["code"] == code
    assert db.session.get(NetworkMarkup, "mtn") is None


def test_update_markup_unsupported_network(client, admin, token_for):
    response = client.authenticated_put("/api/admin/markups/glo", token=token_for(admin), json={"markup": 5})

    assert response.status_code == 400
    assert response.json["code"] == "UNSUPPORTED_NETWORK"


def test_update_markup_forbidden_for_customers(client, services, user, token_for):
    response = client.authenticated_put("/api/admin/markups/mtn", token=token_for(user), json={"markup": 50})

    assert response.status_code == 403
    assert services.markups.get("mtn") == Decimal("5")


def test_balance(client, services, admin, token_for):
    balance = AccountBalance(balance=Decimal("250.50"), currency="GHS", low=False)

    with patch.object(services.aggregator, "check_balance", return_value=balance):
        response = client.authenticated_get("/api/admin/balance", token=token_for(admin))

    assert response.status_code == 200
    assert response.json == {"balance": "250.50", "currency": "GHS", "low": False}


def test_alerts_list_and_resolve(client, admin, token_for):
    resolved = AdminAlert.record("low_balance", "Low Aggregator Balance", "Balance low", severity=AlertSeverity.WARNING)
    resolved.resolve(admin.id)
    db.session.commit()
    open_alert = AdminAlert.record("aggregator_failed", "Transaction Failed", "Topup failed", related_reference="ref_x")
    token = token_for(admin)

    listed = client.authenticated_get("/api/admin/alerts", token=token).json["alerts"]
    assert [a["id"] for a in listed] == [open_alert.id, resolved.id]

    response = client.authenticated_post(f"/api/admin/alerts/{open_alert.id}/resolve", token=token)
    assert response.status_code == 200
    assert response.json["alert"]["is_resolved"] is True
    assert response.json["alert"]["resolved_by"] == admin.id


def test_resolve_unknown_alert(client, admin, token_for):
    response = client.authenticated_post("/api/admin/alerts/404/resolve", token=token_for(admin))

    assert response.status_code == 404
    assert response.json["code"] == "ALERT_NOT_FOUND"


def test_admin_transactions_filter_by_status(client, admin, user, plan, token_for):
    for reference, status in [("ref_1", "pending"), ("ref_2", "failed"), ("ref_3", "failed")]:
        db.session.add(Transaction(
            user_id=user.id, plan_id=plan.id, network="mtn", phone_number=MTN_E164,
            amount=Decimal("21.00"), status=status, payment_reference=reference,
        ))
    db.session.commit()

    response = client.authenticated_get("/api/admin/transactions?status=failed", token=token_for(admin))

    assert response.status_code == 200
    assert sorted(t["reference"] for t in response.json["transactions"]) == ["ref_2", "ref_3"]


def test_dashboard_summary(client, admin, user, plan, token_for):
    """Test the dashboard counts users, live plans and today's successful sales"""
    db.session.add(DataPlan(provider="telecel", size="1", base_price=Decimal("4.80"), is_active=False))
    yesterday = datetime.utcnow() - timedelta(days=1)
    for reference, status, amount, created_at in [
        ("ref_old", "success", "99.00", yesterday),
        ("ref_ok_1", "success", "21.00", None),
        ("ref_ok_2", "success", "10.50", None),
        ("ref_lost", "failed", "21.00", None),
    ]:
        transaction = Transaction(
            user_id=user.id, plan_id=plan.id, network="mtn", phone_number=MTN_E164,
            amount=Decimal(amount), status=status, payment_reference=reference,
        )
        if created_at is not None:
            transaction.created_at = created_at
        db.session.add(transaction)
    db.session.commit()

    response = client.authenticated_get("/api/admin/dashboard", token=token_for(admin))

    assert response.status_code == 200
    assert response.json["stats"] == {
        "total_users": 2,
        "total_plans": 1,
        "today_sales": "31.50",
        "today_transactions": 3,
    }
    recent = [t["reference"] for t in response.json["recent_transactions"]]
    assert recent[0] == "ref_lost"
    assert set(recent) == {"ref_old", "ref_ok_1", "ref_ok_2", "ref_lost"}


def test_dashboard_with_no_sales(client, admin, token_for):
    response = client.authenticated_get("/api/admin/dashboard", token=token_for(admin))

    assert response.status_code == 200
    assert response.json["stats"]["today_sales"] == "0.00"
    assert response.json["recent_transactions"] == []


def test_dashboard_recent_is_capped_at_ten(client, admin, user, plan, token_for):
    for n in range(12):
        db.session.add(Transaction(
            user_id=user.id, plan_id=plan.id, network="mtn", phone_number=MTN_E164,
            amount=Decimal("21.00"), payment_reference=f"ref_{n:02d}",
        ))
    db.session.commit()

    recent = client.authenticated_get("/api/admin/dashboard", token=token_for(admin)).json["recent_transactions"]

    assert len(recent) == 10
    assert recent[0]["reference"] == "ref_11"


@pytest.mark.parametrize("method,path", [
    ("get", "/api/admin/dashboard"),
    ("get", "/api/admin/plans"),
    ("post", "/api/admin/plans"),
    ("put", "/api/admin/plans/1"),
    ("delete", "/api/admin/plans/1"),
])
def test_admin_console_forbidden_for_customers(client, user, plan, token_for, method, path):
    response = client.open(path, method=method.upper(), headers={"Authorization": f"Bearer {token_for(user)}"}, json={})

    assert response.status_code == 403
    assert response.json["code"] == "ADMIN_REQUIRED"
    assert db.session.get(DataPlan, plan.id).is_active is True


def test_create_plan(client, admin, token_for):
    response = client.authenticated_post(
        "/api/admin/plans", token=token_for(admin),
        json={"provider": "Vodafone", "size": 2, "base_price": "9.6"},
    )

    assert response.status_code == 201
    assert response.json["plan"]["provider"] == "telecel"
    assert response.json["plan"]["size"] == "2"
    assert response.json["plan"]["base_price"] == "9.60"
    assert response.json["plan"]["is_active"] is True

    plans = client.get("/api/plans?network=telecel").json["plans"]
    assert [(p["size"], p["customer_price"]) for p in plans] == [("2", "10.32")]


@pytest.mark.parametrize("payload,code", [
    ({"size": "5", "base_price": "20"}, "MISSING_FIELDS"),
    ({"provider": "mtn", "base_price": "20"}, "MISSING_FIELDS"),
    ({"provider": "mtn", "size": "5"}, "MISSING_FIELDS"),
    ({"provider": "mtn", "size": ["5"], "base_price": "20"}, "MISSING_FIELDS"),
    ({"provider": "glo", "size": "5", "base_price": "20"}, "UNSUPPORTED_NETWORK"),
    ({"provider": "mtn", "size": "5", "base_price": "-1"}, "INVALID_PRICE"),
    ({"provider": "mtn", "size": "5", "base_price": "cheap"}, "INVALID_NUMBER"),
])
def test_create_plan_rejects_bad_input(client, admin, token_for, payload, code):
    response = client.authenticated_post("/api/admin/plans", token=token_for(admin), json=payload)

    assert response.status_code == 400
    assert response.json["code"] == code
    assert DataPlan.query.count() == 0


def test_update_plan_reprices_listing_only(client, admin, user, plan, token_for):
    """Test a new base price shows in the listing while stored charges stay put"""
    db.session.add(Transaction(
        user_id=user.id, plan_id=plan.id, network="mtn", phone_number=MTN_E164,
        amount=Decimal("21.00"), payment_reference="ref_before",
    ))
    db.session.commit()

    response = client.authenticated_put(
        f"/api/admin/plans/{plan.id}", token=token_for(admin), json={"base_price": 30},
    )

    assert response.status_code == 200
    assert response.json["plan"]["base_price"] == "30.00"
    assert response.json["plan"]["size"] == "5"
    assert client.get("/api/plans").json["plans"][0]["customer_price"] == "31.50"
    assert Transaction.query.filter_by(payment_reference="ref_before").one().amount == Decimal("21.00")


@pytest.mark.parametrize("payload,code", [
    ({"provider": "glo"}, "UNSUPPORTED_NETWORK"),
    ({"base_price": -5}, "INVALID_PRICE"),
    ({"size": ""}, "MISSING_FIELDS"),
    ({"is_active": "yes"}, "INVALID_FORMAT"),
    ({"provider": "telecel", "base_price": -1}, "INVALID_PRICE"),
])
def test_update_plan_rejects_bad_input(client, admin, plan, token_for, payload, code):
    response = client.authenticated_put(f"/api/admin/plans/{plan.id}", token=token_for(admin), json=payload)

    assert response.status_code == 400
    assert response.json["code"] == code
    db.session.expire_all()
    stored = db.session.get(DataPlan, plan.id)
    assert (stored.provider, stored.base_price, stored.is_active) == ("mtn", Decimal("20.00"), True)


def test_delete_plan_withdraws_it_from_sale(client, admin, user, plan, token_for):
    response = client.open(
        f"/api/admin/plans/{plan.id}", method="DELETE", headers={"Authorization": f"Bearer {token_for(admin)}"},
    )

    assert response.status_code == 200
    assert client.get("/api/plans").json["plans"] == []

    listed = client.authenticated_get("/api/admin/plans", token=token_for(admin)).json["plans"]
    assert [(p["id"], p["is_active"]) for p in listed] == [(plan.id, False)]

    purchase = client.authenticated_post(
        "/api/purchase/initialize", token=token_for(user), json={"plan_id": plan.id, "phone_number": "0241234567"},
    )
    assert purchase.status_code == 404
    assert purchase.json["code"] == "PLAN_NOT_FOUND"


@pytest.mark.parametrize("method", ["PUT", "DELETE"])
def test_unknown_plan(client, admin, token_for, method):
    response = client.open(
        "/api/admin/plans/999", method=method, headers={"Authorization": f"Bearer {token_for(admin)}"}, json={},
    )

    assert response.status_code == 404
    assert response.json["code"] == "PLAN_NOT_FOUND"

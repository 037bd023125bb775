import hashlib
import hmac
import json
from decimal import Decimal
from unittest.mock import Mock

import pytest
from faker import Faker

from datawaves import create_app
from datawaves.extensions import db
from datawaves.models import DataPlan, User, UserRole
from datawaves.notifications import NotificationCenter
from datawaves.purchases.orchestrator import PurchaseOrchestrator
from datawaves.purchases.services import get_services
from datawaves.services.aggregator_service import OperatorFound, Unsupported
from datawaves.services.paystack_service import PaymentSession
from datawaves.services.phone_validation import PhoneValidator
from datawaves.services.pricing_service import MarkupTable, PricingService
from tests.fakes import FakeRepository

# Initialize Faker for generating test data
fake = Faker()

MTN_NUMBER = "0241234567"
MTN_E164 = "+233241234567"


def pytest_configure(config):
    config.addinivalue_line("markers", "payment: mark test as payment-related")
    config.addinivalue_line("markers", "db: mark test as database-intensive")


@pytest.fixture()
def app():
    """Application built with the testing config and a fresh in-memory database"""
    app = create_app("testing")

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    """Test client with bearer-token helpers"""
    client = app.test_client()

    def authenticated_get(self, url, token=None, **kwargs):
        headers = kwargs.pop("headers", {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return self.get(url, headers=headers, **kwargs)

    def authenticated_post(self, url, token=None, **kwargs):
        headers = kwargs.pop("headers", {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return self.post(url, headers=headers, **kwargs)

    def authenticated_put(self, url, token=None, **kwargs):
        headers = kwargs.pop("headers", {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return self.put(url, headers=headers, **kwargs)

    client.authenticated_get = authenticated_get.__get__(client)
    client.authenticated_post = authenticated_post.__get__(client)
    client.authenticated_put = authenticated_put.__get__(client)
    return client


@pytest.fixture()
def services(app):
    return get_services()


@pytest.fixture()
def make_user(app):
    def _make_user(role=UserRole.USER, password="Passw0rd!", **overrides):
        user = User(
            full_name=overrides.pop("full_name", fake.name()),
            email=overrides.pop("email", fake.unique.email()).lower(),
            phone=overrides.pop("phone", MTN_E164),
            role=role,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture()
def user(make_user):
    return make_user()


@pytest.fixture()
def admin(make_user):
    return make_user(role=UserRole.ADMIN)


@pytest.fixture()
def token_for(app):
    from datawaves.routes.auth import issue_token

    return issue_token


@pytest.fixture()
def plan(app):
    """5GB MTN plan at a wholesale price of 20.00"""
    plan = DataPlan(provider="mtn", size="5", base_price=Decimal("20.00"))
    db.session.add(plan)
    db.session.commit()
    return plan


@pytest.fixture()
def sign():
    """Sign a webhook body the way the payment gateway does"""
    def _sign(payload, secret="sk_test_datawaves"):
        body = json.dumps(payload).encode() if not isinstance(payload, bytes) else payload
        signature = hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()
        return body, signature
    return _sign


@pytest.fixture()
def dispatchers():
    """Email and SMS dispatcher doubles"""
    return Mock(name="email"), Mock(name="sms")


@pytest.fixture()
def fake_repository():
    return FakeRepository()


@pytest.fixture()
def mock_payments():
    payments = Mock(name="payments")
    payments.initialize.return_value = PaymentSession(
        reference="ref_test_001",
        redirect_url="https://checkout.paystack.test/ref_test_001",
        access_code="acc_001",
    )
    return payments


@pytest.fixture()
def mock_aggregator():
    aggregator = Mock(name="aggregator")

    def resolve(network):
        ids = {"mtn": 1, "telecel": 2, "airteltigo": 3}
        if network in ids:
            return OperatorFound(ids[network])
        return Unsupported(network)

    aggregator.resolve_operator_id.side_effect = resolve
    aggregator.topup.return_value = {"transactionId": 9001, "status": "SUCCESSFUL", "deliveredAmount": 21.0}
    return aggregator


@pytest.fixture()
def orchestrator(fake_repository, mock_payments, mock_aggregator, dispatchers):
    email, sms = dispatchers
    return PurchaseOrchestrator(
        pricing=PricingService(MarkupTable({"mtn": 5, "telecel": 7.5, "airteltigo": 6})),
        validator=PhoneValidator(),
        payments=mock_payments,
        aggregator=mock_aggregator,
        notifications=NotificationCenter(email=email, sms=sms),
        repository=fake_repository,
    )

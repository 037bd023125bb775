from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
import requests

from datawaves.errors import NotificationError
from datawaves.extensions import mail
from datawaves.models import AdminAlert
from datawaves.notifications import EmailDispatcher, NotificationCenter, SmsDispatcher
from datawaves.notifications.email_templates import EmailTemplates


@pytest.fixture()
def transaction():
    return SimpleNamespace(
        payment_reference="ref_abc",
        network="mtn",
        phone_number="+233241234567",
        amount=Decimal("21.00"),
        confirmation_method="both",
        confirmation_contact="+233241234567",
        user_id=1,
    )


@pytest.fixture()
def buyer():
    return SimpleNamespace(id=1, full_name="Ama <Mensah>", email="ama@example.com")


@pytest.fixture()
def bundle():
    return SimpleNamespace(size="5", provider="mtn")


def test_purchase_confirmation_template_escapes_names(transaction, buyer, bundle):
    subject, html = EmailTemplates.purchase_confirmation(transaction, buyer, bundle)

    assert "ref_abc" in html
    assert "Ama &lt;Mensah&gt;" in html
    assert "<Mensah>" not in html
    assert subject


def test_confirmation_uses_both_channels(dispatchers, transaction, buyer, bundle):
    email, sms = dispatchers
    center = NotificationCenter(email=email, sms=sms)

    report = center.notify_purchase_confirmed(transaction, buyer, bundle)

    assert [r.channel for r in report.results] == ["email", "sms"]
    assert report.any_succeeded
    email.send_purchase_confirmation.assert_called_once_with("ama@example.com", transaction, buyer, bundle)
    sms.send_purchase_confirmation.assert_called_once_with("+233241234567", transaction, buyer, bundle)


def test_one_channel_failing_does_not_block_the_other(dispatchers, transaction, buyer, bundle):
    email, sms = dispatchers
    email.send_purchase_confirmation.side_effect = NotificationError("SMTP down")

    report = NotificationCenter(email=email, sms=sms).notify_purchase_confirmed(transaction, buyer, bundle)

    sms.send_purchase_confirmation.assert_called_once()
    assert report.by_channel("email")[0].ok is False
    assert report.by_channel("email")[0].error == "SMTP down"
    assert report.by_channel("sms")[0].ok is True
    assert not report.all_failed


def test_all_channels_failing_is_reported_not_raised(dispatchers, transaction, buyer):
    email, sms = dispatchers
    email.send_failure_notice.side_effect = NotificationError("SMTP down")
    sms.send_failure_notice.side_effect = ValueError("bad payload")

    report = NotificationCenter(email=email, sms=sms).notify_failure(transaction, buyer, "Payment failed")

    assert report.all_failed
    assert len(report.results) == 2


@pytest.mark.parametrize("method,channels", [
    ("email", ["email"]),
    ("sms", ["sms"]),
    ("both", ["email", "sms"]),
])
def test_resend_receipt_follows_preference(dispatchers, transaction, buyer, bundle, method, channels):
    email, sms = dispatchers
    transaction.confirmation_method = method

    report = NotificationCenter(email=email, sms=sms).resend_receipt(transaction, buyer, bundle)

    assert [r.channel for r in report.results] == channels


def test_email_preference_uses_stored_contact(dispatchers, transaction, buyer, bundle):
    email, sms = dispatchers
    transaction.confirmation_method = "email"
    transaction.confirmation_contact = "receipts@example.com"

    NotificationCenter(email=email, sms=sms).resend_receipt(transaction, buyer, bundle)

    assert email.send_purchase_confirmation.call_args[0][0] == "receipts@example.com"


def test_alert_admins_records_alert_even_when_sends_fail(app, dispatchers):
    email, sms = dispatchers
    email.send_admin_alert.side_effect = NotificationError("SMTP down")
    sms.send_admin_alert.side_effect = NotificationError("SMS down")

    report = NotificationCenter(email=email, sms=sms).alert_admins(
        "aggregator_failed", "Transaction Failed", "Topup failed", details={"amount": Decimal("21.00")}, reference="ref_abc",
    )

    alert = AdminAlert.query.one()
    assert report.alert_id == alert.id
    assert report.all_failed
    assert alert.data == {"amount": "21.00"}
    assert alert.related_reference == "ref_abc"
    assert alert.severity == "critical"


def test_email_dispatcher_sends_through_flask_mail(app, transaction, buyer, bundle):
    dispatcher = EmailDispatcher(admin_emails=["ops@datawaves.test"], sender="no-reply@datawaves.test")

    with mail.record_messages() as outbox:
        dispatcher.send_purchase_confirmation("ama@example.com", transaction, buyer, bundle)
        dispatcher.send_admin_alert("Low balance", {"balance": "42"})

    assert [m.recipients for m in outbox] == [["ama@example.com"], ["ops@datawaves.test"]]


def test_email_dispatcher_without_admins_skips(app):
    assert EmailDispatcher().send_admin_alert("Low balance") == {"status": "skipped"}


def test_email_dispatcher_wraps_mail_errors(app, transaction, buyer):
    with patch.object(mail, "send", side_effect=ConnectionRefusedError("smtp refused")):
        with pytest.raises(NotificationError):
            EmailDispatcher().send_failure_notice("ama@example.com", transaction, "Payment failed", user=buyer)


def test_sms_dispatcher_logs_when_unconfigured(transaction, buyer, bundle):
    with patch("datawaves.notifications.sms_dispatcher.requests.post") as mock_post:
        result = SmsDispatcher(api_key="", api_url="https://sms.test/send").send_purchase_confirmation(
            "+233241234567", transaction, buyer, bundle
        )

    assert result["status"] == "logged"
    mock_post.assert_not_called()


def test_sms_dispatcher_posts_message():
    response = Mock(ok=True, status_code=200)
    response.json.return_value = {"success": True, "status": "queued", "message_id": "m1"}

    with patch("datawaves.notifications.sms_dispatcher.requests.post", return_value=response) as mock_post:
        result = SmsDispatcher(api_key="key", api_url="https://sms.test/send", timeout=4).send("+233241234567", "hello")

    assert result == {"status": "queued", "message_id": "m1"}
    _, kwargs = mock_post.call_args
    assert kwargs["json"] == {"key": "key", "phone": "+233241234567", "message": "hello"}
    assert kwargs["timeout"] == 4


def test_sms_dispatcher_raises_on_provider_error():
    with patch("datawaves.notifications.sms_dispatcher.requests.post", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(NotificationError):
            SmsDispatcher(api_key="key", api_url="https://sms.test/send").send("+233241234567", "hello")


def test_sms_dispatcher_requires_recipient():
    with pytest.raises(NotificationError):
        SmsDispatcher(api_key="", api_url="").send("", "hello")

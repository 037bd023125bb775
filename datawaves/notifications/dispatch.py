"""
Best-effort, multi-channel notification dispatch.

Each send is a ``NotificationTask`` whose outcome is captured in a
``NotificationResult``. Tasks run one after another without short-circuiting,
so a failing channel never stops the next one and never reaches the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from datawaves.extensions import db
from datawaves.models.admin_alert import AdminAlert, AlertSeverity
from datawaves.purchases.state_machine import ConfirmationMethod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationResult:
    channel: str
    kind: str
    ok: bool
    error: Optional[str] = None


@dataclass
class NotificationTask:
    channel: str
    kind: str
    send: Callable[[], object]
    reference: Optional[str] = None

    def run(self) -> NotificationResult:
        try:
            self.send()
        except Exception as e:
            logger.error(
                f"{self.channel} {self.kind} failed",
                extra={"channel": self.channel, "kind": self.kind, "reference": self.reference, "error": str(e)},
            )
            return NotificationResult(self.channel, self.kind, ok=False, error=str(e))
        logger.info(
            f"{self.channel} {self.kind} sent",
            extra={"channel": self.channel, "kind": self.kind, "reference": self.reference},
        )
        return NotificationResult(self.channel, self.kind, ok=True)


@dataclass
class NotificationReport:
    results: List[NotificationResult] = field(default_factory=list)
    alert_id: Optional[int] = None

    @property
    def any_succeeded(self) -> bool:
        return any(r.ok for r in self.results)

    @property
    def all_failed(self) -> bool:
        return bool(self.results) and not self.any_succeeded

    def by_channel(self, channel) -> List[NotificationResult]:
        return [r for r in self.results if r.channel == channel]


def run_tasks(tasks: List[NotificationTask]) -> NotificationReport:
    report = NotificationReport(results=[task.run() for task in tasks])
    if report.all_failed:
        logger.warning("All notification channels failed", extra={"kinds": sorted({r.kind for r in report.results})})
    return report


class NotificationCenter:
    def __init__(self, email, sms):
        self.email = email
        self.sms = sms

    # Contacts -----------------------------------------------------------
    @staticmethod
    def sms_contact(transaction):
        method = transaction.confirmation_method
        if transaction.confirmation_contact and method in (ConfirmationMethod.SMS.value, ConfirmationMethod.BOTH.value):
            return transaction.confirmation_contact
        return transaction.phone_number

    @staticmethod
    def email_contact(transaction, user):
        if transaction.confirmation_contact and transaction.confirmation_method == ConfirmationMethod.EMAIL.value:
            return transaction.confirmation_contact
        return user.email if user is not None else None

    # Customer notifications ---------------------------------------------
    def notify_purchase_confirmed(self, transaction, user, plan) -> NotificationReport:
        """Always both channels, whatever the stored preference."""
        reference = transaction.payment_reference
        return run_tasks([
            NotificationTask(
                "email", "purchase_confirmation",
                lambda: self.email.send_purchase_confirmation(self.email_contact(transaction, user), transaction, user, plan),
                reference,
            ),
            NotificationTask(
                "sms", "purchase_confirmation",
                lambda: self.sms.send_purchase_confirmation(self.sms_contact(transaction), transaction, user, plan),
                reference,
            ),
        ])

    def notify_failure(self, transaction, user, reason) -> NotificationReport:
        reference = transaction.payment_reference
        return run_tasks([
            NotificationTask(
                "email", "failure_notice",
                lambda: self.email.send_failure_notice(self.email_contact(transaction, user), transaction, reason, user=user),
                reference,
            ),
            NotificationTask(
                "sms", "failure_notice",
                lambda: self.sms.send_failure_notice(self.sms_contact(transaction), transaction, reason, user=user),
                reference,
            ),
        ])

    def resend_receipt(self, transaction, user, plan) -> NotificationReport:
        """Receipt resend honors the stored confirmation method."""
        method = transaction.confirmation_method
        tasks = []
        if method in (ConfirmationMethod.EMAIL.value, ConfirmationMethod.BOTH.value):
            tasks.append(NotificationTask(
                "email", "receipt",
                lambda: self.email.send_purchase_confirmation(self.email_contact(transaction, user), transaction, user, plan),
                transaction.payment_reference,
            ))
        if method in (ConfirmationMethod.SMS.value, ConfirmationMethod.BOTH.value):
            tasks.append(NotificationTask(
                "sms", "receipt",
                lambda: self.sms.send_purchase_confirmation(self.sms_contact(transaction), transaction, user, plan),
                transaction.payment_reference,
            ))
        return run_tasks(tasks)

    # Operations ---------------------------------------------------------
    def alert_admins(self, alert_type, subject, message, details=None, reference=None,
                     severity=AlertSeverity.CRITICAL) -> NotificationReport:
        """Record an AdminAlert, then email and SMS the operators."""
        details = {k: str(v) for k, v in (details or {}).items()}
        alert_id = None
        try:
            alert = AdminAlert.record(
                alert_type=alert_type,
                title=subject,
                message=message,
                data=details,
                severity=severity,
                related_reference=reference,
            )
            alert_id = alert.id
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to record admin alert", extra={"alert_type": alert_type, "error": str(e)})

        report = run_tasks([
            NotificationTask("email", "admin_alert", lambda: self.email.send_admin_alert(subject, details), reference),
            NotificationTask("sms", "admin_alert", lambda: self.sms.send_admin_alert(subject, details), reference),
        ])
        report.alert_id = alert_id
        return report

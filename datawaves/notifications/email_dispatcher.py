import logging
from typing import Iterable, Optional

from flask_mail import Message

from datawaves.errors import NotificationError
from datawaves.extensions import mail
from datawaves.notifications.email_templates import EmailTemplates

logger = logging.getLogger(__name__)


class EmailDispatcher:
    channel = "email"

    def __init__(self, admin_emails: Optional[Iterable[str]] = None,
                 support_email: str = "support@datawaves.com", sender: Optional[str] = None):
        self.admin_emails = list(admin_emails or [])
        self.support_email = support_email
        self.sender = sender

    def send(self, to, subject, html):
        recipients = [to] if isinstance(to, str) else list(to)
        if not recipients:
            raise NotificationError("No email recipient", code="NO_RECIPIENT")
        try:
            mail.send(Message(subject=subject, recipients=recipients, html=html, sender=self.sender))
        except Exception as e:
            logger.error("Failed to send email", extra={"to": recipients, "subject": subject, "error": str(e)})
            raise NotificationError(f"Email delivery failed: {e}") from e

        logger.info("Email sent successfully", extra={"to": recipients, "subject": subject})
        return {"status": "sent", "recipients": recipients}

    def send_purchase_confirmation(self, contact, transaction, user, plan):
        subject, html = EmailTemplates.purchase_confirmation(transaction, user, plan)
        return self.send(contact, subject, html)

    def send_failure_notice(self, contact, transaction, reason, user=None):
        subject, html = EmailTemplates.failure_notice(transaction, user, reason, self.support_email)
        return self.send(contact, subject, html)

    def send_admin_alert(self, subject, details=None):
        if not self.admin_emails:
            logger.warning("No admin alert emails configured, skipping admin email alert")
            return {"status": "skipped"}
        alert_subject, html = EmailTemplates.admin_alert(subject, details)
        return self.send(self.admin_emails, alert_subject, html)

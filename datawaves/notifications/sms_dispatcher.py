import logging
import uuid
from typing import Optional

import requests

from datawaves.errors import NotificationError
from datawaves.notifications.email_templates import SmsTemplates

logger = logging.getLogger(__name__)


class SmsDispatcher:
    """
    SMS delivery through the SMS Phone API. Without an API key the message is
    logged instead of sent, so local environments still exercise the pipeline.
    """

    channel = "sms"

    def __init__(self, api_key: str, api_url: str, admin_phone: Optional[str] = None,
                 support_email: str = "support@datawaves.com", timeout: float = 10):
        self.api_key = api_key
        self.api_url = api_url
        self.admin_phone = admin_phone
        self.support_email = support_email
        self.timeout = timeout

    @property
    def is_configured(self):
        return bool(self.api_key)

    def send(self, to, message):
        if not to:
            raise NotificationError("No SMS recipient", code="NO_RECIPIENT")

        if not self.is_configured:
            logger.info("SMS service not configured, logging message instead", extra={"to": to, "sms": message})
            return {"status": "logged", "message_id": f"mock-{uuid.uuid4().hex[:12]}"}

        try:
            response = requests.post(
                self.api_url,
                json={"key": self.api_key, "phone": to, "message": message},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("SMS sending failed", extra={"to": to, "error": str(e)})
            raise NotificationError(f"SMS delivery failed: {e}") from e

        if not response.ok or not data.get("success"):
            error = data.get("message") or f"HTTP {response.status_code}"
            logger.error("SMS API returned error", extra={"to": to, "error": error})
            raise NotificationError(f"SMS delivery failed: {error}")

        logger.info("SMS sent successfully", extra={"to": to, "message_id": data.get("message_id")})
        return {"status": data.get("status", "sent"), "message_id": data.get("message_id")}

    def send_purchase_confirmation(self, contact, transaction, user, plan):
        return self.send(contact, SmsTemplates.purchase_confirmation(transaction, user, plan))

    def send_failure_notice(self, contact, transaction, reason, user=None):
        return self.send(contact, SmsTemplates.failure_notice(transaction, user, reason, self.support_email))

    def send_admin_alert(self, subject, details=None):
        if not self.admin_phone:
            logger.warning("Admin phone not configured, skipping admin SMS alert")
            return {"status": "skipped"}
        return self.send(self.admin_phone, SmsTemplates.admin_alert(subject, details))

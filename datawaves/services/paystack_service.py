import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

import requests

from datawaves.errors import PaymentInitializationError, PaymentVerificationError
from datawaves.services.pricing_service import round_money

logger = logging.getLogger(__name__)

PAYSTACK_BASE_URL = "https://api.paystack.co"
SIGNATURE_HEADER = "X-Paystack-Signature"


@dataclass(frozen=True)
class PaymentSession:
    reference: str
    redirect_url: str
    access_code: Optional[str] = None


# Gateway statuses after which the payment can no longer succeed
FINAL_FAILURE_STATUSES = frozenset({"failed", "reversed"})


@dataclass(frozen=True)
class PaymentVerification:
    status: str
    amount: Decimal
    raw: dict = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == "success"

    @property
    def failed(self) -> bool:
        return self.status in FINAL_FAILURE_STATUSES


def to_minor_units(amount) -> int:
    """Paystack expects amounts in the currency's minor unit (pesewas/kobo)."""
    return int(round_money(amount) * 100)


def from_minor_units(amount) -> Decimal:
    return (Decimal(int(amount or 0)) / 100).quantize(Decimal("0.01"))


def _upstream_message(response, default):
    try:
        body = response.json()
    except ValueError:
        return default
    return (body.get("message") if isinstance(body, dict) else None) or default


class PaystackClient:
    def __init__(self, secret_key: str, base_url: str = PAYSTACK_BASE_URL,
                 callback_url: Optional[str] = None, timeout: float = 10):
        self.secret_key = secret_key or ""
        self.base_url = base_url.rstrip("/")
        self.callback_url = callback_url
        self.timeout = timeout

    @property
    def _headers(self):
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def initialize(self, email: str, amount, metadata: Optional[dict] = None) -> PaymentSession:
        payload = {
            "email": email,
            "amount": to_minor_units(amount),
            "metadata": metadata or {},
        }
        if self.callback_url:
            payload["callback_url"] = self.callback_url

        logger.info("Initializing payment", extra={"email": email, "amount": str(amount)})
        try:
            response = requests.post(
                f"{self.base_url}/transaction/initialize",
                json=payload,
                headers=self._headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Payment initialization failed", extra={"error": str(e)})
            raise PaymentInitializationError(f"Payment initialization failed: {e}", upstream_message=str(e))

        if not response.ok:
            message = _upstream_message(response, f"HTTP {response.status_code}")
            logger.error("Payment initialization rejected", extra={"status_code": response.status_code, "error": message})
            raise PaymentInitializationError(f"Payment initialization failed: {message}", upstream_message=message)

        try:
            body = response.json()
        except ValueError:
            raise PaymentInitializationError("Payment initialization failed: invalid gateway response")

        data = body.get("data") or {}
        if not body.get("status") or not data.get("reference"):
            message = body.get("message") or "gateway declined the request"
            raise PaymentInitializationError(f"Payment initialization failed: {message}", upstream_message=message)

        logger.info("Payment initialized successfully", extra={"reference": data["reference"]})
        return PaymentSession(
            reference=data["reference"],
            redirect_url=data.get("authorization_url"),
            access_code=data.get("access_code"),
        )

    def verify(self, reference: str) -> PaymentVerification:
        """
        Look up a transaction with the gateway.

        Raises:
            PaymentVerificationError: On a network error, a non-2xx reply or
                a body that is not JSON. The caller must not treat that as a
                failed payment.
        """
        try:
            response = requests.get(
                f"{self.base_url}/transaction/verify/{reference}",
                headers=self._headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Payment verification failed", extra={"error": str(e), "reference": reference})
            raise PaymentVerificationError(f"Payment verification failed: {e}", upstream_message=str(e))

        if not response.ok:
            message = _upstream_message(response, f"HTTP {response.status_code}")
            logger.error(
                "Payment verification rejected",
                extra={"status_code": response.status_code, "error": message, "reference": reference},
            )
            raise PaymentVerificationError(f"Payment verification failed: {message}", upstream_message=message)

        try:
            body = response.json()
        except ValueError:
            raise PaymentVerificationError("Payment verification failed: invalid gateway response")
        if not isinstance(body, dict) or not body.get("status"):
            message = (body.get("message") if isinstance(body, dict) else None) or "gateway could not verify the payment"
            raise PaymentVerificationError(f"Payment verification failed: {message}", upstream_message=message)

        data = body.get("data") or {}
        return PaymentVerification(
            status=str(data.get("status") or "").lower(),
            amount=from_minor_units(data.get("amount")),
            raw=body,
        )

    def validate_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """HMAC-SHA512 of the raw request body with the shared secret."""
        if not self.secret_key or not signature:
            return False
        computed = hmac.new(
            self.secret_key.encode(),
            raw_body,
            hashlib.sha512
        ).hexdigest()
        return hmac.compare_digest(computed, signature)

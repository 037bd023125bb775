"""
Reloadly top-up client.

Access tokens come from an OAuth2 client-credentials exchange and are reused
until shortly before they expire.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, Optional, Union

import requests

from datawaves.errors import AggregatorError
from datawaves.services.phone_validation import normalize_network

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "application/com.reloadly.topups-v1+json"
DEFAULT_TOKEN_LIFETIME = 3600
TOKEN_REFRESH_MARGIN = 300


@dataclass(frozen=True)
class OperatorFound:
    operator_id: int


@dataclass(frozen=True)
class Unsupported:
    network: str


OperatorLookup = Union[OperatorFound, Unsupported]


@dataclass(frozen=True)
class AccountBalance:
    balance: Decimal
    currency: Optional[str]
    low: bool = False
    raw: dict = field(default_factory=dict)


def _error_message(response, default):
    try:
        body = response.json()
    except ValueError:
        return default
    if not isinstance(body, dict):
        return default
    return body.get("message") or body.get("errorCode") or default


class ReloadlyClient:
    def __init__(self, client_id: str, client_secret: str, base_url: str, auth_url: str,
                 operator_ids: Optional[Dict[str, int]] = None, timeout: float = 10,
                 low_balance_threshold: float = 100,
                 on_low_balance: Optional[Callable[[AccountBalance, Decimal], None]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.auth_url = auth_url
        self.operator_ids = {normalize_network(k): int(v) for k, v in (operator_ids or {}).items()}
        self.timeout = timeout
        self.low_balance_threshold = Decimal(str(low_balance_threshold))
        self.on_low_balance = on_low_balance
        self._clock = clock
        self._token_lock = threading.Lock()
        self._access_token = None
        self._token_expiry = 0.0

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def get_access_token(self) -> str:
        with self._token_lock:
            if self._access_token and self._clock() < self._token_expiry:
                return self._access_token

            try:
                response = requests.post(
                    self.auth_url,
                    json={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "grant_type": "client_credentials",
                        "audience": self.base_url,
                    },
                    headers={"Content-Type": "application/json"},
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                logger.error("Failed to get access token", extra={"error": str(e)})
                raise AggregatorError(f"Failed to get access token: {e}", upstream_message=str(e))

            if not response.ok:
                message = _error_message(response, f"HTTP {response.status_code}")
                logger.error("Failed to get access token", extra={"error": message})
                raise AggregatorError(f"Failed to get access token: {message}", upstream_message=message)

            try:
                body = response.json()
                token = body["access_token"]
                lifetime = int(body.get("expires_in") or DEFAULT_TOKEN_LIFETIME)
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.error("Malformed access token response", extra={"error": repr(e)})
                raise AggregatorError("Failed to get access token: invalid aggregator response")
            if not token:
                raise AggregatorError("Failed to get access token: empty token in aggregator response")

            self._access_token = token
            # 60 minute tokens are reused for 55 minutes
            self._token_expiry = self._clock() + max(lifetime - TOKEN_REFRESH_MARGIN, 0)
            return self._access_token

    def _auth_headers(self):
        return {
            "Authorization": f"Bearer {self.get_access_token()}",
            "Accept": ACCEPT_HEADER,
            "Content-Type": "application/json",
        }

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------
    def resolve_operator_id(self, network: str) -> OperatorLookup:
        key = normalize_network(network)
        operator_id = self.operator_ids.get(key)
        if operator_id is None:
            return Unsupported(network=key)
        return OperatorFound(operator_id=operator_id)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------
    def topup(self, phone_number: str, operator_id: int, amount) -> dict:
        """Deliver a bundle; the response body is returned untouched for auditing."""
        payload = {
            "recipientPhone": {"countryCode": "GH", "number": phone_number},
            "operatorId": operator_id,
            "amount": float(amount),
            "useLocalAmount": False,
        }
        headers = self._auth_headers()
        try:
            response = requests.post(
                f"{self.base_url}/topups",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Topup failed", extra={"error": str(e), "operator_id": operator_id})
            raise AggregatorError(f"Topup failed: {e}", upstream_message=str(e))

        if not response.ok:
            message = _error_message(response, f"HTTP {response.status_code}")
            logger.error(
                "Topup failed",
                extra={"error": message, "status_code": response.status_code, "operator_id": operator_id},
            )
            raise AggregatorError(f"Topup failed: {message}", upstream_message=message)

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            raise AggregatorError("Topup failed: invalid aggregator response")

        logger.info(
            "Topup successful",
            extra={"aggregator_transaction_id": body.get("transactionId"), "operator_id": operator_id},
        )
        return body

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------
    def check_balance(self) -> AccountBalance:
        headers = self._auth_headers()
        try:
            response = requests.get(
                f"{self.base_url}/accounts/balance",
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Failed to check balance", extra={"error": str(e)})
            raise AggregatorError(f"Failed to check balance: {e}", upstream_message=str(e))

        if not response.ok:
            message = _error_message(response, f"HTTP {response.status_code}")
            raise AggregatorError(f"Failed to check balance: {message}", upstream_message=message)

        try:
            body = response.json()
            amount = Decimal(str(body.get("balance", 0)))
        except (ValueError, ArithmeticError, AttributeError) as e:
            logger.error("Malformed balance response", extra={"error": repr(e)})
            raise AggregatorError("Failed to check balance: invalid aggregator response")
        if not amount.is_finite():
            raise AggregatorError("Failed to check balance: invalid aggregator response")
        balance = AccountBalance(
            balance=amount,
            currency=body.get("currencyCode"),
            low=amount < self.low_balance_threshold,
            raw=body,
        )

        if balance.low:
            logger.warning(
                "Low aggregator balance detected",
                extra={"balance": str(amount), "threshold": str(self.low_balance_threshold)},
            )
            if self.on_low_balance is not None:
                self.on_low_balance(balance, self.low_balance_threshold)

        return balance

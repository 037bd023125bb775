"""
Ghana phone number validation against the selected mobile network.

Accepted inputs are ``+233XXXXXXXXX``, ``233XXXXXXXXX`` and ``0XXXXXXXXX``.
Every successful result carries the canonical ``+233XXXXXXXXX`` form, which is
the only form the rest of the pipeline exchanges.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

COUNTRY_CODE = "233"

NETWORK_CONFIG: Dict[str, Dict] = {
    "mtn": {"name": "MTN", "prefixes": ("24", "54", "55", "59")},
    "telecel": {"name": "Telecel", "prefixes": ("20", "50")},
    "airteltigo": {"name": "AirtelTigo", "prefixes": ("26", "27", "56", "57")},
}

NETWORK_ALIASES = {
    "airtel": "airteltigo",
    "tigo": "airteltigo",
    "airtel-tigo": "airteltigo",
    "vodafone": "telecel",
}

PREFIX_OWNERS = {
    prefix: network
    for network, config in NETWORK_CONFIG.items()
    for prefix in config["prefixes"]
}

_CLEAN = re.compile(r"[^0-9+]")


class ValidationCode:
    INVALID_FORMAT = "INVALID_FORMAT"
    WRONG_NETWORK = "WRONG_NETWORK"
    UNKNOWN_PREFIX = "UNKNOWN_PREFIX"
    UNSUPPORTED_NETWORK = "UNSUPPORTED_NETWORK"
    INACTIVE_NUMBER = "INACTIVE_NUMBER"
    BLACKLISTED = "BLACKLISTED"
    LOOKUP_UNAVAILABLE = "LOOKUP_UNAVAILABLE"


ERROR_MESSAGES = {
    ValidationCode.INVALID_FORMAT: "Invalid Ghana phone number format. Please use formats like 024XXXXXXX or +23324XXXXXXX",
    ValidationCode.WRONG_NETWORK: "This number belongs to a different network than the one selected",
    ValidationCode.UNKNOWN_PREFIX: "This number does not belong to any supported network",
    ValidationCode.UNSUPPORTED_NETWORK: "The selected network is not supported",
    ValidationCode.INACTIVE_NUMBER: "This number is not active",
    ValidationCode.BLACKLISTED: "This number cannot receive data bundles",
    ValidationCode.LOOKUP_UNAVAILABLE: "Number verification is temporarily unavailable",
}


@dataclass(frozen=True)
class PhoneValidationResult:
    valid: bool
    formatted_e164: Optional[str] = None
    local_format: Optional[str] = None
    detected_network: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def error(self) -> Optional[str]:
        return ERROR_MESSAGES.get(self.error_code) if self.error_code else None

    def to_dict(self) -> dict:
        data = {
            "valid": self.valid,
            "phoneNumber": self.formatted_e164,
            "localFormat": self.local_format,
            "detectedNetwork": self.detected_network,
        }
        if self.error_code:
            data["code"] = self.error_code
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class NumberStatus:
    active: bool = True
    blacklisted: bool = False


class NumberLookupUnavailable(Exception):
    pass


def normalize_network(network: Optional[str]) -> str:
    if not isinstance(network, str):
        return ""
    key = network.strip().lower()
    return NETWORK_ALIASES.get(key, key)


def supported_networks() -> Dict[str, Dict]:
    return {
        network: {"name": config["name"], "prefixes": list(config["prefixes"])}
        for network, config in NETWORK_CONFIG.items()
    }


def parse_subscriber(phone_number: str) -> Optional[Tuple[str, str]]:
    """
    Split an input into (canonical e164, local) or None when the shape is wrong.
    Only strings are accepted; a JSON number has already lost its leading zero.
    """
    if not isinstance(phone_number, str):
        return None
    cleaned = _CLEAN.sub("", phone_number)
    if "+" in cleaned[1:]:
        return None

    if cleaned.startswith("+" + COUNTRY_CODE) and len(cleaned) == 13:
        subscriber = cleaned[4:]
    elif cleaned.startswith(COUNTRY_CODE) and len(cleaned) == 12:
        subscriber = cleaned[3:]
    elif cleaned.startswith("0") and len(cleaned) == 10:
        subscriber = cleaned[1:]
    else:
        return None

    if not subscriber.isdigit():
        return None
    return f"+{COUNTRY_CODE}{subscriber}", f"0{subscriber}"


class NumberLookupClient:
    """HTTP client for the optional active/blacklist check."""

    def __init__(self, url: str, api_key: str = "", timeout: float = 10):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    def check(self, e164_number: str) -> NumberStatus:
        try:
            response = requests.get(
                self.url,
                params={"number": e164_number},
                headers={"Authorization": f"Bearer {self.api_key}"} if self.api_key else {},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise NumberLookupUnavailable(str(e)) from e
        if not isinstance(data, dict):
            raise NumberLookupUnavailable("Unexpected lookup response")

        return NumberStatus(
            active=bool(data.get("active", True)),
            blacklisted=bool(data.get("blacklisted", False)),
        )


class PhoneValidator:
    def __init__(self, lookup: Optional[NumberLookupClient] = None, fail_open: bool = True):
        self.lookup = lookup
        self.fail_open = fail_open

    def validate(self, phone_number: str, network: str) -> PhoneValidationResult:
        parsed = parse_subscriber(phone_number)
        if parsed is None:
            return PhoneValidationResult(valid=False, error_code=ValidationCode.INVALID_FORMAT)

        e164, local = parsed
        prefix = e164[4:6]
        detected = PREFIX_OWNERS.get(prefix)
        selected = normalize_network(network)

        if selected not in NETWORK_CONFIG:
            return PhoneValidationResult(
                valid=False, formatted_e164=e164, local_format=local,
                detected_network=detected, error_code=ValidationCode.UNSUPPORTED_NETWORK,
            )
        if detected is None:
            return PhoneValidationResult(
                valid=False, formatted_e164=e164, local_format=local,
                error_code=ValidationCode.UNKNOWN_PREFIX,
            )
        if detected != selected:
            return PhoneValidationResult(
                valid=False, formatted_e164=e164, local_format=local,
                detected_network=detected, error_code=ValidationCode.WRONG_NETWORK,
            )

        status_code = self._check_status(e164)
        return PhoneValidationResult(
            valid=status_code is None,
            formatted_e164=e164,
            local_format=local,
            detected_network=detected,
            error_code=status_code,
        )

    def _check_status(self, e164: str) -> Optional[str]:
        if self.lookup is None:
            return None

        try:
            status = self.lookup.check(e164)
        except NumberLookupUnavailable as e:
            if self.fail_open:
                logger.warning(
                    "Number lookup unavailable, accepting number",
                    extra={"error": str(e), "policy": "fail_open"},
                )
                return None
            logger.warning(
                "Number lookup unavailable, rejecting number",
                extra={"error": str(e), "policy": "fail_closed"},
            )
            return ValidationCode.LOOKUP_UNAVAILABLE

        if status.blacklisted:
            return ValidationCode.BLACKLISTED
        if not status.active:
            return ValidationCode.INACTIVE_NUMBER
        return None

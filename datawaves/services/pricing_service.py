"""
Customer-facing pricing.

``MarkupTable`` owns the per-network markup percentages for the process. Reads
see an immutable snapshot so they never take the lock; writes are serialized by
a single writer lock and publish a new snapshot atomically.
"""

import logging
import threading
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from datawaves.errors import ValidationError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        number = None
    if number is None or not number.is_finite():
        raise ValidationError(f"Invalid numeric value: {value!r}", code="INVALID_NUMBER")
    return number


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class MarkupTable:
    def __init__(self, markups: Optional[Mapping[str, object]] = None,
                 on_update: Optional[Callable[[str, Decimal], None]] = None):
        self._write_lock = threading.Lock()
        self._on_update = on_update
        self._snapshot = MappingProxyType({
            network.lower(): self._checked(value)
            for network, value in (markups or {}).items()
        })

    @staticmethod
    def _checked(value) -> Decimal:
        markup = to_decimal(value)
        if markup < 0:
            raise ValidationError("Markup must be zero or greater", code="INVALID_MARKUP")
        return markup

    def get(self, network: str) -> Decimal:
        """Markup for a network; networks without an entry pass through at 0."""
        return self._snapshot.get((network or "").lower(), Decimal("0"))

    def all(self) -> Mapping[str, Decimal]:
        return self._snapshot

    def set(self, network: str, markup, **context) -> Decimal:
        network = network.lower()
        value = self._checked(markup)
        with self._write_lock:
            if self._on_update is not None:
                self._on_update(network, value, **context)
            updated = dict(self._snapshot)
            updated[network] = value
            self._snapshot = MappingProxyType(updated)
        logger.info("Markup updated", extra={"network": network, "markup": str(value)})
        return value

    def load(self, markups: Mapping[str, object]) -> None:
        """Replace entries from a persisted mapping (startup only)."""
        with self._write_lock:
            updated = dict(self._snapshot)
            for network, value in markups.items():
                updated[network.lower()] = self._checked(value)
            self._snapshot = MappingProxyType(updated)


class PricingService:
    def __init__(self, markups: MarkupTable):
        self.markups = markups

    def price(self, base_price, network: str) -> Decimal:
        """customer_price = base_price * (1 + markup / 100)"""
        markup = self.markups.get(network)
        return to_decimal(base_price) * (1 + markup / Decimal(100))

    def charge_amount(self, base_price, network: str) -> Decimal:
        """Price rounded to the currency's minor unit, as charged and stored."""
        return round_money(self.price(base_price, network))

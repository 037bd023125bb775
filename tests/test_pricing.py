import threading
from decimal import Decimal
from unittest.mock import Mock

import pytest

from datawaves.errors import ValidationError
from datawaves.services.pricing_service import MarkupTable, PricingService, round_money, to_decimal


@pytest.fixture()
def markups():
    return MarkupTable({"mtn": 5, "telecel": "7.5", "AirtelTigo": 6})


@pytest.mark.parametrize("base_price", ["0", "1.00", "4.80", "20.00", "37.99", "150"])
@pytest.mark.parametrize("network", ["mtn", "telecel", "airteltigo"])
def test_price_applies_network_markup(markups, base_price, network):
    pricing = PricingService(markups)
    expected = Decimal(base_price) * (1 + markups.get(network) / Decimal(100))

    assert pricing.price(base_price, network) == expected


def test_unconfigured_network_passes_through(markups):
    pricing = PricingService(markups)

    assert markups.get("glo") == Decimal("0")
    assert pricing.price(Decimal("12.34"), "glo") == Decimal("12.34")


def test_network_lookup_is_case_insensitive(markups):
    assert markups.get("MTN") == Decimal("5")
    assert markups.get("airteltigo") == Decimal("6")


def test_charge_amount_rounds_to_minor_unit(markups):
    pricing = PricingService(markups)

    assert pricing.charge_amount("20.00", "mtn") == Decimal("21.00")
    # 4.80 * 1.075 = 5.16
    assert pricing.charge_amount("4.80", "telecel") == Decimal("5.16")
    assert pricing.charge_amount("9.99", "telecel") == Decimal("10.74")


def test_round_money_half_up():
    assert round_money("2.005") == Decimal("2.01")
    assert round_money(Decimal("2.004")) == Decimal("2.00")


@pytest.mark.parametrize("value", ["abc", "", None, "NaN", "Infinity"])
def test_to_decimal_rejects_non_numbers(value):
    with pytest.raises(ValidationError) as exc_info:
        to_decimal(value)

    assert exc_info.value.code == "INVALID_NUMBER"


def test_set_rejects_negative_markup(markups):
    with pytest.raises(ValidationError) as exc_info:
        markups.set("mtn", -1)

    assert exc_info.value.code == "INVALID_MARKUP"
    assert markups.get("mtn") == Decimal("5")


def test_set_publishes_new_snapshot_and_calls_hook():
    on_update = Mock()
    markups = MarkupTable({"mtn": 5}, on_update=on_update)
    before = markups.all()

    markups.set("MTN", "8.5", updated_by=7)

    assert markups.get("mtn") == Decimal("8.5")
    assert before["mtn"] == Decimal("5")
    on_update.assert_called_once_with("mtn", Decimal("8.5"), updated_by=7)


def test_failed_persist_leaves_table_unchanged():
    on_update = Mock(side_effect=RuntimeError("database unavailable"))
    markups = MarkupTable({"mtn": 5}, on_update=on_update)

    with pytest.raises(RuntimeError):
        markups.set("mtn", 9)

    assert markups.get("mtn") == Decimal("5")


def test_snapshot_is_read_only(markups):
    with pytest.raises(TypeError):
        markups.all()["mtn"] = Decimal("99")


def test_load_overrides_defaults(markups):
    markups.load({"mtn": Decimal("3.25"), "glo": 4})

    assert markups.get("mtn") == Decimal("3.25")
    assert markups.get("glo") == Decimal("4")
    assert markups.get("telecel") == Decimal("7.5")


def test_concurrent_writers_and_readers():
    markups = MarkupTable({"mtn": 0})
    pricing = PricingService(markups)
    seen = []

    def writer(value):
        markups.set("mtn", value)

    def reader():
        for _ in range(200):
            seen.append(pricing.price(100, "mtn"))

    threads = [threading.Thread(target=writer, args=(v,)) for v in range(1, 21)]
    threads += [threading.Thread(target=reader) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    valid = {Decimal(100) * (1 + Decimal(v) / Decimal(100)) for v in range(0, 21)}
    assert set(seen) <= valid
    assert markups.get("mtn") in {Decimal(v) for v in range(1, 21)}

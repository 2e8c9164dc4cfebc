"""Unit tests for fare computation."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from busbooking.models.bus import FeeType
from busbooking.services.pricing import quote_fare, seat_price

FARES = [SimpleNamespace(boarding_point="Colombo", dropping_point="Kandy", price=Decimal("1200"))]


def test_route_fare_overrides_base_price():
    assert seat_price(1000, FARES, "Colombo", "Kandy") == Decimal("1200.00")
    assert seat_price(1000, FARES, "Colombo", "Matale") == Decimal("1000.00")


def test_percentage_fee_on_route_fare():
    quote = quote_fare(
        1000, 2,
        fee_type=FeeType.PERCENTAGE,
        fee_value=10,
        fares=FARES,
        boarding_point="Colombo",
        dropping_point="Kandy",
    )

    assert quote.price_per_seat == Decimal("1200.00")
    assert quote.base_amount == Decimal("2400.00")
    assert quote.convenience_fee == Decimal("240.00")
    assert quote.total_amount == Decimal("2640.00")


def test_fixed_fee_is_charged_per_seat():
    quote = quote_fare(Decimal("850.50"), 3, fee_type="fixed", fee_value=Decimal("25"))

    assert quote.base_amount == Decimal("2551.50")
    assert quote.convenience_fee == Decimal("75.00")
    assert quote.total_amount == Decimal("2626.50")


def test_fee_can_be_excluded():
    quote = quote_fare(1000, 2, fee_type=FeeType.PERCENTAGE, fee_value=10, include_fee=False)
    assert quote.convenience_fee == Decimal("0.00")
    assert quote.total_amount == Decimal("2000.00")


def test_percentage_fee_rounds_half_up():
    quote = quote_fare(Decimal("10.05"), 1, fee_type=FeeType.PERCENTAGE, fee_value=5)
    # 10.05 * 5% = 0.5025
    assert quote.convenience_fee == Decimal("0.50")

    quote = quote_fare(Decimal("10.10"), 1, fee_type=FeeType.PERCENTAGE, fee_value=5)
    # 10.10 * 5% = 0.505
    assert quote.convenience_fee == Decimal("0.51")


def test_negative_seat_count_rejected():
    with pytest.raises(ValueError):
        quote_fare(1000, -1)


def test_unknown_fee_type_rejected():
    with pytest.raises(ValueError):
        quote_fare(1000, 1, fee_type="per-mile", fee_value=1)

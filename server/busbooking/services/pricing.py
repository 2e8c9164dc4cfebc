"""Server-side fare computation."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from ..models.bus import FeeType

CENT = Decimal("0.01")


@dataclass(frozen=True)
class FareQuote:
    """Price breakdown of one booking."""

    price_per_seat: Decimal
    seat_count: int
    base_amount: Decimal
    convenience_fee: Decimal
    total_amount: Decimal


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def seat_price(
    base_price,
    fares: Iterable = (),
    boarding_point: Optional[str] = None,
    dropping_point: Optional[str] = None,
) -> Decimal:
    """Fare for the boarding/dropping pair when one is configured, else the base price."""
    for fare in fares:
        if fare.boarding_point == boarding_point and fare.dropping_point == dropping_point:
            return _money(fare.price)
    return _money(base_price)


def quote_fare(
    base_price,
    seat_count: int,
    fee_type: FeeType | str = FeeType.FIXED,
    fee_value=0,
    fares: Iterable = (),
    boarding_point: Optional[str] = None,
    dropping_point: Optional[str] = None,
    include_fee: bool = True,
) -> FareQuote:
    """
    Compute the amounts charged for a booking.

    A fixed fee is charged per seat; a percentage fee is taken of the base
    amount. Client-supplied amounts are never consulted.

    Example:
        >>> quote_fare(1200, 2, FeeType.PERCENTAGE, 10).total_amount
        Decimal('2640.00')
    """
    if seat_count < 0:
        raise ValueError("seat_count must not be negative")

    price = seat_price(base_price, fares, boarding_point, dropping_point)
    base_amount = _money(price * seat_count)

    fee = Decimal("0")
    if include_fee:
        value = Decimal(str(fee_value or 0))
        if FeeType(fee_type) is FeeType.PERCENTAGE:
            fee = base_amount * value / Decimal(100)
        else:
            fee = value * seat_count
    convenience_fee = _money(fee)

    return FareQuote(
        price_per_seat=price,
        seat_count=seat_count,
        base_amount=base_amount,
        convenience_fee=convenience_fee,
        total_amount=_money(base_amount + convenience_fee),
    )

"""Normalise the accepted booking body shapes into one draft."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.exceptions import ValidationError
from ..schemas.booking import BookingInput
from ..schemas.trip import TripKey

DEFAULT_GENDER = "M"


def normalize_gender(value: Optional[str]) -> str:
    """Seat genders are stored as "F" or "M"; anything not female maps to "M"."""
    if value is not None and str(value).strip().upper() in ("F", "FEMALE"):
        return "F"
    return DEFAULT_GENDER


@dataclass
class BookingDraft:
    """Validated booking content, independent of the body shape it came from."""

    trip: TripKey
    seats: List[str]
    seat_allocations: List[Dict[str, str]]
    passengers: List[Dict] = field(default_factory=list)
    contact_name: str = "N/A"
    contact_mobile: str = "N/A"
    contact_nic: str = "N/A"
    contact_email: Optional[str] = None
    boarding_point: Optional[str] = None
    dropping_point: Optional[str] = None

    @property
    def seat_genders(self) -> Dict[str, str]:
        return {allocation["seat"]: allocation["gender"] for allocation in self.seat_allocations}


def normalize_booking_input(request: BookingInput) -> BookingDraft:
    """
    Turn a booking body into a ``BookingDraft``.

    Seats come from ``seat_allocations``, else ``selected_seats``, else
    ``passengers``. Seat genders come from the explicit allocation, else the
    passenger sitting in the seat, else the default.

    Raises:
        ValidationError: If the body is incomplete or inconsistent
    """
    allocations = request.seat_allocations or []
    selected = request.selected_seats or []
    passengers = request.passengers or []

    if allocations and selected and len(allocations) != len(selected):
        raise ValidationError(
            detail="seat_allocations and selected_seats must have the same length",
            errors={"seat_allocations": len(allocations), "selected_seats": len(selected)},
        )

    if allocations:
        seats = [allocation.seat for allocation in allocations]
    elif selected:
        seats = list(selected)
    else:
        seats = [passenger.seat for passenger in passengers]

    seats = [seat.strip() for seat in seats]
    if not seats or any(not seat for seat in seats):
        raise ValidationError(detail="At least one seat must be selected")

    duplicates = sorted({seat for seat in seats if seats.count(seat) > 1})
    if duplicates:
        raise ValidationError(
            detail=f"Duplicate seats in request: {', '.join(duplicates)}",
            errors={"seats": duplicates},
        )

    if passengers:
        passenger_seats = [passenger.seat for passenger in passengers]
        if len(passenger_seats) != len(seats) or set(passenger_seats) != set(seats):
            raise ValidationError(
                detail="Passenger seats must match the selected seats",
                errors={"seats": seats, "passenger_seats": passenger_seats},
            )

    contact = request.passenger
    if contact is None:
        raise ValidationError(detail="Passenger contact details are required")

    if request.boarding is None or request.dropping is None:
        raise ValidationError(detail="Boarding and dropping points are required")

    explicit = {allocation.seat: allocation.gender for allocation in allocations if allocation.gender}
    by_passenger = {passenger.seat: passenger.gender for passenger in passengers if passenger.gender}
    seat_allocations = [
        {"seat": seat, "gender": normalize_gender(explicit.get(seat) or by_passenger.get(seat))}
        for seat in seats
    ]

    return BookingDraft(
        trip=request.trip,
        seats=seats,
        seat_allocations=seat_allocations,
        passengers=[
            {
                "seat": passenger.seat,
                "name": passenger.name,
                "age": passenger.age,
                "gender": normalize_gender(passenger.gender),
            }
            for passenger in passengers
        ],
        contact_name=contact.name.strip(),
        contact_mobile=contact.mobile.strip(),
        contact_nic=(contact.nic or "").strip() or "N/A",
        contact_email=contact.email,
        boarding_point=request.boarding.point.strip(),
        dropping_point=request.dropping.point.strip(),
    )

"""Booking-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.booking import PaymentStatus
from .trip import TripFields


class RoutePoint(BaseModel):
    """Boarding or dropping point chosen by the passenger."""

    point: str = Field(..., min_length=1, max_length=255, description="Stop name")
    time: Optional[str] = Field(None, description="Scheduled time at the stop")


class PassengerContact(BaseModel):
    """Contact details stored with the booking."""

    name: str = Field(..., min_length=1, max_length=255, description="Contact name")
    mobile: str = Field(..., min_length=1, max_length=64, description="Contact phone number")
    nic: Optional[str] = Field(None, max_length=64, description="National identity card number")
    email: Optional[str] = Field(None, max_length=255, description="Contact email")


class SeatAllocation(BaseModel):
    """Seat with the gender of the passenger sitting in it."""

    seat: str = Field(..., description="Seat label")
    gender: Optional[str] = Field(None, description="Passenger gender, M or F")

    @field_validator("seat", mode="before")
    @classmethod
    def coerce_seat(cls, v):
        return str(v).strip()


class PassengerDetail(BaseModel):
    """Per-seat passenger details."""

    seat: str = Field(..., description="Seat label")
    name: str = Field(..., min_length=1, max_length=255, description="Passenger name")
    age: Optional[int] = Field(None, ge=0, le=150, description="Passenger age")
    gender: Optional[str] = Field(None, description="Passenger gender, M or F")

    @field_validator("seat", mode="before")
    @classmethod
    def coerce_seat(cls, v):
        return str(v).strip()


class BookingInput(TripFields):
    """Booking body shared by user commits and operator manual bookings.

    Seats may arrive as a flat ``selected_seats`` list, as structured
    ``seat_allocations`` or only through ``passengers``.
    """

    selected_seats: Optional[List[str]] = Field(None, description="Flat list of seat labels")
    seat_allocations: Optional[List[SeatAllocation]] = Field(None, description="Seats with passenger gender")
    passengers: Optional[List[PassengerDetail]] = Field(None, description="Passenger details per seat")
    passenger: Optional[PassengerContact] = Field(None, description="Booking contact")
    boarding: Optional[RoutePoint] = Field(None, description="Boarding point")
    dropping: Optional[RoutePoint] = Field(None, description="Dropping point")

    @field_validator("selected_seats", mode="before")
    @classmethod
    def coerce_seats(cls, v):
        if v is None:
            return v
        if not isinstance(v, list):
            raise ValueError("selected_seats must be a list")
        return [str(seat).strip() for seat in v]


class CommitBookingRequest(BookingInput):
    """Request schema for committing a booking over held seats."""

    client_id: Optional[str] = Field(None, max_length=255, description="Client token used when locking")


class ManualBookingRequest(BookingInput):
    """Request schema for an operator-entered booking."""

    payment_status: PaymentStatus = Field(PaymentStatus.MANUAL, description="Manual or PaidToOperator")

    @field_validator("payment_status")
    @classmethod
    def validate_manual_status(cls, v: PaymentStatus) -> PaymentStatus:
        if v not in (PaymentStatus.MANUAL, PaymentStatus.PAID_TO_OPERATOR):
            raise ValueError("payment_status must be Manual or PaidToOperator")
        return v


class CancelBookingRequest(BaseModel):
    """Request schema for cancelling a booking."""

    booking_id: str = Field(..., description="Booking to cancel")


class ListBookingsRequest(BaseModel):
    """Request schema for listing the caller's bookings."""

    limit: int = Field(50, ge=1, le=200, description="Maximum number of bookings returned")


class SearchBookingsRequest(BaseModel):
    """Request schema for the administrator's booking search.

    Every filter is optional; text filters match case-insensitively on a
    substring.
    """

    date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$", description="Trip date (YYYY-MM-DD)")
    route_from: Optional[str] = Field(None, max_length=255, description="Substring of the bus origin")
    route_to: Optional[str] = Field(None, max_length=255, description="Substring of the bus destination")
    user_email: Optional[str] = Field(None, max_length=255, description="Substring of the contact email")
    limit: int = Field(100, ge=1, le=500, description="Maximum number of bookings returned")


class Booking(BaseModel):
    """Booking response schema."""

    id: str = Field(..., description="Unique booking ID")
    code: str = Field(..., description="Booking confirmation code")
    bus_id: str = Field(..., description="Bus of the trip")
    date: str = Field(..., description="Trip date")
    departure_time: str = Field(..., description="Trip departure time")
    seats: List[str] = Field(..., description="Booked seat labels")
    seat_allocations: List[SeatAllocation] = Field(default_factory=list, description="Seat genders")
    passengers: List[PassengerDetail] = Field(default_factory=list, description="Passenger details")
    contact_name: str = Field(..., description="Contact name")
    contact_mobile: str = Field(..., description="Contact phone number")
    contact_nic: str = Field(..., description="Contact identity number")
    contact_email: Optional[str] = Field(None, description="Contact email")
    boarding_point: Optional[str] = Field(None, description="Boarding point")
    dropping_point: Optional[str] = Field(None, description="Dropping point")
    price_per_seat: Decimal = Field(..., description="Fare charged per seat")
    base_amount: Decimal = Field(..., description="Fare times seat count")
    convenience_fee: Decimal = Field(..., description="Convenience fee")
    total_amount: Decimal = Field(..., description="Amount charged")
    payment_status: PaymentStatus = Field(..., description="Payment status")
    is_manual: bool = Field(False, description="Entered by operator staff")
    user_id: Optional[str] = Field(None, description="Owning user")
    booked_by: Optional[str] = Field(None, description="Operator that entered the booking")
    created_at: datetime = Field(..., description="Booking creation time (ISO 8601)")

    @classmethod
    def from_model(cls, booking) -> "Booking":
        """Build the response from a ``models.Booking`` row."""
        return cls(
            id=str(booking.id),
            code=booking.code,
            bus_id=str(booking.bus_id),
            date=booking.trip_date,
            departure_time=booking.departure_time,
            seats=list(booking.seats),
            seat_allocations=booking.seat_allocations or [],
            passengers=booking.passengers or [],
            contact_name=booking.contact_name,
            contact_mobile=booking.contact_mobile,
            contact_nic=booking.contact_nic,
            contact_email=booking.contact_email,
            boarding_point=booking.boarding_point,
            dropping_point=booking.dropping_point,
            price_per_seat=booking.price_per_seat,
            base_amount=booking.base_amount,
            convenience_fee=booking.convenience_fee,
            total_amount=booking.total_amount,
            payment_status=booking.payment_status,
            is_manual=booking.is_manual,
            user_id=booking.user_id,
            booked_by=booking.booked_by,
            created_at=booking.created_at,
        )


class BookingList(BaseModel):
    """List of bookings, newest first."""

    items: List[Booking] = Field(default_factory=list, description="Bookings")


class CancelBookingResponse(BaseModel):
    """Response schema for a cancellation."""

    ok: bool = Field(True, description="Cancellation succeeded")
    booking_id: str = Field(..., description="Cancelled booking ID")
    released_seats: List[str] = Field(default_factory=list, description="Seats freed by the cancellation")

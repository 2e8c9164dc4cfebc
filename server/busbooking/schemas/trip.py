"""Trip key and availability schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class TripFields(BaseModel):
    """Fields identifying one run of one bus; shared by every trip-scoped request."""

    bus_id: UUID = Field(..., description="Bus running the trip")
    date: str = Field(..., pattern=DATE_PATTERN, description="Calendar day (YYYY-MM-DD)")
    departure_time: str = Field(..., pattern=TIME_PATTERN, description="Departure time (HH:MM)")

    @field_validator("date")
    @classmethod
    def validate_calendar_day(cls, v: str) -> str:
        """Reject strings that match the pattern but are not real days."""
        datetime.strptime(v, "%Y-%m-%d")
        return v

    @property
    def trip(self) -> "TripKey":
        """The trip key carried by this request."""
        return TripKey(bus_id=self.bus_id, date=self.date, departure_time=self.departure_time)


class TripKey(TripFields):
    """Composite key of a bookable unit: (bus, date, departure time)."""

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.bus_id}/{self.date}/{self.departure_time}"


class AvailabilityRequest(TripFields):
    """Request schema for the seat map of a trip."""


class SeatAvailability(BaseModel):
    """Seat map of one trip, computed fresh on every request."""

    bus_id: str = Field(..., description="Bus running the trip")
    date: str = Field(..., description="Calendar day")
    departure_time: str = Field(..., description="Departure time")
    total_seats: int = Field(..., ge=0, description="Seat positions in the bus layout")
    available_count: int = Field(..., ge=0, description="Seats neither booked nor locked")
    booked_seats: list[str] = Field(default_factory=list, description="Seats of confirmed bookings")
    locked_seats: list[str] = Field(default_factory=list, description="Seats under an unexpired hold")
    unavailable_seats: list[str] = Field(default_factory=list, description="Union of booked and locked seats")
    seat_gender_map: dict[str, str] = Field(default_factory=dict, description="Seat to passenger gender")


class BookedSeatsResponse(BaseModel):
    """Confirmed seats of a trip without hold information."""

    booked_seats: list[str] = Field(default_factory=list, description="Seats of confirmed bookings")
    seat_gender_map: dict[str, str] = Field(default_factory=dict, description="Seat to passenger gender")

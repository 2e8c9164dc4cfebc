"""Seat lock Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .trip import TripFields


def _seat_labels(v):
    """Accept numeric seat labels from clients and keep them as strings."""
    if v is None:
        return v
    if not isinstance(v, list):
        raise ValueError("seats must be a list")
    return [str(seat).strip() for seat in v]


class SeatLockReason:
    """Reasons reported for seats that could not be locked."""
    ALREADY_BOOKED = "already booked"
    HELD_BY_ANOTHER_OWNER = "held by another owner"


class AcquireLocksRequest(TripFields):
    """Request schema for holding seats on a trip."""

    seats: list[str] = Field(..., description="Seat labels to hold")
    seat_genders: dict[str, str] | None = Field(None, description="Optional passenger gender per seat")
    ttl_minutes: int | None = Field(None, description="Hold duration; server default when omitted")
    client_id: str | None = Field(None, max_length=255, description="Stable client token for guests")

    _normalize_seats = field_validator("seats", mode="before")(_seat_labels)


class ReleaseLocksRequest(TripFields):
    """Request schema for releasing held seats."""

    seats: list[str] = Field(..., description="Seat labels to release")
    client_id: str | None = Field(None, max_length=255, description="Stable client token for guests")

    _normalize_seats = field_validator("seats", mode="before")(_seat_labels)


class RemainingHoldRequest(TripFields):
    """Request schema for the remaining hold time."""

    seats: list[str] | None = Field(None, description="Restrict to these seats")
    client_id: str | None = Field(None, max_length=255, description="Stable client token for guests")

    _normalize_seats = field_validator("seats", mode="before")(_seat_labels)


class SeatLockResult(BaseModel):
    """Outcome of locking one seat."""

    seat: str = Field(..., description="Seat label")
    ok: bool = Field(..., description="Whether the caller now holds the seat")
    reason: str | None = Field(None, description="Why the seat could not be locked")
    expires_at: datetime | None = Field(None, description="Hold expiry when ok")


class LockAcquisition(BaseModel):
    """Per-seat results of an acquire call; partial success is normal."""

    ok: bool = Field(..., description="True when every seat was locked")
    results: list[SeatLockResult] = Field(..., description="Per-seat outcome in request order")
    expires_at: datetime = Field(..., description="Expiry applied to the seats locked by this call")
    lock_duration_ms: int = Field(..., ge=0, description="Hold duration in milliseconds")

    @property
    def locked_seats(self) -> list[str]:
        return [result.seat for result in self.results if result.ok]

    @property
    def failed_seats(self) -> list[str]:
        return [result.seat for result in self.results if not result.ok]


class LockRelease(BaseModel):
    """Response schema for a release call."""

    ok: bool = Field(True, description="Release never fails for foreign seats")
    released: int = Field(..., ge=0, description="Number of locks deleted")


class LockRemaining(BaseModel):
    """Time left on the soonest-expiring hold of an owner."""

    remaining_ms: int = Field(..., ge=0, description="Milliseconds until the soonest expiry")
    expires_at: datetime | None = Field(None, description="Soonest expiry, None when nothing is held")

"""Bus-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field, field_validator

from ..models.bus import SEAT_LABEL_MAX_LENGTH, FeeType


class FareOverride(BaseModel):
    """Fare for a specific boarding/dropping pair."""

    boarding_point: str = Field(..., min_length=1, max_length=255, description="Boarding stop")
    dropping_point: str = Field(..., min_length=1, max_length=255, description="Dropping stop")
    price: Decimal = Field(..., ge=0, description="Fare per seat for this pair")


class CreateBusRequest(BaseModel):
    """Request schema for creating a bus."""

    name: str = Field(..., min_length=1, max_length=255, description="Bus name")
    route_from: str = Field(..., min_length=1, max_length=255, description="Route origin")
    route_to: str = Field(..., min_length=1, max_length=255, description="Route destination")
    seat_layout: List[str] = Field(..., min_length=1, description="Ordered seat labels")
    price: Decimal = Field(..., ge=0, description="Base fare per seat")
    fee_type: FeeType = Field(FeeType.FIXED, description="Convenience fee model")
    fee_value: Decimal = Field(Decimal("0"), ge=0, description="Fee per seat or percentage")
    fares: List[FareOverride] = Field(default_factory=list, description="Route-specific fares")

    @field_validator("seat_layout", mode="before")
    @classmethod
    def coerce_layout(cls, v):
        if not isinstance(v, list):
            raise ValueError("seat_layout must be a list")
        return [str(seat).strip() for seat in v]

    @field_validator("seat_layout")
    @classmethod
    def validate_unique_labels(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("seat labels must be unique")
        if any(not seat for seat in v):
            raise ValueError("seat labels must not be empty")
        too_long = [seat for seat in v if len(seat) > SEAT_LABEL_MAX_LENGTH]
        if too_long:
            raise ValueError(f"seat labels must be at most {SEAT_LABEL_MAX_LENGTH} characters: {too_long}")
        return v


class GetBusRequest(BaseModel):
    """Request schema for getting a bus."""

    bus_id: str = Field(..., description="Bus to retrieve")


class Bus(BaseModel):
    """Bus response schema."""

    id: str = Field(..., description="Unique bus ID")
    name: str = Field(..., description="Bus name")
    route_from: str = Field(..., description="Route origin")
    route_to: str = Field(..., description="Route destination")
    operator_id: str = Field(..., description="Owning operator")
    seat_layout: List[str] = Field(..., description="Ordered seat labels")
    total_seats: int = Field(..., ge=0, description="Seat count")
    price: Decimal = Field(..., description="Base fare per seat")
    fee_type: FeeType = Field(..., description="Convenience fee model")
    fee_value: Decimal = Field(..., description="Fee per seat or percentage")
    fares: List[FareOverride] = Field(default_factory=list, description="Route-specific fares")
    created_at: datetime = Field(..., description="Creation time (ISO 8601)")

    @classmethod
    def from_model(cls, bus) -> "Bus":
        """Build the response from a ``models.Bus`` row with fares loaded."""
        return cls(
            id=str(bus.id),
            name=bus.name,
            route_from=bus.route_from,
            route_to=bus.route_to,
            operator_id=bus.operator_id,
            seat_layout=list(bus.seat_layout),
            total_seats=bus.total_seats,
            price=bus.price,
            fee_type=bus.fee_type,
            fee_value=bus.fee_value,
            fares=[
                FareOverride(
                    boarding_point=fare.boarding_point,
                    dropping_point=fare.dropping_point,
                    price=fare.price,
                )
                for fare in bus.fares
            ],
            created_at=bus.created_at,
        )

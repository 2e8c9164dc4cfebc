"""Seat lock model definition."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, utcnow

from .bus import SEAT_LABEL_MAX_LENGTH

if TYPE_CHECKING:
    from .bus import Bus


class SeatLock(Base):
    """
    Short-lived exclusive claim on one seat of one trip.

    A row whose ``expires_at`` has passed is dead even before the sweep
    deletes it; every query filters on it.
    """

    __tablename__ = "seat_locks"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Trip key
    bus_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("buses.id", ondelete="CASCADE"),
        nullable=False
    )
    trip_date: Mapped[str] = mapped_column(String(10), nullable=False)
    departure_time: Mapped[str] = mapped_column(String(5), nullable=False)
    seat_number: Mapped[str] = mapped_column(String(SEAT_LABEL_MAX_LENGTH), nullable=False)

    # Ownership
    owner_key: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    locked_by: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)

    # Passenger gender tag for seating UI, "M" or "F"
    gender: Mapped[str | None] = mapped_column(String(1), nullable=True)

    locked_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now()
    )

    # Constraints
    __table_args__ = (
        # One lock row per seat per trip; acquire upserts against this key
        UniqueConstraint(
            "bus_id", "trip_date", "departure_time", "seat_number",
            name="uq_seat_lock_trip_seat"
        ),
        Index("ix_seat_locks_trip", "bus_id", "trip_date", "departure_time"),
        CheckConstraint("length(owner_key) > 0", name="ck_seat_lock_owner_key_not_empty"),
        CheckConstraint("length(seat_number) > 0", name="ck_seat_lock_seat_number_not_empty"),
        CheckConstraint("gender IS NULL OR gender IN ('M', 'F')", name="ck_seat_lock_gender_valid"),
    )

    # Relationships
    bus: Mapped["Bus"] = relationship("Bus")

    def __repr__(self) -> str:
        return (
            f"<SeatLock(bus_id={self.bus_id}, date={self.trip_date}, time={self.departure_time}, "
            f"seat='{self.seat_number}', owner='{self.owner_key}', expires_at={self.expires_at})>"
        )

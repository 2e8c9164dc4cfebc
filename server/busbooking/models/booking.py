"""Booking and booked-seat model definitions."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    func,
    or_,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, utcnow

from .bus import SEAT_LABEL_MAX_LENGTH

if TYPE_CHECKING:
    from .bus import Bus


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    PENDING = "Pending"
    PAID = "Paid"
    MANUAL = "Manual"
    PAID_TO_OPERATOR = "PaidToOperator"


class Booking(Base):
    """Booking entity representing a confirmed seat assignment on one trip."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Booking confirmation code
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)

    # Owning user; None for manual bookings entered by operator staff
    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    booked_by: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Trip key
    bus_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("buses.id", ondelete="CASCADE"),
        nullable=False
    )
    trip_date: Mapped[str] = mapped_column(String(10), nullable=False)
    departure_time: Mapped[str] = mapped_column(String(5), nullable=False)

    # Seat composition
    seats: Mapped[list] = mapped_column(JSON, nullable=False)
    seat_allocations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    passengers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Contact snapshot
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False, default="N/A")
    contact_mobile: Mapped[str] = mapped_column(String(64), nullable=False, default="N/A")
    contact_nic: Mapped[str] = mapped_column(String(64), nullable=False, default="N/A")
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    boarding_point: Mapped[str | None] = mapped_column(String(255), nullable=True)
    dropping_point: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Pricing breakdown
    price_per_seat: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    base_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    convenience_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PAID.value,
        index=True
    )
    is_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

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
        Index("ix_bookings_trip", "bus_id", "trip_date", "departure_time"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint("length(code) > 0", name="ck_booking_code_not_empty"),
        CheckConstraint(
            "payment_status IN ('Pending', 'Paid', 'Manual', 'PaidToOperator')",
            name="ck_booking_payment_status_valid"
        ),
    )

    # Relationships
    bus: Mapped["Bus"] = relationship("Bus")
    booked_seats: Mapped[list["BookedSeat"]] = relationship(
        "BookedSeat",
        back_populates="booking",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @classmethod
    def confirmed(cls):
        """SQL criterion for bookings that occupy their seats."""
        return or_(cls.payment_status == PaymentStatus.PAID.value, cls.is_manual.is_(True))

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, code='{self.code}', bus_id={self.bus_id}, "
            f"date={self.trip_date}, time={self.departure_time}, seats={self.seats}, "
            f"status={self.payment_status})>"
        )


class BookedSeat(Base):
    """
    One occupied seat of a booking.

    The unique key over trip and seat makes a second booking of the same seat
    fail at insert time no matter how the surrounding checks interleave.
    """

    __tablename__ = "booked_seats"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    bus_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    trip_date: Mapped[str] = mapped_column(String(10), nullable=False)
    departure_time: Mapped[str] = mapped_column(String(5), nullable=False)
    seat_number: Mapped[str] = mapped_column(String(SEAT_LABEL_MAX_LENGTH), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "bus_id", "trip_date", "departure_time", "seat_number",
            name="uq_booked_seat_trip_seat"
        ),
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="booked_seats")

    def __repr__(self) -> str:
        return f"<BookedSeat(booking_id={self.booking_id}, seat='{self.seat_number}')>"

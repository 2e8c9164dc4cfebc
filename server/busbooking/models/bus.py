"""Bus and fare model definitions."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base, utcnow

# Widest seat label a layout may use; seat columns are sized to it
SEAT_LABEL_MAX_LENGTH = 16


class FeeType(str, Enum):
    """How a bus charges its convenience fee."""
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class Bus(Base):
    """Bus entity: the seat layout and pricing a trip is sold against."""

    __tablename__ = "buses"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Bus details
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    route_from: Mapped[str] = mapped_column(String(255), nullable=False)
    route_to: Mapped[str] = mapped_column(String(255), nullable=False)
    operator_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # Ordered seat labels, e.g. ["1", "2", "1A"]
    seat_layout: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Pricing
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    fee_type: Mapped[FeeType] = mapped_column(String(20), nullable=False, default=FeeType.FIXED.value)
    fee_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

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
        CheckConstraint("price >= 0", name="ck_bus_price_non_negative"),
        CheckConstraint("fee_value >= 0", name="ck_bus_fee_value_non_negative"),
        CheckConstraint("fee_type IN ('fixed', 'percentage')", name="ck_bus_fee_type_valid"),
    )

    # Relationships
    fares: Mapped[list["BusFare"]] = relationship(
        "BusFare",
        back_populates="bus",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def total_seats(self) -> int:
        """Number of seat positions in the layout."""
        return len(self.seat_layout or [])

    def __repr__(self) -> str:
        return (
            f"<Bus(id={self.id}, name='{self.name}', "
            f"route={self.route_from}->{self.route_to}, seats={self.total_seats})>"
        )


class BusFare(Base):
    """Route-specific fare override between a boarding and a dropping point."""

    __tablename__ = "bus_fares"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    bus_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("buses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    boarding_point: Mapped[str] = mapped_column(String(255), nullable=False)
    dropping_point: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_bus_fare_price_non_negative"),
        UniqueConstraint("bus_id", "boarding_point", "dropping_point", name="uq_bus_fare_route"),
    )

    bus: Mapped["Bus"] = relationship("Bus", back_populates="fares")

    def __repr__(self) -> str:
        return (
            f"<BusFare(bus_id={self.bus_id}, {self.boarding_point}->{self.dropping_point}, "
            f"price={self.price})>"
        )

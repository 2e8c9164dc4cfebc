"""Bus service for business logic operations."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..models.bus import Bus, BusFare
from ..schemas.bus import CreateBusRequest

logger = logging.getLogger(__name__)


def parse_uuid(value: UUID | str, resource_type: str) -> UUID:
    """Parse an identifier; malformed ids can never match a row."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundError(resource_type=resource_type, resource_id=str(value))


def ensure_seats_in_layout(bus: Bus, seats) -> None:
    """Raise ValidationError for seat labels the bus does not have."""
    unknown = [seat for seat in seats if seat not in bus.seat_layout]
    if unknown:
        raise ValidationError(
            detail=f"Seats not in the bus layout: {', '.join(unknown)}",
            errors={"seats": unknown},
        )


def ensure_bus_owner(bus: Bus, operator_id: str, is_admin: bool = False) -> None:
    """Raise AuthorizationError unless the operator runs the bus; admins act on any bus."""
    if is_admin or bus.operator_id == operator_id:
        return
    logger.warning(
        "Bus access denied - owned by another operator",
        extra={"bus_id": str(bus.id), "operator_id": operator_id}
    )
    raise AuthorizationError(detail="Operators can only act on their own buses")


class BusService:
    """Service for bus catalog operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_bus(self, request: CreateBusRequest, operator_id: str) -> Bus:
        """
        Create a bus owned by an operator.

        Args:
            request: Bus creation request
            operator_id: Operator the bus belongs to

        Returns:
            Created bus entity

        Raises:
            ConflictError: If two fare overrides share a boarding/dropping pair
        """
        bus = Bus(
            name=request.name,
            route_from=request.route_from,
            route_to=request.route_to,
            operator_id=operator_id,
            seat_layout=list(request.seat_layout),
            price=request.price,
            fee_type=request.fee_type.value,
            fee_value=request.fee_value,
            fares=[
                BusFare(
                    boarding_point=fare.boarding_point,
                    dropping_point=fare.dropping_point,
                    price=fare.price,
                )
                for fare in request.fares
            ],
        )

        try:
            self.db.add(bus)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                "Bus creation failed - integrity error",
                extra={"operator_id": operator_id, "error": str(e)}
            )
            raise ConflictError(detail="Fare overrides must have unique boarding/dropping pairs")

        logger.info(
            "Bus created successfully",
            extra={
                "bus_id": str(bus.id),
                "operator_id": operator_id,
                "total_seats": bus.total_seats
            }
        )

        return bus

    async def get_bus_by_id(self, bus_id: UUID | str) -> Optional[Bus]:
        """Get a bus with its fare overrides, or None."""
        stmt = select(Bus).where(Bus.id == parse_uuid(bus_id, "bus"))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_bus_or_raise(self, bus_id: UUID | str) -> Bus:
        """
        Get a bus by ID or raise NotFoundError.

        Raises:
            NotFoundError: If the bus does not exist
        """
        bus = await self.get_bus_by_id(bus_id)
        if not bus:
            raise NotFoundError(resource_type="bus", resource_id=str(bus_id))
        return bus

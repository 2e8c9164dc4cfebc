"""Availability service: the seat map of a trip."""

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import utcnow
from ..schemas.trip import BookedSeatsResponse, SeatAvailability, TripKey
from .bus_service import BusService, ensure_bus_owner
from .seat_lock_service import SeatLockService

logger = logging.getLogger(__name__)


def _ordered(seats, layout) -> list[str]:
    """Order seats as they appear in the bus layout; unknown labels go last."""
    position = {seat: index for index, seat in enumerate(layout)}
    return sorted(seats, key=lambda seat: (position.get(seat, len(position)), seat))


class AvailabilityService:
    """Service computing booked, locked and free seats of a trip."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.bus_service = BusService(db)
        self.seat_lock_service = SeatLockService(db, clock=clock)

    async def get_availability(self, trip: TripKey) -> SeatAvailability:
        """
        Compute the seat map of a trip.

        Recomputed on every call since lock expiry depends on the current time.

        Raises:
            NotFoundError: If the bus does not exist
        """
        bus = await self.bus_service.get_bus_or_raise(trip.bus_id)
        booked_map = await self.seat_lock_service.booked_seat_map(trip)
        locks = await self.seat_lock_service.active_locks(trip)

        booked = set(booked_map)
        locked = {lock.seat_number for lock in locks}
        unavailable = booked | locked

        return SeatAvailability(
            bus_id=str(trip.bus_id),
            date=trip.date,
            departure_time=trip.departure_time,
            total_seats=bus.total_seats,
            available_count=max(0, bus.total_seats - len(unavailable)),
            booked_seats=_ordered(booked, bus.seat_layout),
            locked_seats=_ordered(locked, bus.seat_layout),
            unavailable_seats=_ordered(unavailable, bus.seat_layout),
            seat_gender_map={seat: gender for seat, gender in booked_map.items() if gender},
        )

    async def get_booked_seats(self, trip: TripKey) -> BookedSeatsResponse:
        """Confirmed seats of a trip with their passenger genders."""
        bus = await self.bus_service.get_bus_or_raise(trip.bus_id)
        return await self._booked_seats(bus, trip)

    async def get_operator_booked_seats(
        self,
        trip: TripKey,
        operator_id: str,
        is_admin: bool = False,
    ) -> BookedSeatsResponse:
        """
        Booked seats of a trip for the operator running the bus.

        Raises:
            NotFoundError: If the bus does not exist
            AuthorizationError: If the operator does not own the bus
        """
        bus = await self.bus_service.get_bus_or_raise(trip.bus_id)
        ensure_bus_owner(bus, operator_id, is_admin)
        return await self._booked_seats(bus, trip)

    async def _booked_seats(self, bus, trip: TripKey) -> BookedSeatsResponse:
        booked_map = await self.seat_lock_service.booked_seat_map(trip)

        return BookedSeatsResponse(
            booked_seats=_ordered(booked_map, bus.seat_layout),
            seat_gender_map={seat: gender for seat, gender in booked_map.items() if gender},
        )

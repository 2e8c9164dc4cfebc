"""Trip router for seat availability queries."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db, require_roles
from ..schemas.common import Problem
from ..schemas.trip import AvailabilityRequest, BookedSeatsResponse, SeatAvailability
from ..services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/trip", tags=["trip"])

DB_DEPENDENCY = Depends(get_db)
OPERATOR_DEPENDENCY = Depends(require_roles("operator", "admin"))


@router.post("/availability", response_model=SeatAvailability)
async def get_availability(
    body: AvailabilityRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Booked, locked and free seats of a trip, computed fresh."""
    availability = await AvailabilityService(db).get_availability(body.trip)

    logger.debug(
        "Availability computed",
        extra={"trip": str(body.trip), "available_count": availability.available_count}
    )

    return JSONResponse(status_code=200, content=availability.model_dump())


@router.post("/booked-seats", response_model=BookedSeatsResponse)
async def get_booked_seats(
    body: AvailabilityRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Seats of confirmed bookings with their passenger genders."""
    booked = await AvailabilityService(db).get_booked_seats(body.trip)
    return JSONResponse(status_code=200, content=booked.model_dump())


@router.post(
    "/operator-booked-seats",
    response_model=BookedSeatsResponse,
    responses={403: {"model": Problem, "description": "Bus run by another operator"}},
)
async def get_operator_booked_seats(
    body: AvailabilityRequest,
    user: dict = OPERATOR_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Booked seats of a trip on one of the caller's own buses."""
    booked = await AvailabilityService(db).get_operator_booked_seats(
        body.trip,
        operator_id=user["user_id"],
        is_admin="admin" in user.get("roles", []),
    )
    return JSONResponse(status_code=200, content=booked.model_dump())

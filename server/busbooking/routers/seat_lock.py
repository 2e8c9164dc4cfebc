"""Seat lock router: acquire, release and inspect seat holds."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db, get_optional_user, request_owner
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.common import Problem
from ..schemas.seat_lock import (
    AcquireLocksRequest,
    LockAcquisition,
    LockRelease,
    LockRemaining,
    ReleaseLocksRequest,
    RemainingHoldRequest,
)
from ..services.seat_lock_service import SeatLockService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/seat-lock", tags=["seat-lock"])

DB_DEPENDENCY = Depends(get_db)
OPTIONAL_USER_DEPENDENCY = Depends(get_optional_user)


@router.post(
    "/acquire",
    response_model=LockAcquisition,
    responses={
        207: {"model": LockAcquisition, "description": "Some seats could not be locked"},
        400: {"model": Problem, "description": "Seat list or ttl out of bounds"},
        422: {"model": Problem, "description": "Malformed request body"},
    },
)
async def acquire_locks(
    body: AcquireLocksRequest,
    request: Request,
    user: Optional[dict] = OPTIONAL_USER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Lock seats of a trip for the caller.

    Answers 200 when every seat was locked and 207 with per-seat reasons
    when some were not.
    """
    try:
        owner = request_owner(request, user, body.client_id)
        result = await SeatLockService(db).acquire(
            trip=body.trip,
            seats=body.seats,
            owner=owner,
            ttl_minutes=body.ttl_minutes,
            seat_genders=body.seat_genders,
            user_id=user["user_id"] if user else None,
        )

        return JSONResponse(
            status_code=200 if result.ok else 207,
            content=result.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error acquiring seat locks",
            extra={"trip": str(body.trip), "seats": body.seats, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/release", response_model=LockRelease)
async def release_locks(
    body: ReleaseLocksRequest,
    request: Request,
    user: Optional[dict] = OPTIONAL_USER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Release the caller's locks; seats held by others are left alone."""
    try:
        owner = request_owner(request, user, body.client_id)
        released = await SeatLockService(db).release(body.trip, body.seats, owner)

        return JSONResponse(
            status_code=200,
            content=LockRelease(ok=True, released=released).model_dump()
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error releasing seat locks",
            extra={"trip": str(body.trip), "seats": body.seats, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/remaining", response_model=LockRemaining)
async def remaining_hold(
    body: RemainingHoldRequest,
    request: Request,
    user: Optional[dict] = OPTIONAL_USER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Milliseconds left on the caller's soonest-expiring hold for the trip."""
    try:
        owner = request_owner(request, user, body.client_id)
        result = await SeatLockService(db).remaining(body.trip, owner, seats=body.seats)

        return JSONResponse(
            status_code=200,
            content=result.model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error reading remaining hold",
            extra={"trip": str(body.trip), "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()

"""Booking router for booking operations."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import (
    get_current_user,
    get_db,
    request_client_token,
    request_ip,
    require_roles,
)
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.booking import (
    Booking,
    BookingList,
    CancelBookingRequest,
    CancelBookingResponse,
    CommitBookingRequest,
    ListBookingsRequest,
    ManualBookingRequest,
    SearchBookingsRequest,
)
from ..schemas.common import Problem
from ..services.booking_service import BookingService
from ..services.owner_resolution import OwnerIdentity, OwnerKind

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1/booking",
    tags=["booking"],
    responses={
        401: {"model": Problem, "description": "Missing or invalid bearer token"},
        422: {"model": Problem, "description": "Malformed request body"},
    },
)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
USER_DEPENDENCY = Depends(get_current_user)
OPERATOR_DEPENDENCY = Depends(require_roles("operator", "admin"))
ADMIN_DEPENDENCY = Depends(require_roles("admin"))


@router.post(
    "/commit",
    response_model=Booking,
    status_code=201,
    responses={
        409: {"model": Problem, "description": "Seat already booked or lock missing or expired"},
        503: {"model": Problem, "description": "Transaction aborted, safe to retry"},
    },
)
async def commit_booking(
    body: CommitBookingRequest,
    request: Request,
    user: dict = USER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Commit a booking over seats the caller has locked.

    Fails with 409 when a seat is already booked or the caller's lock is
    missing or expired, and with a retryable 503 when the transaction aborted.
    """
    try:
        booking = await BookingService(db).commit_booking(
            body,
            owner=OwnerIdentity(OwnerKind.USER, user["user_id"]),
            client_token=request_client_token(request, body.client_id),
            ip=request_ip(request),
        )

        return JSONResponse(
            status_code=201,
            content=Booking.from_model(booking).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error committing booking",
            extra={"trip": str(body.trip), "user_id": user["user_id"], "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/manual", response_model=Booking, status_code=201)
async def create_manual_booking(
    body: ManualBookingRequest,
    request: Request,
    user: dict = OPERATOR_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Record a booking taken by operator staff; no seat lock is needed."""
    try:
        booking = await BookingService(db).create_manual_booking(
            body,
            operator_id=user["user_id"],
            is_admin="admin" in user.get("roles", []),
            ip=request_ip(request),
        )

        return JSONResponse(
            status_code=201,
            content=Booking.from_model(booking).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error creating manual booking",
            extra={"trip": str(body.trip), "operator_id": user["user_id"], "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/cancel", response_model=CancelBookingResponse)
async def cancel_booking(
    body: CancelBookingRequest,
    request: Request,
    user: dict = USER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Cancel one of the caller's bookings and free its seats."""
    try:
        result = await BookingService(db).cancel_booking(
            body.booking_id,
            user_id=user["user_id"],
            ip=request_ip(request),
        )

        return JSONResponse(status_code=200, content=result.model_dump())

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error cancelling booking",
            extra={"booking_id": body.booking_id, "user_id": user["user_id"], "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/mine", response_model=BookingList)
async def list_my_bookings(
    body: ListBookingsRequest,
    user: dict = USER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """The caller's bookings, newest first."""
    bookings = await BookingService(db).list_user_bookings(user["user_id"], limit=body.limit)

    response_data = BookingList(items=[Booking.from_model(booking) for booking in bookings])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post(
    "/search",
    response_model=BookingList,
    responses={403: {"model": Problem, "description": "Admin role required"}},
)
async def search_bookings(
    body: SearchBookingsRequest,
    user: dict = ADMIN_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """All bookings, filtered by trip date, route and contact email; admins only."""
    bookings = await BookingService(db).list_bookings(body)

    response_data = BookingList(items=[Booking.from_model(booking) for booking in bookings])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

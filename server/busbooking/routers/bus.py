"""Bus router for the catalog records bookings are priced against."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db, require_roles
from ..schemas.bus import Bus, CreateBusRequest, GetBusRequest
from ..services.bus_service import BusService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/bus", tags=["bus"])

DB_DEPENDENCY = Depends(get_db)
OPERATOR_DEPENDENCY = Depends(require_roles("operator", "admin"))


@router.post("/create", response_model=Bus, status_code=201)
async def create_bus(
    body: CreateBusRequest,
    user: dict = OPERATOR_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Create a bus owned by the calling operator."""
    bus = await BusService(db).create_bus(body, operator_id=user["user_id"])
    return JSONResponse(status_code=201, content=Bus.from_model(bus).model_dump(mode="json"))


@router.post("/get", response_model=Bus)
async def get_bus(
    body: GetBusRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Get a bus with its seat layout and fares."""
    bus = await BusService(db).get_bus_or_raise(body.bus_id)
    return JSONResponse(status_code=200, content=Bus.from_model(bus).model_dump(mode="json"))

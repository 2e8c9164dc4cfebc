"""Health check router."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core.database import utcnow
from ..schemas.health import HealthResponse, HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/health", tags=["health"])


@router.post("/ping", response_model=HealthResponse)
async def health_ping() -> JSONResponse:
    """Liveness ping answering with the server time."""
    response_data = HealthResponse(
        status=HealthStatus.HEALTHY,
        timestamp=utcnow(),
        version="1.0.0"
    )

    logger.debug("Health ping", extra={"timestamp": response_data.timestamp.isoformat()})

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )

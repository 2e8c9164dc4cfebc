"""FastAPI routers package."""

from .booking import router as booking_router
from .bus import router as bus_router
from .health import router as health_router
from .metrics import router as metrics_router
from .seat_lock import router as seat_lock_router
from .trip import router as trip_router

__all__ = [
    "booking_router",
    "bus_router",
    "health_router",
    "metrics_router",
    "seat_lock_router",
    "trip_router",
]

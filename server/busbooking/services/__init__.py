"""Service layer package."""

from .audit_service import AuditService
from .availability_service import AvailabilityService
from .booking_service import BookingService
from .bus_service import BusService
from .owner_resolution import OwnerIdentity, OwnerKind, resolve_owner
from .pricing import FareQuote, quote_fare
from .seat_lock_service import SeatLockService

__all__ = [
    "AuditService",
    "AvailabilityService",
    "BookingService",
    "BusService",
    "FareQuote",
    "OwnerIdentity",
    "OwnerKind",
    "SeatLockService",
    "quote_fare",
    "resolve_owner",
]

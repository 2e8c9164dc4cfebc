"""Models module exporting all database models."""

from .audit import AuditEvent, AuditLog
from .booking import BookedSeat, Booking, PaymentStatus
from .bus import Bus, BusFare, FeeType
from .seat_lock import SeatLock

__all__ = [
    # Catalog entities
    "Bus",
    "BusFare",
    "FeeType",

    # Seat hold entity
    "SeatLock",

    # Booking entities
    "Booking",
    "BookedSeat",
    "PaymentStatus",

    # Audit entity
    "AuditLog",
    "AuditEvent",
]

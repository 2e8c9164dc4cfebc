"""Background workers for the bus booking service."""

from .seat_lock_sweep_worker import SeatLockSweepWorker

__all__ = ["SeatLockSweepWorker"]

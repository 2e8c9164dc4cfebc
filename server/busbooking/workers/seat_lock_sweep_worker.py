"""Background worker deleting expired seat locks."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import settings
from ..core.database import async_session_factory
from ..services.seat_lock_service import SeatLockService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class SeatLockSweepWorker(BaseWorker):
    """
    Periodically deletes seat locks whose expiry has passed.

    Expired locks are already invisible to every read, so a missed or failed
    sweep only delays reclaiming rows.
    """

    def __init__(
        self,
        interval_seconds: int = 60,
        batch_size: int = 1000,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
    ):
        super().__init__(name="SeatLockSweep", interval_seconds=interval_seconds)
        self.batch_size = batch_size
        self.session_factory = session_factory

    async def process(self) -> int:
        """Sweep expired locks batch by batch until none are left."""
        total = 0
        async with self.session_factory() as db:
            service = SeatLockService(db)
            while True:
                swept = await service.sweep_expired(batch_size=self.batch_size)
                total += swept
                if swept < self.batch_size:
                    break

        if total:
            logger.info(
                "Expired seat locks removed",
                extra={"swept_count": total, "worker": self.name}
            )
        return total


def build_sweep_worker() -> SeatLockSweepWorker:
    """Sweep worker configured from settings."""
    return SeatLockSweepWorker(
        interval_seconds=settings.seat_lock_sweep_interval_seconds,
        batch_size=settings.seat_lock_sweep_batch_size,
    )

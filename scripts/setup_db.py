#!/usr/bin/env python3
"""Migrate the database and seed a demo bus for the bus booking API."""

import asyncio
import logging
from decimal import Decimal
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from busbooking.core.database import async_session_factory, close_db
from busbooking.models import Bus, BusFare, FeeType

server_dir = Path(__file__).parent.parent / "server"

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_OPERATOR_ID = "demo-operator"


def migrate_database() -> None:
    """Apply every Alembic migration."""
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))

    logger.info("Running database migrations...")
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data() -> None:
    """Create a 40-seat demo bus with one route fare, once."""
    async with async_session_factory() as db:
        existing = await db.execute(select(func.count()).select_from(Bus))
        if existing.scalar_one() > 0:
            logger.info("Sample data already exists, skipping...")
            return

        bus = Bus(
            name="Kandy Express",
            route_from="Colombo",
            route_to="Kandy",
            operator_id=DEMO_OPERATOR_ID,
            seat_layout=[str(number) for number in range(1, 41)],
            price=Decimal("1000.00"),
            fee_type=FeeType.PERCENTAGE.value,
            fee_value=Decimal("10"),
            fares=[
                BusFare(boarding_point="Colombo", dropping_point="Kegalle", price=Decimal("700.00")),
            ],
        )
        db.add(bus)
        await db.commit()
        logger.info("Sample bus created", extra={"bus_id": str(bus.id)})

    await close_db()


def main() -> None:
    migrate_database()
    asyncio.run(create_sample_data())
    logger.info("Setup completed. Start the API with: uvicorn busbooking.main:app --reload")


if __name__ == "__main__":
    main()

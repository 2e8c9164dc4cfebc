"""Concurrency tests racing seat locks and booking commits across sessions."""

import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from busbooking.core.database import Base
from busbooking.core.exceptions import ConflictError, TransactionAbortError
from busbooking.models import BookedSeat, Booking, Bus, BusFare
from busbooking.schemas.booking import CommitBookingRequest
from busbooking.schemas.trip import TripKey
from busbooking.services.booking_service import BookingService
from busbooking.services.owner_resolution import resolve_owner
from busbooking.services.seat_lock_service import SeatLockService
from helpers import DEPARTURE_TIME, OPERATOR_ID, TRIP_DATE, booking_body

pytestmark = pytest.mark.concurrency


@pytest_asyncio.fixture
async def race_sessions(tmp_path):
    """Session factory over a file database so every task gets its own connection."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'race.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def race_trip(race_sessions):
    async with race_sessions() as session:
        bus = Bus(
            name="Race Runner",
            route_from="Colombo",
            route_to="Kandy",
            operator_id=OPERATOR_ID,
            seat_layout=[str(number) for number in range(1, 11)],
            price=Decimal("1000.00"),
            fee_type="fixed",
            fee_value=Decimal("0"),
            fares=[BusFare(boarding_point="Colombo", dropping_point="Kandy", price=Decimal("1200.00"))],
        )
        session.add(bus)
        await session.commit()
        return TripKey(bus_id=bus.id, date=TRIP_DATE, departure_time=DEPARTURE_TIME)


@pytest.mark.asyncio
async def test_concurrent_acquires_have_one_winner_per_seat(race_sessions, race_trip):
    """Many owners racing for the same seats never share one."""
    num_owners = 12
    seats = ["1", "2", "3"]

    async def acquire(index: int):
        async with race_sessions() as session:
            owner = resolve_owner(client_token=f"racer-{index}")
            return owner.key, await SeatLockService(session).acquire(race_trip, seats, owner)

    outcomes = await asyncio.gather(*(acquire(i) for i in range(num_owners)), return_exceptions=True)

    unexpected = [o for o in outcomes if isinstance(o, Exception) and not isinstance(o, TransactionAbortError)]
    assert unexpected == []

    winners = {seat: [] for seat in seats}
    for outcome in outcomes:
        if isinstance(outcome, Exception):
            continue
        owner_key, result = outcome
        for seat_result in result.results:
            if seat_result.ok:
                winners[seat_result.seat].append(owner_key)

    for seat in seats:
        assert len(winners[seat]) == 1

    async with race_sessions() as session:
        locks = await SeatLockService(session).active_locks(race_trip)
    assert {lock.seat_number: lock.owner_key for lock in locks} == {
        seat: owners[0] for seat, owners in winners.items()
    }


@pytest.mark.asyncio
async def test_double_submitted_commit_books_once(race_sessions, race_trip):
    """Parallel commits of the same held seats create exactly one booking."""
    owner = resolve_owner(user_id="alice")
    seats = ["4", "5"]

    async with race_sessions() as session:
        result = await SeatLockService(session).acquire(race_trip, seats, owner)
        assert result.ok is True

    request = CommitBookingRequest.model_validate(booking_body(race_trip, seats))

    async def commit():
        async with race_sessions() as session:
            return await BookingService(session).commit_booking(request, owner=owner)

    outcomes = await asyncio.gather(*(commit() for _ in range(8)), return_exceptions=True)

    booked = [o for o in outcomes if isinstance(o, Booking)]
    failed = [o for o in outcomes if not isinstance(o, Booking)]
    assert len(booked) == 1
    assert all(isinstance(e, (ConflictError, TransactionAbortError)) for e in failed)

    async with race_sessions() as session:
        bookings = await session.scalar(select(func.count()).select_from(Booking))
        booked_seats = await session.scalar(select(func.count()).select_from(BookedSeat))
        locks = await SeatLockService(session).active_locks(race_trip)

    assert bookings == 1
    assert booked_seats == len(seats)
    assert locks == []


@pytest.mark.asyncio
async def test_competing_users_cannot_book_the_same_seat(race_sessions, race_trip):
    """A commit over a seat held by someone else fails while their own commits land."""
    alice = resolve_owner(user_id="alice")
    bob = resolve_owner(user_id="bob")

    async with race_sessions() as session:
        service = SeatLockService(session)
        await service.acquire(race_trip, ["6"], alice)
        await service.acquire(race_trip, ["7"], bob)

    async def commit(owner, seats):
        async with race_sessions() as session:
            request = CommitBookingRequest.model_validate(booking_body(race_trip, seats))
            return await BookingService(session).commit_booking(request, owner=owner)

    outcomes = await asyncio.gather(
        commit(alice, ["6"]),
        commit(bob, ["7"]),
        commit(alice, ["6", "7"]),
        return_exceptions=True,
    )

    assert isinstance(outcomes[0], Booking)
    assert isinstance(outcomes[1], Booking)
    # Alice never held seat 7, so the combined booking cannot succeed
    assert isinstance(outcomes[2], ConflictError)

    async with race_sessions() as session:
        result = await session.execute(select(BookedSeat.seat_number))
        seats = result.scalars().all()
    assert len(seats) == len(set(seats))

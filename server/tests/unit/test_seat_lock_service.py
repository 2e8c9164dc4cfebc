"""Unit tests for the seat lock service."""

from datetime import timedelta
from uuid import uuid4

import pytest

from busbooking.core.exceptions import NotFoundError, ValidationError
from busbooking.schemas.booking import ManualBookingRequest
from busbooking.schemas.seat_lock import SeatLockReason
from busbooking.schemas.trip import TripKey
from busbooking.services.booking_service import BookingService
from busbooking.services.owner_resolution import resolve_owner
from busbooking.services.seat_lock_service import SeatLockService, unique_seats
from helpers import OPERATOR_ID, booking_body

ALICE = resolve_owner(user_id="alice")
BOB = resolve_owner(user_id="bob")
GUEST = resolve_owner(client_token="guest-token")


@pytest.mark.asyncio
async def test_acquire_locks_all_free_seats(test_session, clock, trip):
    """Test that free seats are all locked for the caller."""
    service = SeatLockService(test_session, clock=clock)

    result = await service.acquire(trip, ["1", "2", "3"], ALICE, ttl_minutes=10)

    assert result.ok is True
    assert result.locked_seats == ["1", "2", "3"]
    assert result.expires_at == clock.now + timedelta(minutes=10)
    assert result.lock_duration_ms == 10 * 60 * 1000

    locks = await service.active_locks(trip)
    assert {lock.seat_number for lock in locks} == {"1", "2", "3"}
    assert {lock.owner_key for lock in locks} == {"user:alice"}
    assert {lock.locked_by for lock in locks} == {"alice"}


@pytest.mark.asyncio
async def test_acquire_uses_default_ttl(test_session, clock, trip):
    """Test that omitting the ttl applies the configured default."""
    service = SeatLockService(test_session, clock=clock)

    result = await service.acquire(trip, ["1"], ALICE)

    assert result.expires_at == clock.now + timedelta(minutes=15)


@pytest.mark.asyncio
async def test_seat_held_by_another_owner_is_reported(test_session, clock, trip):
    """Test that a live lock blocks other owners while their other seats still lock."""
    service = SeatLockService(test_session, clock=clock)
    await service.acquire(trip, ["1", "2"], ALICE)

    result = await service.acquire(trip, ["2", "3"], BOB)

    assert result.ok is False
    assert result.locked_seats == ["3"]
    failed = result.results[0]
    assert failed.seat == "2"
    assert failed.reason == SeatLockReason.HELD_BY_ANOTHER_OWNER
    assert failed.expires_at is None

    locks = {lock.seat_number: lock.owner_key for lock in await service.active_locks(trip)}
    assert locks == {"1": "user:alice", "2": "user:alice", "3": "user:bob"}


@pytest.mark.asyncio
async def test_same_owner_extends_own_lock(test_session, clock, trip):
    """Test that re-acquiring an owned seat refreshes its expiry."""
    service = SeatLockService(test_session, clock=clock)
    await service.acquire(trip, ["4"], ALICE, ttl_minutes=5)

    clock.advance(minutes=3)
    result = await service.acquire(trip, ["4"], ALICE, ttl_minutes=5)

    assert result.ok is True
    [lock] = await service.active_locks(trip, ["4"])
    assert lock.expires_at == clock.now + timedelta(minutes=5)


@pytest.mark.asyncio
async def test_expired_lock_can_be_taken_over(test_session, clock, trip):
    """Test that an expired lock no longer blocks anyone."""
    service = SeatLockService(test_session, clock=clock)
    await service.acquire(trip, ["9"], ALICE, ttl_minutes=5)

    clock.advance(minutes=5)
    result = await service.acquire(trip, ["9"], BOB)

    assert result.ok is True
    [lock] = await service.active_locks(trip, ["9"])
    assert lock.owner_key == "user:bob"


@pytest.mark.asyncio
async def test_booked_seat_is_never_locked(test_session, clock, trip):
    """Test that seats of a confirmed booking fail with the booked reason."""
    await BookingService(test_session, clock=clock).create_manual_booking(
        ManualBookingRequest.model_validate(booking_body(trip, ["5"])),
        operator_id=OPERATOR_ID,
    )
    service = SeatLockService(test_session, clock=clock)

    result = await service.acquire(trip, ["5", "6"], ALICE)

    assert result.ok is False
    assert [(r.seat, r.ok, r.reason) for r in result.results] == [
        ("5", False, SeatLockReason.ALREADY_BOOKED),
        ("6", True, None),
    ]
    assert await service.active_locks(trip, ["5"]) == []


@pytest.mark.asyncio
async def test_seat_booked_during_acquire_is_not_held(test_session, clock, trip, monkeypatch):
    """Test that a booking landing between the first booked read and the upserts wins."""
    await BookingService(test_session, clock=clock).create_manual_booking(
        ManualBookingRequest.model_validate(booking_body(trip, ["5"])),
        operator_id=OPERATOR_ID,
    )
    service = SeatLockService(test_session, clock=clock)
    fresh_booked_seat_map = service.booked_seat_map
    reads = []

    async def stale_first_read(trip):
        reads.append(trip)
        if len(reads) == 1:
            return {}
        return await fresh_booked_seat_map(trip)

    monkeypatch.setattr(service, "booked_seat_map", stale_first_read)

    result = await service.acquire(trip, ["5", "6"], ALICE)

    assert len(reads) == 2
    assert [(r.seat, r.ok, r.reason) for r in result.results] == [
        ("5", False, SeatLockReason.ALREADY_BOOKED),
        ("6", True, None),
    ]
    assert await service.active_locks(trip, ["5"]) == []


@pytest.mark.asyncio
async def test_results_follow_request_order(test_session, clock, trip):
    """Test that per-seat results come back in the caller's order, duplicates dropped."""
    service = SeatLockService(test_session, clock=clock)

    result = await service.acquire(trip, ["12", "3", " 7", "3"], GUEST)

    assert [r.seat for r in result.results] == ["12", "3", "7"]


@pytest.mark.asyncio
async def test_seat_genders_are_normalised(test_session, clock, trip):
    """Test that seat genders are stored as F or M."""
    service = SeatLockService(test_session, clock=clock)

    await service.acquire(trip, ["1", "2", "3"], ALICE, seat_genders={"1": "female", "2": "m"})

    genders = {lock.seat_number: lock.gender for lock in await service.active_locks(trip)}
    assert genders == {"1": "F", "2": "M", "3": None}


@pytest.mark.asyncio
async def test_extension_without_gender_keeps_stored_gender(test_session, clock, trip):
    """Test that refreshing a hold without genders leaves the captured gender alone."""
    service = SeatLockService(test_session, clock=clock)
    await service.acquire(trip, ["1"], ALICE, seat_genders={"1": "F"})

    clock.advance(minutes=2)
    result = await service.acquire(trip, ["1"], ALICE)

    assert result.ok is True
    [lock] = await service.active_locks(trip, ["1"])
    assert lock.gender == "F"
    assert lock.expires_at == clock.now + timedelta(minutes=15)


@pytest.mark.asyncio
async def test_locks_are_scoped_to_one_trip(test_session, clock, trip):
    """Test that the same seat on another departure is independent."""
    service = SeatLockService(test_session, clock=clock)
    evening = TripKey(bus_id=trip.bus_id, date=trip.date, departure_time="18:00")

    await service.acquire(trip, ["1"], ALICE)
    result = await service.acquire(evening, ["1"], BOB)

    assert result.ok is True


@pytest.mark.asyncio
async def test_release_only_drops_own_locks(test_session, clock, trip):
    """Test that releasing someone else's seat is a silent no-op."""
    service = SeatLockService(test_session, clock=clock)
    await service.acquire(trip, ["1", "2"], ALICE)
    await service.acquire(trip, ["3"], BOB)

    released = await service.release(trip, ["1", "3", "30"], ALICE)

    assert released == 1
    remaining = {lock.seat_number for lock in await service.active_locks(trip)}
    assert remaining == {"2", "3"}


@pytest.mark.asyncio
async def test_release_ignores_expired_locks(test_session, clock, trip):
    """Test that an expired hold is not counted as released and is left to the sweep."""
    service = SeatLockService(test_session, clock=clock)
    await service.acquire(trip, ["1"], ALICE, ttl_minutes=1)

    clock.advance(minutes=5)

    assert await service.release(trip, ["1"], ALICE) == 0
    assert await service.sweep_expired() == 1


@pytest.mark.asyncio
async def test_release_nothing(test_session, clock, trip):
    """Test that an empty release deletes nothing."""
    service = SeatLockService(test_session, clock=clock)
    assert await service.release(trip, [], ALICE) == 0


@pytest.mark.asyncio
async def test_remaining_hold_time(test_session, clock, trip):
    """Test remaining time reports the soonest expiry of the owner's locks."""
    service = SeatLockService(test_session, clock=clock)
    await service.acquire(trip, ["1"], ALICE, ttl_minutes=10)
    clock.advance(minutes=2)
    await service.acquire(trip, ["2"], ALICE, ttl_minutes=10)

    remaining = await service.remaining(trip, ALICE)
    assert remaining.remaining_ms == 8 * 60 * 1000

    remaining = await service.remaining(trip, ALICE, seats=["2"])
    assert remaining.remaining_ms == 10 * 60 * 1000

    clock.advance(minutes=20)
    remaining = await service.remaining(trip, ALICE)
    assert remaining.remaining_ms == 0
    assert remaining.expires_at is None


@pytest.mark.asyncio
async def test_remaining_ignores_other_owners(test_session, clock, trip):
    """Test that another owner's locks do not count."""
    service = SeatLockService(test_session, clock=clock)
    await service.acquire(trip, ["1"], BOB)

    remaining = await service.remaining(trip, ALICE)
    assert remaining.remaining_ms == 0


@pytest.mark.asyncio
async def test_sweep_deletes_only_expired_locks(test_session, clock, trip):
    """Test that the sweep removes expired rows in batches and keeps live ones."""
    service = SeatLockService(test_session, clock=clock)
    await service.acquire(trip, ["1", "2", "3"], ALICE, ttl_minutes=1)
    await service.acquire(trip, ["4"], BOB, ttl_minutes=30)

    clock.advance(minutes=2)
    assert await service.sweep_expired(batch_size=2) == 2
    assert await service.sweep_expired(batch_size=2) == 1
    assert await service.sweep_expired(batch_size=2) == 0

    locks = await service.active_locks(trip)
    assert [lock.seat_number for lock in locks] == ["4"]


@pytest.mark.asyncio
@pytest.mark.parametrize("ttl", [0, 31, -5])
async def test_ttl_out_of_range_rejected(test_session, clock, trip, ttl):
    """Test that ttl must be between one minute and the configured maximum."""
    service = SeatLockService(test_session, clock=clock)
    with pytest.raises(ValidationError):
        await service.acquire(trip, ["1"], ALICE, ttl_minutes=ttl)


@pytest.mark.asyncio
async def test_too_many_seats_rejected(test_session, clock, trip):
    """Test the per-request seat limit."""
    service = SeatLockService(test_session, clock=clock)
    with pytest.raises(ValidationError):
        await service.acquire(trip, [str(n) for n in range(1, 12)], ALICE)


@pytest.mark.asyncio
async def test_empty_seat_list_rejected(test_session, clock, trip):
    service = SeatLockService(test_session, clock=clock)
    with pytest.raises(ValidationError):
        await service.acquire(trip, [], ALICE)


@pytest.mark.asyncio
async def test_seat_outside_layout_rejected(test_session, clock, trip):
    """Test that seats the bus does not have cannot be locked."""
    service = SeatLockService(test_session, clock=clock)
    with pytest.raises(ValidationError):
        await service.acquire(trip, ["1", "41"], ALICE)
    assert await service.active_locks(trip) == []


@pytest.mark.asyncio
async def test_unknown_bus_rejected(test_session, clock, bus):
    service = SeatLockService(test_session, clock=clock)
    trip = TripKey(bus_id=uuid4(), date="2026-11-01", departure_time="08:30")
    with pytest.raises(NotFoundError):
        await service.acquire(trip, ["1"], ALICE)


def test_unique_seats_keeps_first_occurrence():
    assert unique_seats([3, "1", " 3", "2", "1"]) == ["3", "1", "2"]

"""Seat lock service: time-bounded exclusive holds on individual seats."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import and_, delete, func, or_, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import utcnow
from ..core.exceptions import TransactionAbortError, ValidationError
from ..core.observability import metrics_collector
from ..models.booking import Booking
from ..models.seat_lock import SeatLock
from ..schemas.seat_lock import LockAcquisition, LockRemaining, SeatLockReason, SeatLockResult
from ..schemas.trip import TripKey
from .booking_input import normalize_gender
from .bus_service import BusService, ensure_seats_in_layout
from .owner_resolution import OwnerIdentity

logger = logging.getLogger(__name__)

LOCK_KEY_COLUMNS = ["bus_id", "trip_date", "departure_time", "seat_number"]

# Backends with an upsert construct; config.Settings refuses any other database URL
UPSERT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def unique_seats(seats: Iterable) -> List[str]:
    """Seat labels as stripped strings, duplicates dropped, first occurrence kept."""
    seen = []
    for seat in seats:
        label = str(seat).strip()
        if label not in seen:
            seen.append(label)
    return seen


def trip_filter(model, trip: TripKey):
    """Criterion selecting rows of ``model`` that belong to ``trip``."""
    return and_(
        model.bus_id == trip.bus_id,
        model.trip_date == trip.date,
        model.departure_time == trip.departure_time,
    )


class SeatLockService:
    """Service for seat lock operations."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self.bus_service = BusService(db)

    def _insert(self):
        """Dialect insert construct supporting ON CONFLICT."""
        return UPSERT_INSERTS[self.db.get_bind().dialect.name]

    async def serialize_trip(self, trip: TripKey) -> None:
        """Hold a transaction-scoped lock on the trip; a no-op outside PostgreSQL."""
        if self.db.get_bind().dialect.name == "postgresql":
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:trip))"),
                {"trip": str(trip)}
            )

    def _validate_request(self, seats: List[str], ttl_minutes: Optional[int]) -> int:
        if not seats or any(not seat for seat in seats):
            raise ValidationError(detail="At least one seat must be provided")

        if len(seats) > settings.seat_lock_max_seats:
            raise ValidationError(
                detail=f"At most {settings.seat_lock_max_seats} seats can be locked at once",
                errors={"seats": len(seats)},
            )

        ttl = settings.seat_lock_ttl_minutes if ttl_minutes is None else ttl_minutes
        if not 1 <= ttl <= settings.seat_lock_max_ttl_minutes:
            raise ValidationError(
                detail=f"ttl_minutes must be between 1 and {settings.seat_lock_max_ttl_minutes}",
                errors={"ttl_minutes": ttl},
            )
        return ttl

    async def acquire(
        self,
        trip: TripKey,
        seats: Sequence,
        owner: OwnerIdentity,
        ttl_minutes: Optional[int] = None,
        seat_genders: Optional[Dict[str, str]] = None,
        user_id: Optional[str] = None,
    ) -> LockAcquisition:
        """
        Lock seats of a trip for an owner.

        Each seat is claimed with a single upsert on the (trip, seat) key whose
        update branch only fires when the existing lock has expired or already
        belongs to the caller, so concurrent callers can never both win a seat.
        Seats covered by a confirmed booking are reported as failed without
        being attempted, and the booked set is read again after the upserts
        inside the same trip-serialized transaction. Partial success is
        returned, not raised.

        Args:
            trip: Trip the seats belong to
            seats: Seat labels in the caller's order
            owner: Resolved lock owner
            ttl_minutes: Hold duration, server default when None
            seat_genders: Optional passenger gender per seat
            user_id: Authenticated user recorded on the lock

        Returns:
            Per-seat results in request order

        Raises:
            ValidationError: If the seat list or ttl is out of bounds
            NotFoundError: If the bus does not exist
            TransactionAbortError: If the database rejected the write
        """
        seats = unique_seats(seats)
        ttl = self._validate_request(seats, ttl_minutes)

        bus = await self.bus_service.get_bus_or_raise(trip.bus_id)
        ensure_seats_in_layout(bus, seats)

        genders = {str(seat).strip(): value for seat, value in (seat_genders or {}).items()}
        user_id = user_id or owner.user_id
        now = self.clock()
        expires_at = now + timedelta(minutes=ttl)

        locked = set()
        insert = self._insert()
        table = SeatLock.__table__

        try:
            await self.serialize_trip(trip)
            booked = set(await self.booked_seat_map(trip)) & set(seats)

            # Stable ordering keeps concurrent multi-seat callers from interleaving row locks
            for seat in sorted(set(seats) - booked):
                gender = normalize_gender(genders[seat]) if genders.get(seat) else None
                stmt = insert(SeatLock).values(
                    id=uuid4(),
                    bus_id=trip.bus_id,
                    trip_date=trip.date,
                    departure_time=trip.departure_time,
                    seat_number=seat,
                    owner_key=owner.key,
                    locked_by=user_id,
                    gender=gender,
                    locked_at=now,
                    expires_at=expires_at,
                    created_at=now,
                    updated_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=LOCK_KEY_COLUMNS,
                    set_={
                        "owner_key": stmt.excluded.owner_key,
                        "locked_by": stmt.excluded.locked_by,
                        "gender": func.coalesce(stmt.excluded.gender, table.c.gender),
                        "locked_at": stmt.excluded.locked_at,
                        "expires_at": stmt.excluded.expires_at,
                        "updated_at": stmt.excluded.updated_at,
                    },
                    where=or_(table.c.expires_at <= now, table.c.owner_key == owner.key),
                ).returning(table.c.id)

                result = await self.db.execute(stmt)
                if result.scalar_one_or_none() is not None:
                    locked.add(seat)

            # A booking committed since the first read must not leave a hold behind
            late = locked & set(await self.booked_seat_map(trip))
            if late:
                await self.db.execute(
                    delete(SeatLock).where(
                        trip_filter(SeatLock, trip),
                        SeatLock.seat_number.in_(sorted(late)),
                        SeatLock.owner_key == owner.key,
                    )
                )
                locked -= late
                booked |= late

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Seat lock acquisition aborted",
                extra={"trip": str(trip), "seats": seats, "error": str(e)}
            )
            raise TransactionAbortError(operation="acquire_locks")

        results = []
        for seat in seats:
            if seat in locked:
                results.append(SeatLockResult(seat=seat, ok=True, expires_at=expires_at))
            elif seat in booked:
                results.append(SeatLockResult(seat=seat, ok=False, reason=SeatLockReason.ALREADY_BOOKED))
            else:
                results.append(SeatLockResult(seat=seat, ok=False, reason=SeatLockReason.HELD_BY_ANOTHER_OWNER))

        held = len(seats) - len(locked) - len(booked)
        metrics_collector.record_lock_attempt("locked", len(locked))
        metrics_collector.record_lock_attempt("booked", len(booked))
        metrics_collector.record_lock_attempt("held", held)

        logger.info(
            "Seat locks acquired",
            extra={
                "trip": str(trip),
                "owner_kind": owner.kind.value,
                "locked": sorted(locked),
                "booked": sorted(booked),
                "held_by_others": held,
                "expires_at": expires_at.isoformat()
            }
        )

        return LockAcquisition(
            ok=len(locked) == len(seats),
            results=results,
            expires_at=expires_at,
            lock_duration_ms=ttl * 60 * 1000,
        )

    async def release(self, trip: TripKey, seats: Sequence, owner: OwnerIdentity) -> int:
        """
        Delete the owner's live locks on the given seats.

        Seats locked by someone else, or not locked at all, are skipped
        silently, as are expired locks, which the sweep reclaims. Returns the
        number of live locks deleted.
        """
        seats = unique_seats(seats)
        if not seats:
            return 0

        stmt = delete(SeatLock).where(
            trip_filter(SeatLock, trip),
            SeatLock.seat_number.in_(seats),
            SeatLock.owner_key == owner.key,
            SeatLock.expires_at > self.clock(),
        )

        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Seat lock release aborted",
                extra={"trip": str(trip), "seats": seats, "error": str(e)}
            )
            raise TransactionAbortError(operation="release_locks")

        released = result.rowcount or 0
        metrics_collector.record_locks_released(released)

        logger.info(
            "Seat locks released",
            extra={"trip": str(trip), "seats": seats, "released": released}
        )

        return released

    async def remaining(
        self,
        trip: TripKey,
        owner: OwnerIdentity,
        seats: Optional[Sequence] = None,
    ) -> LockRemaining:
        """Time left on the owner's soonest-expiring active lock for the trip."""
        now = self.clock()
        stmt = select(func.min(SeatLock.expires_at)).where(
            trip_filter(SeatLock, trip),
            SeatLock.owner_key == owner.key,
            SeatLock.expires_at > now,
        )
        if seats:
            stmt = stmt.where(SeatLock.seat_number.in_(unique_seats(seats)))

        result = await self.db.execute(stmt)
        expires_at = result.scalar_one_or_none()

        if expires_at is None:
            return LockRemaining(remaining_ms=0, expires_at=None)

        remaining_ms = max(0, int((expires_at - now).total_seconds() * 1000))
        return LockRemaining(remaining_ms=remaining_ms, expires_at=expires_at)

    async def sweep_expired(self, batch_size: Optional[int] = None) -> int:
        """
        Physically delete expired locks.

        Expired rows are already ignored by every read, so this only reclaims
        storage. Returns the number of rows deleted.
        """
        batch_size = batch_size or settings.seat_lock_sweep_batch_size
        now = self.clock()

        expired_ids = (
            select(SeatLock.id)
            .where(SeatLock.expires_at <= now)
            .order_by(SeatLock.expires_at)
            .limit(batch_size)
        )
        stmt = delete(SeatLock).where(SeatLock.id.in_(expired_ids))

        result = await self.db.execute(stmt)
        await self.db.commit()

        swept = result.rowcount or 0
        if swept:
            metrics_collector.record_locks_swept(swept)
            logger.info("Expired seat locks swept", extra={"count": swept})

        return swept

    async def active_locks(self, trip: TripKey, seats: Optional[Sequence] = None) -> List[SeatLock]:
        """Unexpired locks of a trip, any owner."""
        stmt = select(SeatLock).where(
            trip_filter(SeatLock, trip),
            SeatLock.expires_at > self.clock(),
        )
        if seats:
            stmt = stmt.where(SeatLock.seat_number.in_(unique_seats(seats)))

        result = await self.db.execute(stmt.order_by(SeatLock.seat_number))
        return list(result.scalars().all())

    async def booked_seat_map(self, trip: TripKey) -> Dict[str, Optional[str]]:
        """
        Seats of confirmed bookings for the trip, mapped to the passenger gender.

        Seats booked without an allocation map to None.
        """
        stmt = select(Booking.seats, Booking.seat_allocations).where(
            trip_filter(Booking, trip),
            Booking.confirmed(),
        )
        result = await self.db.execute(stmt)

        seat_map: Dict[str, Optional[str]] = {}
        for seats, allocations in result.all():
            genders = {str(a.get("seat")): a.get("gender") for a in allocations or []}
            for seat in seats or []:
                seat_map[str(seat)] = genders.get(str(seat))
        return seat_map

"""Booking service: the commit protocol that turns held seats into a booking."""

import logging
import secrets
import string
from datetime import datetime
from typing import Callable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import utcnow
from ..core.exceptions import (
    AuthorizationError,
    LockMissingError,
    NotFoundError,
    ProblemDetailsException,
    SeatsAlreadyBookedError,
    TransactionAbortError,
)
from ..core.observability import metrics_collector
from ..models.audit import AuditEvent
from ..models.booking import BookedSeat, Booking, PaymentStatus
from ..models.bus import Bus
from ..models.seat_lock import SeatLock
from ..schemas.booking import (
    CancelBookingResponse,
    CommitBookingRequest,
    ManualBookingRequest,
    SearchBookingsRequest,
)
from ..schemas.trip import TripKey
from .audit_service import AuditService
from .booking_input import BookingDraft, normalize_booking_input
from .bus_service import BusService, ensure_bus_owner, ensure_seats_in_layout, parse_uuid
from .owner_resolution import OwnerIdentity, OwnerKind
from .pricing import FareQuote, quote_fare
from .seat_lock_service import SeatLockService, trip_filter

logger = logging.getLogger(__name__)


class BookingService:
    """Service for booking-related operations."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self.bus_service = BusService(db)
        self.seat_lock_service = SeatLockService(db, clock=clock)
        self.audit_service = AuditService(db)

    def _generate_booking_code(self, length: int = 8) -> str:
        """Generate a random booking confirmation code."""
        alphabet = string.ascii_uppercase + string.digits
        return ''.join(secrets.choice(alphabet) for _ in range(length))

    async def _new_booking_code(self) -> str:
        booking_code = self._generate_booking_code()
        while await self.get_booking_by_code(booking_code):
            booking_code = self._generate_booking_code()
        return booking_code

    async def _booked_conflicts(self, trip: TripKey, seats: Sequence[str]) -> List[str]:
        booked = await self.seat_lock_service.booked_seat_map(trip)
        return [seat for seat in seats if seat in booked]

    def _owner_match(self, owner_keys: Sequence[str], user_id: Optional[str]):
        criterion = SeatLock.owner_key.in_(list(owner_keys))
        if user_id:
            criterion = or_(criterion, SeatLock.locked_by == user_id)
        return criterion

    async def _missing_locks(
        self,
        trip: TripKey,
        seats: Sequence[str],
        owner_keys: Sequence[str],
        user_id: Optional[str],
        now: datetime,
        for_update: bool = False,
    ) -> List[str]:
        """Seats the caller holds no live lock on."""
        stmt = select(SeatLock.seat_number).where(
            trip_filter(SeatLock, trip),
            SeatLock.seat_number.in_(list(seats)),
            SeatLock.expires_at > now,
            self._owner_match(owner_keys, user_id),
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        held = set(result.scalars().all())
        return [seat for seat in seats if seat not in held]

    async def _consume_locks(
        self,
        trip: TripKey,
        seats: Sequence[str],
        owner_keys: Sequence[str],
        user_id: Optional[str],
        now: datetime,
    ) -> int:
        stmt = delete(SeatLock).where(
            trip_filter(SeatLock, trip),
            SeatLock.seat_number.in_(list(seats)),
            SeatLock.expires_at > now,
            self._owner_match(owner_keys, user_id),
        )
        result = await self.db.execute(stmt)
        return result.rowcount or 0

    def _reject(self, error: ProblemDetailsException, trip: TripKey, **context) -> ProblemDetailsException:
        code = error.problem_details.get("code", "CONFLICT")
        metrics_collector.record_booking_conflict(code)
        logger.warning(
            "Booking rejected",
            extra={"trip": str(trip), "code": code, "detail": error.message, **context}
        )
        return error

    def _new_booking(self, draft: BookingDraft, quote: FareQuote, code: str, **fields) -> Booking:
        trip = draft.trip
        return Booking(
            code=code,
            bus_id=trip.bus_id,
            trip_date=trip.date,
            departure_time=trip.departure_time,
            seats=list(draft.seats),
            seat_allocations=draft.seat_allocations,
            passengers=draft.passengers,
            contact_name=draft.contact_name,
            contact_mobile=draft.contact_mobile,
            contact_nic=draft.contact_nic,
            contact_email=draft.contact_email,
            boarding_point=draft.boarding_point,
            dropping_point=draft.dropping_point,
            price_per_seat=quote.price_per_seat,
            base_amount=quote.base_amount,
            convenience_fee=quote.convenience_fee,
            total_amount=quote.total_amount,
            booked_seats=[
                BookedSeat(
                    bus_id=trip.bus_id,
                    trip_date=trip.date,
                    departure_time=trip.departure_time,
                    seat_number=seat,
                )
                for seat in draft.seats
            ],
            **fields,
        )

    async def _write(self, operation: str, trip: TripKey, seats: List[str], work) -> None:
        """
        Run ``work`` and commit, rolling everything back on failure.

        A unique violation on booked seats means another booking won the race.
        """
        try:
            await work()
            await self.db.commit()
        except ProblemDetailsException:
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                "Booking insert hit a seat uniqueness violation",
                extra={"trip": str(trip), "seats": seats, "error": str(e.orig)}
            )
            raise self._reject(SeatsAlreadyBookedError(str(trip.bus_id), seats), trip)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Booking transaction aborted",
                extra={"trip": str(trip), "operation": operation, "error": str(e)}
            )
            raise TransactionAbortError(operation=operation)

    async def commit_booking(
        self,
        request: CommitBookingRequest,
        owner: OwnerIdentity,
        client_token: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> Booking:
        """
        Commit a booking over seats the caller has locked.

        Conflicts and lock coverage are checked up front and again inside the
        write transaction; the booking insert, its booked-seat rows and the
        deletion of the consumed locks commit together or not at all.

        Args:
            request: Booking body in any accepted shape
            owner: Authenticated owner identity
            client_token: Client token the seats may have been locked under before login
            ip: Caller address for the audit record

        Returns:
            Committed booking entity

        Raises:
            ValidationError: If the body is incomplete or inconsistent
            NotFoundError: If the bus does not exist
            SeatsAlreadyBookedError: If a seat is covered by a confirmed booking
            LockMissingError: If the caller does not hold a live lock on every seat
            TransactionAbortError: If the database aborted the transaction
        """
        draft = normalize_booking_input(request)
        trip = draft.trip
        seats = draft.seats
        user_id = owner.user_id

        owner_keys = [owner.key]
        if client_token and client_token.strip():
            owner_keys.append(OwnerIdentity(OwnerKind.CLIENT, client_token.strip()).key)

        bus = await self.bus_service.get_bus_or_raise(trip.bus_id)
        ensure_seats_in_layout(bus, seats)
        now = self.clock()

        conflicts = await self._booked_conflicts(trip, seats)
        if conflicts:
            raise self._reject(SeatsAlreadyBookedError(str(trip.bus_id), conflicts), trip, user_id=user_id)

        missing = await self._missing_locks(trip, seats, owner_keys, user_id, now)
        if missing:
            raise self._reject(LockMissingError(str(trip.bus_id), missing), trip, user_id=user_id)

        quote = self._quote(bus, draft)
        booking = self._new_booking(
            draft,
            quote,
            await self._new_booking_code(),
            user_id=user_id,
            booked_by=user_id,
            payment_status=PaymentStatus.PAID.value,
            is_manual=False,
        )

        async def work():
            await self.seat_lock_service.serialize_trip(trip)

            conflicts = await self._booked_conflicts(trip, seats)
            if conflicts:
                raise self._reject(SeatsAlreadyBookedError(str(trip.bus_id), conflicts), trip, user_id=user_id)

            missing = await self._missing_locks(trip, seats, owner_keys, user_id, now, for_update=True)
            if missing:
                raise self._reject(LockMissingError(str(trip.bus_id), missing), trip, user_id=user_id)

            self.db.add(booking)
            await self.db.flush()

            consumed = await self._consume_locks(trip, seats, owner_keys, user_id, now)
            if consumed != len(seats):
                raise self._reject(LockMissingError(str(trip.bus_id), seats), trip, user_id=user_id)

        await self._write("commit_booking", trip, seats, work)

        metrics_collector.record_booking_committed()
        logger.info(
            "Booking committed successfully",
            extra={
                "booking_id": str(booking.id),
                "booking_code": booking.code,
                "trip": str(trip),
                "seats": seats,
                "user_id": user_id,
                "total_amount": str(booking.total_amount)
            }
        )

        await self.audit_service.record(
            user_id,
            AuditEvent.BOOKING_CREATED,
            {
                "booking_id": str(booking.id),
                "code": booking.code,
                "trip": str(trip),
                "seats": seats,
                "total_amount": str(booking.total_amount),
            },
            ip=ip,
        )

        return booking

    async def create_manual_booking(
        self,
        request: ManualBookingRequest,
        operator_id: str,
        is_admin: bool = False,
        ip: Optional[str] = None,
    ) -> Booking:
        """
        Record a booking taken by operator staff outside the online flow.

        No seat lock is required, but seats covered by a confirmed booking are
        still rejected. No convenience fee is charged.

        Raises:
            AuthorizationError: If the operator does not own the bus
            SeatsAlreadyBookedError: If a seat is covered by a confirmed booking
        """
        draft = normalize_booking_input(request)
        trip = draft.trip
        seats = draft.seats

        bus = await self.bus_service.get_bus_or_raise(trip.bus_id)
        ensure_bus_owner(bus, operator_id, is_admin)
        ensure_seats_in_layout(bus, seats)

        conflicts = await self._booked_conflicts(trip, seats)
        if conflicts:
            raise self._reject(SeatsAlreadyBookedError(str(trip.bus_id), conflicts), trip, operator_id=operator_id)

        quote = self._quote(bus, draft, include_fee=False)
        booking = self._new_booking(
            draft,
            quote,
            await self._new_booking_code(),
            user_id=None,
            booked_by=operator_id,
            payment_status=request.payment_status.value,
            is_manual=True,
        )

        async def work():
            await self.seat_lock_service.serialize_trip(trip)

            conflicts = await self._booked_conflicts(trip, seats)
            if conflicts:
                raise self._reject(SeatsAlreadyBookedError(str(trip.bus_id), conflicts), trip, operator_id=operator_id)

            self.db.add(booking)
            await self.db.flush()

        await self._write("create_manual_booking", trip, seats, work)

        metrics_collector.record_manual_booking()
        logger.info(
            "Manual booking created successfully",
            extra={
                "booking_id": str(booking.id),
                "booking_code": booking.code,
                "trip": str(trip),
                "seats": seats,
                "operator_id": operator_id
            }
        )

        await self.audit_service.record(
            operator_id,
            AuditEvent.MANUAL_BOOKING_CREATED,
            {
                "booking_id": str(booking.id),
                "code": booking.code,
                "trip": str(trip),
                "seats": seats,
                "payment_status": booking.payment_status,
            },
            ip=ip,
        )

        return booking

    def _quote(self, bus: Bus, draft: BookingDraft, include_fee: bool = True) -> FareQuote:
        return quote_fare(
            bus.price,
            len(draft.seats),
            fee_type=bus.fee_type,
            fee_value=bus.fee_value,
            fares=bus.fares,
            boarding_point=draft.boarding_point,
            dropping_point=draft.dropping_point,
            include_fee=include_fee,
        )

    async def cancel_booking(
        self,
        booking_id: UUID | str,
        user_id: str,
        ip: Optional[str] = None,
    ) -> CancelBookingResponse:
        """
        Cancel a booking owned by the caller.

        The booking and its booked-seat rows are deleted; seat locks are not
        touched.

        Raises:
            NotFoundError: If the booking does not exist
            AuthorizationError: If the booking belongs to someone else
        """
        booking = await self.get_booking_by_id_or_raise(booking_id)

        if booking.user_id != user_id:
            logger.warning(
                "Booking cancellation denied - not the owner",
                extra={"booking_id": str(booking.id), "user_id": user_id}
            )
            raise AuthorizationError(detail="You can only cancel your own bookings")

        seats = list(booking.seats)
        trip = TripKey(bus_id=booking.bus_id, date=booking.trip_date, departure_time=booking.departure_time)

        async def work():
            await self.db.execute(delete(BookedSeat).where(BookedSeat.booking_id == booking.id))
            await self.db.execute(delete(Booking).where(Booking.id == booking.id))

        await self._write("cancel_booking", trip, seats, work)

        metrics_collector.record_booking_cancelled()
        logger.info(
            "Booking cancelled successfully",
            extra={
                "booking_id": str(booking.id),
                "booking_code": booking.code,
                "seats_released": seats,
                "user_id": user_id
            }
        )

        await self.audit_service.record(
            user_id,
            AuditEvent.BOOKING_CANCELLED,
            {"booking_id": str(booking.id), "code": booking.code, "trip": str(trip), "seats": seats},
            ip=ip,
        )

        return CancelBookingResponse(ok=True, booking_id=str(booking.id), released_seats=seats)

    async def list_user_bookings(self, user_id: str, limit: int = 50) -> List[Booking]:
        """Bookings of a user, newest first."""
        stmt = (
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc(), Booking.code)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_bookings(self, filters: SearchBookingsRequest) -> List[Booking]:
        """
        Bookings across all users for administrators, newest first.

        ``route_from`` and ``route_to`` match the bus route and ``user_email``
        the booking's contact email, each as a case-insensitive substring.
        """
        stmt = select(Booking)
        if filters.date:
            stmt = stmt.where(Booking.trip_date == filters.date)
        if filters.route_from or filters.route_to:
            stmt = stmt.join(Bus, Booking.bus_id == Bus.id)
            if filters.route_from:
                stmt = stmt.where(Bus.route_from.icontains(filters.route_from, autoescape=True))
            if filters.route_to:
                stmt = stmt.where(Bus.route_to.icontains(filters.route_to, autoescape=True))
        if filters.user_email:
            stmt = stmt.where(Booking.contact_email.icontains(filters.user_email, autoescape=True))

        stmt = stmt.order_by(Booking.created_at.desc(), Booking.code).limit(filters.limit)
        result = await self.db.execute(stmt)
        bookings = list(result.scalars().all())

        logger.info(
            "Bookings searched",
            extra={"filters": filters.model_dump(exclude_none=True), "count": len(bookings)}
        )
        return bookings

    async def get_booking_by_id(self, booking_id: UUID | str) -> Booking | None:
        """Get booking by ID."""
        stmt = select(Booking).where(Booking.id == parse_uuid(booking_id, "booking"))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_by_id_or_raise(self, booking_id: UUID | str) -> Booking:
        """Get booking by ID or raise NotFoundError."""
        booking = await self.get_booking_by_id(booking_id)
        if not booking:
            logger.warning(
                "Booking not found",
                extra={"booking_id": str(booking_id)}
            )
            raise NotFoundError(
                resource_type="booking",
                resource_id=str(booking_id)
            )
        return booking

    async def get_booking_by_code(self, code: str) -> Booking | None:
        """Get booking by confirmation code."""
        stmt = select(Booking).where(Booking.code == code)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

"""Helpers shared by the test modules."""

from datetime import datetime, timedelta

import jwt

from busbooking.core.config import settings
from busbooking.schemas.trip import TripKey

OPERATOR_ID = "operator-1"
TRIP_DATE = "2026-11-01"
DEPARTURE_TIME = "08:30"


class FrozenClock:
    """Callable clock the services read instead of the wall clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_token(user_id: str, roles=()) -> str:
    """Sign a bearer token the way the identity provider does."""
    return jwt.encode(
        {"sub": user_id, "roles": list(roles)},
        settings.bearer_token_secret,
        algorithm=settings.jwt_algorithm,
    )


def auth_headers(user_id: str, roles=()) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, roles)}"}


def trip_fields(trip: TripKey) -> dict:
    return {"bus_id": str(trip.bus_id), "date": trip.date, "departure_time": trip.departure_time}


def booking_body(trip: TripKey, seats, **overrides) -> dict:
    """A complete booking body for ``seats`` on ``trip``."""
    body = {
        **trip_fields(trip),
        "selected_seats": list(seats),
        "passenger": {"name": "Nimal Perera", "mobile": "0771234567", "nic": "901234567V"},
        "boarding": {"point": "Colombo"},
        "dropping": {"point": "Kandy"},
    }
    body.update(overrides)
    return body

"""Unit tests for booking body normalisation."""

from uuid import uuid4

import pytest

from busbooking.core.exceptions import ValidationError
from busbooking.schemas.booking import CommitBookingRequest
from busbooking.schemas.trip import TripKey
from busbooking.services.booking_input import normalize_booking_input, normalize_gender
from helpers import DEPARTURE_TIME, TRIP_DATE, booking_body


@pytest.fixture
def trip():
    return TripKey(bus_id=uuid4(), date=TRIP_DATE, departure_time=DEPARTURE_TIME)


def build(trip, seats=("1", "2"), **overrides):
    return CommitBookingRequest.model_validate(booking_body(trip, seats, **overrides))


def test_flat_seat_list(trip):
    draft = normalize_booking_input(build(trip, [3, "4"]))

    assert draft.trip == trip
    assert draft.seats == ["3", "4"]
    assert draft.seat_allocations == [{"seat": "3", "gender": "M"}, {"seat": "4", "gender": "M"}]
    assert draft.contact_name == "Nimal Perera"
    assert draft.boarding_point == "Colombo"
    assert draft.dropping_point == "Kandy"


def test_allocations_define_seats_and_genders(trip):
    request = build(
        trip,
        seats=(),
        selected_seats=None,
        seat_allocations=[{"seat": "7", "gender": "female"}, {"seat": "8"}],
    )
    draft = normalize_booking_input(request)

    assert draft.seats == ["7", "8"]
    assert draft.seat_genders == {"7": "F", "8": "M"}


def test_passengers_only(trip):
    request = build(
        trip,
        selected_seats=None,
        passengers=[
            {"seat": "5", "name": "Kamala", "age": 31, "gender": "F"},
            {"seat": "6", "name": "Sunil", "age": 35, "gender": "M"},
        ],
    )
    draft = normalize_booking_input(request)

    assert draft.seats == ["5", "6"]
    assert draft.seat_genders == {"5": "F", "6": "M"}
    assert draft.passengers[0]["name"] == "Kamala"


def test_explicit_allocation_beats_passenger_gender(trip):
    request = build(
        trip,
        selected_seats=None,
        seat_allocations=[{"seat": "5", "gender": "M"}],
        passengers=[{"seat": "5", "name": "Kamala", "gender": "F"}],
    )
    assert normalize_booking_input(request).seat_genders == {"5": "M"}


def test_allocation_and_selected_length_mismatch(trip):
    request = build(trip, seats=["1", "2"], seat_allocations=[{"seat": "1", "gender": "M"}])
    with pytest.raises(ValidationError):
        normalize_booking_input(request)


def test_duplicate_seats_rejected(trip):
    with pytest.raises(ValidationError) as exc_info:
        normalize_booking_input(build(trip, ["1", "1"]))
    assert exc_info.value.problem_details["errors"] == {"seats": ["1"]}


def test_empty_selection_rejected(trip):
    with pytest.raises(ValidationError):
        normalize_booking_input(build(trip, []))


def test_passenger_seats_must_match_selection(trip):
    request = build(trip, seats=["1", "2"], passengers=[{"seat": "1", "name": "A"}, {"seat": "3", "name": "B"}])
    with pytest.raises(ValidationError):
        normalize_booking_input(request)


def test_contact_required(trip):
    with pytest.raises(ValidationError):
        normalize_booking_input(build(trip, passenger=None))


def test_route_points_required(trip):
    with pytest.raises(ValidationError):
        normalize_booking_input(build(trip, dropping=None))


def test_missing_nic_stored_as_placeholder(trip):
    draft = normalize_booking_input(build(trip, passenger={"name": "Nimal", "mobile": "0771234567"}))
    assert draft.contact_nic == "N/A"


@pytest.mark.parametrize(
    "value,expected",
    [("F", "F"), ("female", "F"), (" Female ", "F"), ("M", "M"), ("male", "M"), ("x", "M"), (None, "M")],
)
def test_normalize_gender(value, expected):
    assert normalize_gender(value) == expected

"""Property-based tests for pricing, ownership and booking input invariants."""

from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

from hypothesis import given
from hypothesis import strategies as st

from busbooking.core.exceptions import ValidationError
from busbooking.models.bus import FeeType
from busbooking.schemas.booking import CommitBookingRequest
from busbooking.schemas.trip import TripKey
from busbooking.services.booking_input import normalize_booking_input, normalize_gender
from busbooking.services.owner_resolution import OwnerKind, resolve_owner
from busbooking.services.pricing import CENT, quote_fare
from helpers import DEPARTURE_TIME, TRIP_DATE, booking_body

# Strategies for generating test data
prices = st.decimals(min_value=0, max_value=100000, places=2, allow_nan=False, allow_infinity=False)
fee_values = st.decimals(min_value=0, max_value=100, places=2, allow_nan=False, allow_infinity=False)
seat_counts = st.integers(min_value=0, max_value=60)
fee_types = st.sampled_from(list(FeeType))
identities = st.one_of(st.none(), st.text(max_size=20))
seat_labels = st.text(alphabet="ABCDEF0123456789", min_size=1, max_size=4)
genders = st.one_of(st.none(), st.sampled_from(["M", "F", "male", "female", "Female", "x", ""]))

TRIP = TripKey(bus_id=uuid4(), date=TRIP_DATE, departure_time=DEPARTURE_TIME)


@given(price=prices, seats=seat_counts, fee_type=fee_types, fee_value=fee_values)
def test_quote_adds_up(price, seats, fee_type, fee_value):
    """Total is always base plus fee, in whole cents, and never negative."""
    quote = quote_fare(price, seats, fee_type=fee_type, fee_value=fee_value)

    assert quote.total_amount == quote.base_amount + quote.convenience_fee
    assert quote.base_amount == (quote.price_per_seat * seats).quantize(CENT)
    for amount in (quote.base_amount, quote.convenience_fee, quote.total_amount):
        assert amount >= 0
        assert amount == amount.quantize(CENT)


@given(price=prices, seats=seat_counts, fee_type=fee_types, fee_value=fee_values)
def test_fee_free_quote_is_base_amount(price, seats, fee_type, fee_value):
    quote = quote_fare(price, seats, fee_type=fee_type, fee_value=fee_value, include_fee=False)
    assert quote.convenience_fee == Decimal("0")
    assert quote.total_amount == quote.base_amount


@given(base=prices, override=prices, seats=st.integers(min_value=1, max_value=10))
def test_route_fare_wins_for_matching_pair(base, override, seats):
    fares = [SimpleNamespace(boarding_point="A", dropping_point="B", price=override)]

    matching = quote_fare(base, seats, fares=fares, boarding_point="A", dropping_point="B")
    reversed_pair = quote_fare(base, seats, fares=fares, boarding_point="B", dropping_point="A")

    assert matching.price_per_seat == override.quantize(CENT)
    assert reversed_pair.price_per_seat == base.quantize(CENT)


@given(user_id=identities, client_token=identities, remote_addr=identities)
def test_owner_resolution_precedence(user_id, client_token, remote_addr):
    """The first non-blank identity source always wins."""
    sources = [
        (OwnerKind.USER, user_id),
        (OwnerKind.CLIENT, client_token),
        (OwnerKind.IP, remote_addr),
    ]
    expected = next(((kind, value.strip()) for kind, value in sources if value and value.strip()), None)

    try:
        owner = resolve_owner(user_id, client_token, remote_addr)
    except ValidationError:
        assert expected is None
        return

    assert (owner.kind, owner.value) == expected
    assert owner.key == f"{owner.kind.value}:{owner.value}"


@given(value=st.one_of(st.none(), st.text(max_size=10)))
def test_gender_is_always_m_or_f(value):
    assert normalize_gender(value) in ("M", "F")


@given(seats=st.lists(seat_labels, min_size=1, max_size=10, unique=True), data=st.data())
def test_draft_allocations_cover_exactly_the_seats(seats, data):
    """Every selected seat gets exactly one allocation with a stored gender."""
    allocation_genders = data.draw(st.lists(genders, min_size=len(seats), max_size=len(seats)))
    body = booking_body(
        TRIP,
        seats,
        seat_allocations=[
            {"seat": seat, "gender": gender} for seat, gender in zip(seats, allocation_genders)
        ],
    )

    draft = normalize_booking_input(CommitBookingRequest.model_validate(body))

    assert draft.seats == seats
    assert [allocation["seat"] for allocation in draft.seat_allocations] == seats
    assert set(draft.seat_genders.values()) <= {"M", "F"}


@given(seats=st.lists(seat_labels, min_size=1, max_size=9, unique=True), data=st.data())
def test_duplicate_selection_always_rejected(seats, data):
    repeated = data.draw(st.sampled_from(seats))
    selection = seats + [repeated]

    try:
        normalize_booking_input(CommitBookingRequest.model_validate(booking_body(TRIP, selection)))
    except ValidationError as e:
        assert e.problem_details["errors"] == {"seats": [repeated]}
    else:
        raise AssertionError("duplicate seats were accepted")

"""Concurrency tests for booking operations."""

import asyncio
import itertools

import pytest
from fakes import InMemoryLedger

from storefront.schemas.booking import BookingForm, BookingReason, BookingRequest, OutcomeKind
from storefront.services.booking_allocator import BookingAllocator
from storefront.services.booking_facade import BookingRequestFacade
from storefront.services.change_feed import ChangeFeed


def numbered():
    counter = itertools.count(1)
    return lambda: f"BOOK-1718000000000-{next(counter):04d}"


def request_for(tour, tour_date, people: int, user_id: str = "user-123") -> BookingRequest:
    return BookingRequest(
        user_id=user_id,
        tour_id=str(tour.id),
        tour_date_id=str(tour_date.id),
        number_of_people=people
    )


@pytest.mark.asyncio
async def test_two_parties_racing_for_last_seats():
    """Test that two parties of three racing for five seats end with one booking."""
    ledger = InMemoryLedger()
    tour = ledger.add_tour()
    tour_date = ledger.add_tour_date(tour, max_bookings=5)
    allocator = BookingAllocator(ledger, booking_number_factory=numbered())

    outcomes = await asyncio.gather(
        allocator.allocate(request_for(tour, tour_date, 3, "user-a")),
        allocator.allocate(request_for(tour, tour_date, 3, "user-b"))
    )

    kinds = sorted(o.kind.value for o in outcomes)
    assert kinds == ["committed", "rejected"]

    rejected = next(o for o in outcomes if o.kind == OutcomeKind.REJECTED)
    assert rejected.reason == BookingReason.DATE_FULL
    assert ledger.tour_dates[tour_date.id].current_bookings == 3


@pytest.mark.asyncio
async def test_concurrent_single_seat_requests_no_overbooking():
    """Test that concurrent requests don't cause overbooking."""
    ledger = InMemoryLedger()
    tour = ledger.add_tour()
    tour_date = ledger.add_tour_date(tour, max_bookings=10)
    # Each loss means another request won, so ten seats need at most eleven attempts
    allocator = BookingAllocator(ledger, max_attempts=25, booking_number_factory=numbered())

    num_concurrent_requests = 30

    outcomes = await asyncio.gather(*[
        allocator.allocate(request_for(tour, tour_date, 1, f"customer_{i}"))
        for i in range(num_concurrent_requests)
    ])

    committed = [o for o in outcomes if o.kind == OutcomeKind.COMMITTED]
    rejected = [o for o in outcomes if o.kind == OutcomeKind.REJECTED]

    assert len(committed) == 10
    assert len(rejected) == 20
    assert all(o.reason == BookingReason.DATE_FULL for o in rejected)
    assert ledger.tour_dates[tour_date.id].current_bookings == 10
    assert len({o.booking.booking_number for o in committed}) == 10

    # Losers that had already inserted a booking are parked for reconciliation
    counted = [b for b in ledger.bookings.values() if not b.needs_reconciliation]
    assert sum(b.number_of_people for b in counted) == 10


@pytest.mark.asyncio
async def test_contention_with_few_attempts_flags_uncounted_bookings():
    """Test that requests running out of attempts are flagged, not counted."""
    ledger = InMemoryLedger()
    tour = ledger.add_tour()
    tour_date = ledger.add_tour_date(tour, max_bookings=50)
    allocator = BookingAllocator(ledger, max_attempts=1, booking_number_factory=numbered())

    outcomes = await asyncio.gather(*[
        allocator.allocate(request_for(tour, tour_date, 2, f"customer_{i}"))
        for i in range(8)
    ])

    committed = [o for o in outcomes if o.kind == OutcomeKind.COMMITTED]
    failed = [o for o in outcomes if o.kind == OutcomeKind.FAILED]

    assert committed
    assert len(committed) + len(failed) == 8
    assert all(o.reason == BookingReason.LEDGER_INCONSISTENCY for o in failed)
    assert ledger.tour_dates[tour_date.id].current_bookings == 2 * len(committed)

    flagged = [b for b in ledger.bookings.values() if b.needs_reconciliation]
    assert len(flagged) == len(failed)
    assert all(b.reconciliation_reason == "COUNTER_NOT_INCREMENTED" for b in flagged)


@pytest.mark.asyncio
async def test_concurrent_facade_requests_publish_once_per_commit():
    """Test that racing facade requests emit one date update per committed booking."""
    ledger = InMemoryLedger()
    tour = ledger.add_tour()
    tour_date = ledger.add_tour_date(tour, max_bookings=4)
    feed = ChangeFeed(queue_size=10)
    facade = BookingRequestFacade(
        ledger,
        allocator=BookingAllocator(ledger, max_attempts=10, booking_number_factory=numbered()),
        feed=feed
    )
    form = BookingForm(
        tour_id=str(tour.id),
        tour_date=tour_date.available_date.isoformat(),
        number_of_people=2
    )

    subscription = feed.subscribe({"tour_dates"})
    results = await asyncio.gather(*[facade.request_booking(f"user-{i}", form) for i in range(3)])

    committed = [r for r in results if r.outcome.kind == OutcomeKind.COMMITTED]
    assert len(committed) == 2
    assert ledger.tour_dates[tour_date.id].current_bookings == 4

    events = [await asyncio.wait_for(subscription.get(), timeout=1) for _ in committed]
    assert {e.id for e in events} == {str(tour_date.id)}
    assert subscription.pending == 0
    subscription.close()


@pytest.mark.asyncio
async def test_parties_on_different_dates_respect_tour_ceiling():
    """Test that two dates of one tour cannot together pass its participant ceiling."""
    ledger = InMemoryLedger()
    tour = ledger.add_tour(max_participants=5)
    first_date = ledger.add_tour_date(tour, max_bookings=5, days_ahead=3)
    second_date = ledger.add_tour_date(tour, max_bookings=5, days_ahead=10)
    allocator = BookingAllocator(ledger, booking_number_factory=numbered())

    outcomes = await asyncio.gather(
        allocator.allocate(request_for(tour, first_date, 3, "user-a")),
        allocator.allocate(request_for(tour, second_date, 3, "user-b"))
    )

    committed = [o for o in outcomes if o.kind == OutcomeKind.COMMITTED]
    rejected = [o for o in outcomes if o.kind == OutcomeKind.REJECTED]
    total = sum(d.current_bookings for d in ledger.tour_dates.values())

    assert len(committed) <= 1
    assert len(committed) + len(rejected) == 2
    assert all(o.reason == BookingReason.TOUR_FULL for o in rejected)
    assert total <= tour.max_participants
    assert total == sum(o.booking.number_of_people for o in committed)


@pytest.mark.asyncio
async def test_many_requests_across_dates_respect_tour_ceiling():
    """Test the tour ceiling with single seats racing over several dates."""
    ledger = InMemoryLedger()
    tour = ledger.add_tour(max_participants=6)
    dates = [ledger.add_tour_date(tour, max_bookings=5, days_ahead=d) for d in (3, 5, 7)]
    allocator = BookingAllocator(ledger, max_attempts=40, booking_number_factory=numbered())

    outcomes = await asyncio.gather(*[
        allocator.allocate(request_for(tour, dates[i % 3], 1, f"customer_{i}"))
        for i in range(12)
    ])

    committed = [o for o in outcomes if o.kind == OutcomeKind.COMMITTED]
    total = sum(d.current_bookings for d in ledger.tour_dates.values())

    assert not [o for o in outcomes if o.kind == OutcomeKind.FAILED]
    assert total <= tour.max_participants
    assert total == len(committed)
    assert all(d.current_bookings <= d.max_bookings for d in ledger.tour_dates.values())

    counted = [b for b in ledger.bookings.values() if b.counts_against_capacity]
    assert sum(b.number_of_people for b in counted) == total

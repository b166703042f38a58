"""Unit tests for booking administration."""

from datetime import timedelta
from decimal import Decimal
from uuid import UUID

import pytest
from fakes import InMemoryLedger
from sqlalchemy import update

from storefront.core.exceptions import ConflictError, InvalidStatusTransitionError
from storefront.models.booking import BookingStatus, ReconciliationReason, TourBooking
from storefront.models.tour import Tour
from storefront.schemas.booking import BookingRequest, ListBookingsRequest, UpdateBookingStatusRequest
from storefront.schemas.tour_date import CreateTourDateRequest
from storefront.services.booking_admin_service import BookingAdminService, SeatReleaseError
from storefront.services.booking_allocator import BookingAllocator
from storefront.services.capacity_ledger import SqlCapacityLedger
from storefront.services.tour_date_service import TourDateService


async def book(session, tour, tour_date, people=1, user_id="user-123"):
    """Commit a booking through the allocator and return its schema."""
    outcome = await BookingAllocator(SqlCapacityLedger(session)).allocate(
        BookingRequest(
            user_id=user_id,
            tour_id=str(tour.id),
            tour_date_id=str(tour_date.id),
            number_of_people=people
        )
    )
    assert outcome.booking is not None
    return outcome.booking


async def flagged_booking(
    session,
    tour_date,
    people=2,
    booking_number="BOOK-1718000000000-0099",
    reason=ReconciliationReason.COUNTER_NOT_INCREMENTED,
) -> TourBooking:
    """Insert a booking whose seats never reached the counter."""
    ledger = SqlCapacityLedger(session)
    booking = await ledger.insert_booking(
        TourBooking(
            booking_number=booking_number,
            user_id="user-456",
            tour_name="Mangrove Canoe Trail",
            tour_date=tour_date.available_date.isoformat(),
            tour_date_id=tour_date.id,
            number_of_people=people,
            amount=Decimal("450.00") * people,
            status=BookingStatus.PENDING,
            needs_reconciliation=False
        )
    )
    await ledger.flag_booking_for_reconciliation(booking.id, reason, "counter update kept conflicting")
    return booking


async def counter(session, tour_date) -> int:
    refreshed = await TourDateService(session).get_tour_date_or_raise(tour_date.id)
    return refreshed.current_bookings


@pytest.mark.asyncio
async def test_approve_pending_booking(test_session, sample_tour, sample_tour_date, feed):
    """Test approving keeps the seats counted."""
    booking = await book(test_session, sample_tour, sample_tour_date, people=2)
    service = BookingAdminService(test_session, feed=feed)

    updated = await service.update_status(
        UpdateBookingStatusRequest(booking_id=booking.id, status="approved"), actor="admin-1"
    )

    assert updated.status == "approved"
    assert await counter(test_session, sample_tour_date) == 2


@pytest.mark.asyncio
async def test_reject_releases_seats(test_session, sample_tour, sample_tour_date, feed):
    """Test rejecting a counted booking gives its seats back."""
    booking = await book(test_session, sample_tour, sample_tour_date, people=3)
    service = BookingAdminService(test_session, feed=feed)

    async with feed.subscribe({"tour_dates"}) as subscription:
        updated = await service.update_status(
            UpdateBookingStatusRequest(booking_id=booking.id, status="rejected"), actor="admin-1"
        )
        change = await subscription.get()

    assert updated.status == "rejected"
    assert await counter(test_session, sample_tour_date) == 0
    assert change.id == str(sample_tour_date.id)


@pytest.mark.asyncio
async def test_terminal_status_cannot_change(test_session, sample_tour, sample_tour_date, feed):
    """Test that approved bookings are final."""
    booking = await book(test_session, sample_tour, sample_tour_date)
    service = BookingAdminService(test_session, feed=feed)
    await service.update_status(UpdateBookingStatusRequest(booking_id=booking.id, status="approved"), actor="admin-1")

    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        await service.update_status(
            UpdateBookingStatusRequest(booking_id=booking.id, status="rejected"), actor="admin-1"
        )

    details = exc_info.value.problem_details
    assert details["code"] == "INVALID_STATUS_TRANSITION"
    assert details["conflicting_resource"]["current_status"] == "approved"
    assert details["conflicting_resource"]["allowed_statuses"] == []
    assert await counter(test_session, sample_tour_date) == 1


@pytest.mark.asyncio
async def test_same_status_is_a_no_op(test_session, sample_tour, sample_tour_date, feed):
    """Test that repeating the current status changes nothing."""
    booking = await book(test_session, sample_tour, sample_tour_date)
    service = BookingAdminService(test_session, feed=feed)

    updated = await service.update_status(
        UpdateBookingStatusRequest(booking_id=booking.id, status="pending"), actor="admin-1"
    )

    assert updated.status == "pending"


@pytest.mark.asyncio
async def test_release_conflict_raises(test_session, sample_tour, sample_tour_date, feed):
    """Test that a release losing every race is reported."""
    booking = await book(test_session, sample_tour, sample_tour_date)
    ledger = InMemoryLedger()
    ledger.always_conflict = True
    service = BookingAdminService(test_session, ledger=ledger, feed=feed)

    with pytest.raises(SeatReleaseError) as exc_info:
        await service.update_status(
            UpdateBookingStatusRequest(booking_id=booking.id, status="rejected"), actor="admin-1"
        )

    assert exc_info.value.problem_details["code"] == "SEAT_RELEASE_CONFLICT"
    stored = await service.get_booking_or_raise(UUID(booking.id))
    assert stored.status == "pending"


@pytest.mark.asyncio
async def test_reject_flagged_booking_does_not_release(test_session, sample_tour, sample_tour_date, feed):
    """Test that uncounted seats are not subtracted when rejecting."""
    await book(test_session, sample_tour, sample_tour_date, people=1)
    booking = await flagged_booking(test_session, sample_tour_date)
    service = BookingAdminService(test_session, feed=feed)

    updated = await service.update_status(
        UpdateBookingStatusRequest(booking_id=str(booking.id), status="rejected"), actor="admin-1"
    )

    assert updated.status == "rejected"
    assert updated.needs_reconciliation is False
    assert await counter(test_session, sample_tour_date) == 1


@pytest.mark.asyncio
async def test_reconcile_applies_seats_when_they_fit(test_session, sample_tour_date, feed):
    """Test that a flagged booking is counted when the date still has room."""
    booking = await flagged_booking(test_session, sample_tour_date, people=2)
    service = BookingAdminService(test_session, feed=feed)
    assert await service.count_pending_reconciliations() == 1

    reconciled = await service.reconcile_booking(str(booking.id), actor="admin-1")

    assert reconciled.needs_reconciliation is False
    assert reconciled.status == "pending"
    assert reconciled.reconciliation_note == "Seats applied by admin-1"
    assert await counter(test_session, sample_tour_date) == 2
    assert await service.count_pending_reconciliations() == 0


@pytest.mark.asyncio
async def test_reconcile_rejects_when_date_is_full(test_session, sample_tour, sample_tour_date, feed):
    """Test that a flagged booking that no longer fits is rejected."""
    await book(test_session, sample_tour, sample_tour_date, people=4)
    booking = await flagged_booking(test_session, sample_tour_date, people=2)
    service = BookingAdminService(test_session, feed=feed)

    reconciled = await service.reconcile_booking(str(booking.id), actor="admin-1")

    assert reconciled.status == "rejected"
    assert reconciled.needs_reconciliation is False
    assert await counter(test_session, sample_tour_date) == 4


@pytest.mark.asyncio
async def test_reconcile_unflagged_booking(test_session, sample_tour, sample_tour_date, feed):
    """Test that only flagged bookings can be reconciled."""
    booking = await book(test_session, sample_tour, sample_tour_date)
    service = BookingAdminService(test_session, feed=feed)

    with pytest.raises(ConflictError) as exc_info:
        await service.reconcile_booking(booking.id, actor="admin-1")

    assert exc_info.value.problem_details["code"] == "NOT_FLAGGED"


@pytest.mark.asyncio
async def test_list_bookings_filters(test_session, sample_tour, sample_tour_date, feed):
    """Test the admin listing filters and the per-user listing."""
    first = await book(test_session, sample_tour, sample_tour_date, user_id="user-1")
    await book(test_session, sample_tour, sample_tour_date, user_id="user-2")
    flagged = await flagged_booking(test_session, sample_tour_date, people=1)
    service = BookingAdminService(test_session, feed=feed)
    await service.update_status(UpdateBookingStatusRequest(booking_id=first.id, status="approved"), actor="admin-1")

    approved = await service.list_bookings(ListBookingsRequest(status="approved"))
    queue = await service.list_bookings(ListBookingsRequest(needs_reconciliation=True))
    by_number = await service.list_bookings(ListBookingsRequest(search=flagged.booking_number))
    by_tour = await service.list_bookings(ListBookingsRequest(search="canoe"))
    mine = await service.list_user_bookings("user-1")

    assert [str(b.id) for b in approved] == [first.id]
    assert [b.id for b in queue] == [flagged.id]
    assert [b.id for b in by_number] == [flagged.id]
    assert len(by_tour) == 3
    assert [str(b.id) for b in mine] == [first.id]
    assert [b.id for b in await service.list_reconciliation_queue()] == [flagged.id]


@pytest.mark.asyncio
async def test_flagged_booking_cannot_be_approved(test_session, sample_tour_date, feed):
    """Test that a booking whose seats are not counted must be reconciled first."""
    booking = await flagged_booking(test_session, sample_tour_date, people=2)
    service = BookingAdminService(test_session, feed=feed)

    with pytest.raises(ConflictError) as exc_info:
        await service.update_status(
            UpdateBookingStatusRequest(booking_id=str(booking.id), status="approved"), actor="admin-1"
        )

    details = exc_info.value.problem_details
    assert details["code"] == "NEEDS_RECONCILIATION"
    assert details["conflicting_resource"]["reconciliation_reason"] == "COUNTER_NOT_INCREMENTED"
    stored = await service.get_booking_or_raise(booking.id)
    assert stored.status == "pending"
    assert stored.needs_reconciliation is True
    assert await counter(test_session, sample_tour_date) == 0


@pytest.mark.asyncio
async def test_reconcile_never_changes_approved_status(test_session, sample_tour, sample_tour_date, feed):
    """Test that an approved flagged booking that no longer fits stays approved and flagged."""
    await book(test_session, sample_tour, sample_tour_date, people=4)
    booking = await flagged_booking(test_session, sample_tour_date, people=2)
    await test_session.execute(
        update(TourBooking).where(TourBooking.id == booking.id).values(status=BookingStatus.APPROVED.value)
    )
    await test_session.commit()
    service = BookingAdminService(test_session, feed=feed)

    with pytest.raises(ConflictError) as exc_info:
        await service.reconcile_booking(str(booking.id), actor="admin-1")

    assert exc_info.value.problem_details["code"] == "APPROVED_BOOKING_OVER_CAPACITY"
    stored = await service.get_booking_or_raise(booking.id)
    assert stored.status == "approved"
    assert stored.needs_reconciliation is True
    assert await counter(test_session, sample_tour_date) == 4


@pytest.mark.asyncio
async def test_reconcile_respects_tour_ceiling(test_session, sample_tour, sample_tour_date, feed):
    """Test that reconciled seats cannot push a tour past its participant ceiling."""
    dates = TourDateService(test_session, feed=feed)
    for offset in range(1, 5):
        other = await dates.create_tour_date(
            CreateTourDateRequest(
                tour_id=str(sample_tour.id),
                available_date=sample_tour_date.available_date + timedelta(days=offset),
                max_bookings=5
            )
        )
        await book(test_session, sample_tour, other, people=5, user_id=f"user-{offset}")

    booking = await flagged_booking(test_session, sample_tour_date, people=2)
    service = BookingAdminService(test_session, feed=feed)

    reconciled = await service.reconcile_booking(str(booking.id), actor="admin-1")

    assert reconciled.status == "rejected"
    assert reconciled.needs_reconciliation is False
    assert await counter(test_session, sample_tour_date) == 0
    assert await SqlCapacityLedger(test_session).sum_bookings_for_tour(sample_tour.id) == 20


@pytest.mark.asyncio
async def test_reconcile_releases_seats_of_overbooked_tour(test_session, sample_tour, sample_tour_date, feed):
    """Test that a counted booking over the tour ceiling is rejected and its seats released."""
    booking = await book(test_session, sample_tour, sample_tour_date, people=2)
    ledger = SqlCapacityLedger(test_session)
    await ledger.flag_booking_for_reconciliation(
        UUID(booking.id), ReconciliationReason.SEATS_NOT_RELEASED, "tour over max_participants"
    )
    await test_session.execute(update(Tour).where(Tour.id == sample_tour.id).values(max_participants=1))
    await test_session.commit()
    service = BookingAdminService(test_session, feed=feed)

    reconciled = await service.reconcile_booking(booking.id, actor="admin-1")

    assert reconciled.status == "rejected"
    assert reconciled.needs_reconciliation is False
    assert await counter(test_session, sample_tour_date) == 0


@pytest.mark.asyncio
async def test_reconcile_keeps_counted_seats_within_ceiling(test_session, sample_tour, sample_tour_date, feed):
    """Test that a counted booking is kept once its tour is back within the ceiling."""
    booking = await book(test_session, sample_tour, sample_tour_date, people=2)
    await SqlCapacityLedger(test_session).flag_booking_for_reconciliation(
        UUID(booking.id), ReconciliationReason.SEATS_NOT_RELEASED, "tour over max_participants"
    )
    service = BookingAdminService(test_session, feed=feed)

    reconciled = await service.reconcile_booking(booking.id, actor="admin-1")

    assert reconciled.status == "pending"
    assert reconciled.needs_reconciliation is False
    assert await counter(test_session, sample_tour_date) == 2


@pytest.mark.asyncio
async def test_customer_listing_hides_lost_bookings(test_session, sample_tour_date, feed):
    """Test that bookings the customer was told did not go through are not listed."""
    recorded = await flagged_booking(test_session, sample_tour_date, people=1)
    await flagged_booking(
        test_session,
        sample_tour_date,
        people=1,
        booking_number="BOOK-1718000000000-0100",
        reason=ReconciliationReason.CAPACITY_LOST,
    )
    service = BookingAdminService(test_session, feed=feed)

    mine = await service.list_user_bookings("user-456")

    assert [b.id for b in mine] == [recorded.id]
    assert len(await service.list_reconciliation_queue()) == 2

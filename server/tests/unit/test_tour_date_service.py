"""Unit tests for tour date service."""

from datetime import date, timedelta
from uuid import uuid4

import pytest

from storefront.core.exceptions import ConflictError, NotFoundError, ValidationError
from storefront.schemas.tour_date import (
    CreateTourDateRequest,
    SetTourDateAvailabilityRequest,
    UpdateTourDateCapacityRequest,
)
from storefront.services.capacity_ledger import SqlCapacityLedger
from storefront.services.tour_date_service import CapacityBelowBookingsError, TourDateService


@pytest.mark.asyncio
async def test_create_tour_date(test_session, sample_tour, feed):
    """Test scheduling a date with an empty counter."""
    service = TourDateService(test_session, feed=feed)

    async with feed.subscribe({"tour_dates"}) as subscription:
        tour_date = await service.create_tour_date(
            CreateTourDateRequest(
                tour_id=str(sample_tour.id),
                available_date=date.today() + timedelta(days=30),
                max_bookings=12
            )
        )
        change = await subscription.get()

    assert tour_date.current_bookings == 0
    assert tour_date.max_bookings == 12
    assert tour_date.is_available is True
    assert change.event == "INSERT"


@pytest.mark.asyncio
async def test_create_tour_date_in_the_past(test_session, sample_tour):
    """Test that past dates are rejected."""
    service = TourDateService(test_session)

    with pytest.raises(ValidationError) as exc_info:
        await service.create_tour_date(
            CreateTourDateRequest(
                tour_id=str(sample_tour.id),
                available_date=date.today() - timedelta(days=1)
            )
        )
    assert exc_info.value.problem_details["violations"][0]["path"] == "available_date"


@pytest.mark.asyncio
async def test_create_duplicate_tour_date(test_session, sample_tour, sample_tour_date, feed):
    """Test that a tour cannot have the same day twice."""
    service = TourDateService(test_session, feed=feed)

    with pytest.raises(ConflictError) as exc_info:
        await service.create_tour_date(
            CreateTourDateRequest(
                tour_id=str(sample_tour.id),
                available_date=date.today() + timedelta(days=7)
            )
        )
    assert exc_info.value.problem_details["code"] == "DUPLICATE_TOUR_DATE"


@pytest.mark.asyncio
async def test_create_tour_date_unknown_tour(test_session):
    """Test scheduling a date for a tour that does not exist."""
    service = TourDateService(test_session)

    with pytest.raises(NotFoundError):
        await service.create_tour_date(
            CreateTourDateRequest(tour_id=str(uuid4()), available_date=date.today() + timedelta(days=3))
        )


@pytest.mark.asyncio
async def test_update_capacity(test_session, sample_tour_date, feed):
    """Test raising a date's ceiling."""
    service = TourDateService(test_session, feed=feed)

    tour_date = await service.update_capacity(
        UpdateTourDateCapacityRequest(id=str(sample_tour_date.id), max_bookings=9)
    )

    assert tour_date.max_bookings == 9
    assert tour_date.remaining == 9


@pytest.mark.asyncio
async def test_update_capacity_below_bookings(test_session, sample_tour_date, feed):
    """Test that the ceiling cannot drop below people already booked."""
    await SqlCapacityLedger(test_session).increment_date_bookings(sample_tour_date.id, 4, 0)
    service = TourDateService(test_session, feed=feed)

    with pytest.raises(CapacityBelowBookingsError) as exc_info:
        await service.update_capacity(
            UpdateTourDateCapacityRequest(id=str(sample_tour_date.id), max_bookings=3)
        )

    assert exc_info.value.status_code == 409
    assert exc_info.value.problem_details["conflicting_resource"]["current_bookings"] == 4

    tour_date = await service.update_capacity(
        UpdateTourDateCapacityRequest(id=str(sample_tour_date.id), max_bookings=4)
    )
    assert tour_date.remaining == 0


@pytest.mark.asyncio
async def test_set_availability(test_session, sample_tour, sample_tour_date, feed):
    """Test closing a date removes it from the bookable list."""
    service = TourDateService(test_session, feed=feed)

    await service.set_availability(SetTourDateAvailabilityRequest(id=str(sample_tour_date.id), is_available=False))

    assert await service.list_for_tour(str(sample_tour.id), available_only=True) == []
    assert len(await service.list_for_tour(str(sample_tour.id), available_only=False)) == 1


@pytest.mark.asyncio
async def test_delete_unbooked_tour_date(test_session, sample_tour, sample_tour_date, feed):
    """Test deleting a date nobody is booked on."""
    service = TourDateService(test_session, feed=feed)
    tour_date_id = str(sample_tour_date.id)

    async with feed.subscribe({"tour_dates"}) as subscription:
        await service.delete_tour_date(tour_date_id)
        change = await subscription.get()

    assert (change.event, change.id) == ("DELETE", tour_date_id)
    assert await service.list_for_tour(str(sample_tour.id), available_only=False) == []


@pytest.mark.asyncio
async def test_delete_booked_tour_date_refused(test_session, sample_tour_date, feed):
    """Test that dates with people booked cannot be deleted."""
    await SqlCapacityLedger(test_session).increment_date_bookings(sample_tour_date.id, 1, 0)
    service = TourDateService(test_session, feed=feed)

    with pytest.raises(ConflictError) as exc_info:
        await service.delete_tour_date(str(sample_tour_date.id))

    assert exc_info.value.problem_details["code"] == "TOUR_DATE_HAS_BOOKINGS"


@pytest.mark.asyncio
async def test_list_for_tour_orders_by_date(test_session, sample_tour, sample_tour_date, feed):
    """Test dates are listed earliest first."""
    service = TourDateService(test_session, feed=feed)
    await service.create_tour_date(
        CreateTourDateRequest(tour_id=str(sample_tour.id), available_date=date.today() + timedelta(days=2))
    )

    dates = await service.list_for_tour(str(sample_tour.id), available_only=True)

    assert [d.available_date for d in dates] == [
        date.today() + timedelta(days=2),
        date.today() + timedelta(days=7),
    ]

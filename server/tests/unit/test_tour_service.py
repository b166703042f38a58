"""Unit tests for tour service."""

from decimal import Decimal
from uuid import uuid4

import pytest

from storefront.core.exceptions import NotFoundError
from storefront.schemas.tour import CreateTourRequest, ListToursRequest, UpdateTourRequest
from storefront.services.tour_service import TourService, parse_resource_id


@pytest.mark.asyncio
async def test_create_tour(test_session, sample_tour_data, feed):
    """Test creating a tour."""
    service = TourService(test_session, feed=feed)

    async with feed.subscribe({"tours"}) as subscription:
        tour = await service.create_tour(CreateTourRequest(**sample_tour_data))
        change = await subscription.get()

    assert tour.id is not None
    assert tour.name == sample_tour_data["name"]
    assert tour.price == Decimal("450.00")
    assert tour.max_participants == 20
    assert tour.is_active is True
    assert (change.table, change.event, change.id) == ("tours", "INSERT", str(tour.id))


@pytest.mark.asyncio
async def test_get_tour_by_id(test_session, sample_tour):
    """Test getting a tour by ID."""
    service = TourService(test_session)

    found_tour = await service.get_tour_by_id(sample_tour.id)

    assert found_tour is not None
    assert found_tour.id == sample_tour.id
    assert found_tour.name == "Mangrove Canoe Trail"


@pytest.mark.asyncio
async def test_get_tour_by_id_not_found(test_session):
    """Test getting a non-existent tour returns None."""
    service = TourService(test_session)

    assert await service.get_tour_by_id(uuid4()) is None
    with pytest.raises(NotFoundError):
        await service.get_tour_by_id_or_raise(uuid4())


@pytest.mark.asyncio
async def test_update_tour_only_touches_sent_fields(test_session, sample_tour, feed):
    """Test partial tour updates."""
    service = TourService(test_session, feed=feed)

    tour = await service.update_tour(
        UpdateTourRequest(id=str(sample_tour.id), price=Decimal("495.00"), max_participants=40)
    )

    assert tour.price == Decimal("495.00")
    assert tour.max_participants == 40
    assert tour.name == "Mangrove Canoe Trail"
    assert tour.location == "Umhlanga Lagoon"


@pytest.mark.asyncio
async def test_update_tour_clears_participant_ceiling(test_session, sample_tour):
    """Test that an explicit null removes the tour-wide ceiling."""
    service = TourService(test_session)

    tour = await service.update_tour(UpdateTourRequest(id=str(sample_tour.id), max_participants=None))

    assert tour.max_participants is None


@pytest.mark.asyncio
async def test_deactivate_tour_hides_it_from_listing(test_session, sample_tour, feed):
    """Test that deactivated tours only show up when asked for."""
    service = TourService(test_session, feed=feed)

    tour = await service.deactivate_tour(str(sample_tour.id))
    again = await service.deactivate_tour(str(sample_tour.id))

    assert tour.is_active is False
    assert again.is_active is False
    assert await service.list_tours(ListToursRequest()) == []
    assert len(await service.list_tours(ListToursRequest(include_inactive=True))) == 1


@pytest.mark.asyncio
async def test_list_tours_search(test_session, sample_tour):
    """Test case-insensitive name search."""
    service = TourService(test_session)
    await service.create_tour(CreateTourRequest(name="Dune Walk", price=Decimal("150.00")))

    names = [t.name for t in await service.list_tours(ListToursRequest(search="mangrove"))]
    all_names = [t.name for t in await service.list_tours(ListToursRequest())]

    assert names == ["Mangrove Canoe Trail"]
    assert all_names == ["Dune Walk", "Mangrove Canoe Trail"]


def test_parse_resource_id_rejects_malformed_ids():
    """Test that malformed IDs are reported as not found."""
    with pytest.raises(NotFoundError) as exc_info:
        parse_resource_id("tour_123", "tour")

    assert exc_info.value.status_code == 404
    assert exc_info.value.problem_details["resource_type"] == "tour"

"""Tour service for business logic operations."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError
from ..models.tour import Tour
from ..schemas.tour import CreateTourRequest, ListToursRequest, UpdateTourRequest
from .change_feed import ChangeFeed, change_feed

logger = logging.getLogger(__name__)


def parse_resource_id(value: str, resource_type: str) -> UUID:
    """Parse a client-supplied ID; malformed IDs cannot exist, so report them as not found."""
    try:
        return UUID(value)
    except (ValueError, TypeError):
        raise NotFoundError(resource_type=resource_type, resource_id=str(value))


class TourService:
    """Service for tour-related operations."""

    def __init__(self, db: AsyncSession, feed: ChangeFeed | None = None):
        self.db = db
        self.feed = feed or change_feed

    async def create_tour(self, request: CreateTourRequest) -> Tour:
        """
        Create a new tour.

        Args:
            request: Tour creation request

        Returns:
            Created tour entity
        """
        tour = Tour(
            name=request.name,
            description=request.description,
            price=request.price,
            duration=request.duration,
            location=request.location,
            image_url=request.image_url,
            max_participants=request.max_participants,
            is_active=True
        )

        self.db.add(tour)
        await self.db.commit()
        await self.db.refresh(tour)

        logger.info(
            "Tour created successfully",
            extra={
                "tour_id": str(tour.id),
                "name": tour.name,
                "max_participants": tour.max_participants
            }
        )
        self.feed.publish("tours", "INSERT", str(tour.id))

        return tour

    async def update_tour(self, request: UpdateTourRequest) -> Tour:
        """
        Update the fields present in the request.

        ``max_participants`` may be lowered below the seats already booked;
        existing bookings are kept and further requests are refused.

        Raises:
            NotFoundError: If tour not found
        """
        tour = await self.get_tour_by_id_or_raise(parse_resource_id(request.id, "tour"))

        changes = request.model_dump(exclude_unset=True, exclude={"id"})
        for field_name, value in changes.items():
            setattr(tour, field_name, value)

        await self.db.commit()
        await self.db.refresh(tour)

        logger.info(
            "Tour updated",
            extra={
                "tour_id": str(tour.id),
                "fields": sorted(changes)
            }
        )
        self.feed.publish("tours", "UPDATE", str(tour.id))

        return tour

    async def deactivate_tour(self, tour_id: str) -> Tour:
        """
        Hide a tour from customers without deleting it.

        Bookings keep their snapshot of the tour name and date.
        """
        tour = await self.get_tour_by_id_or_raise(parse_resource_id(tour_id, "tour"))

        if not tour.is_active:
            logger.info("Tour already inactive", extra={"tour_id": tour_id})
            return tour

        tour.is_active = False
        await self.db.commit()
        await self.db.refresh(tour)

        logger.info("Tour deactivated", extra={"tour_id": tour_id})
        self.feed.publish("tours", "UPDATE", tour_id)

        return tour

    async def list_tours(self, request: ListToursRequest) -> list[Tour]:
        """List tours ordered by name, active ones only unless asked otherwise."""
        stmt = select(Tour).order_by(Tour.name.asc())
        if not request.include_inactive:
            stmt = stmt.where(Tour.is_active.is_(True))
        if request.search:
            stmt = stmt.where(Tour.name.ilike(f"%{request.search}%"))

        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def get_tour_by_id(self, tour_id: UUID) -> Optional[Tour]:
        """
        Get tour by ID.

        Args:
            tour_id: Tour ID to search for

        Returns:
            Tour if found, None otherwise
        """
        stmt = select(Tour).where(Tour.id == tour_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tour_by_id_or_raise(self, tour_id: UUID) -> Tour:
        """
        Get tour by ID or raise NotFoundError.

        Raises:
            NotFoundError: If tour not found
        """
        tour = await self.get_tour_by_id(tour_id)
        if not tour:
            logger.warning(
                "Tour not found",
                extra={"tour_id": str(tour_id)}
            )
            raise NotFoundError(
                resource_type="tour",
                resource_id=str(tour_id)
            )
        return tour

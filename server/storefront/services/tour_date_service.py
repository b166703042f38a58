"""Tour date service for schedule management."""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.observability import metrics_collector
from ..models.tour_date import TourDate
from ..schemas.tour_date import (
    CreateTourDateRequest,
    SetTourDateAvailabilityRequest,
    UpdateTourDateCapacityRequest,
)
from .change_feed import ChangeFeed, change_feed
from .tour_service import TourService, parse_resource_id

logger = logging.getLogger(__name__)


class CapacityBelowBookingsError(ConflictError):
    """Exception when a ceiling change would drop below seats already booked."""

    def __init__(self, tour_date_id: str, requested_max: int, current_bookings: int):
        super().__init__(
            detail=(
                f"Cannot set max_bookings to {requested_max}: "
                f"{current_bookings} people are already booked on tour date {tour_date_id}"
            ),
            conflicting_resource={
                "tour_date_id": tour_date_id,
                "requested_max_bookings": requested_max,
                "current_bookings": current_bookings
            },
            code="CAPACITY_BELOW_BOOKINGS",
        )


class TourDateService:
    """Service for tour date operations; never writes ``current_bookings``."""

    def __init__(self, db: AsyncSession, feed: ChangeFeed | None = None):
        self.db = db
        self.feed = feed or change_feed
        self.tour_service = TourService(db, feed=self.feed)

    async def create_tour_date(self, request: CreateTourDateRequest) -> TourDate:
        """
        Schedule a new date for a tour with an empty counter.

        Raises:
            NotFoundError: If tour not found
            ValidationError: If the date is in the past
            ConflictError: If the tour already has this date
        """
        tour_id = parse_resource_id(request.tour_id, "tour")
        await self.tour_service.get_tour_by_id_or_raise(tour_id)

        if request.available_date < date.today():
            raise ValidationError(
                detail="Tour dates cannot be scheduled in the past",
                violations=[{"path": "available_date", "message": "must be today or later"}]
            )

        tour_date = TourDate(
            tour_id=tour_id,
            available_date=request.available_date,
            max_bookings=request.max_bookings,
            current_bookings=0,
            is_available=True
        )

        try:
            self.db.add(tour_date)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                "Tour date creation failed - duplicate date",
                extra={
                    "tour_id": request.tour_id,
                    "available_date": request.available_date.isoformat(),
                    "error": str(e.orig)
                }
            )
            raise ConflictError(
                detail=f"Tour already has a date on {request.available_date.isoformat()}",
                conflicting_resource={
                    "tour_id": request.tour_id,
                    "available_date": request.available_date.isoformat()
                },
                code="DUPLICATE_TOUR_DATE",
            )

        await self.db.refresh(tour_date)

        logger.info(
            "Tour date created",
            extra={
                "tour_date_id": str(tour_date.id),
                "tour_id": request.tour_id,
                "available_date": request.available_date.isoformat(),
                "max_bookings": request.max_bookings
            }
        )
        metrics_collector.set_date_utilization(str(tour_date.id), 0, tour_date.max_bookings)
        self.feed.publish("tour_dates", "INSERT", str(tour_date.id))

        return tour_date

    async def update_capacity(self, request: UpdateTourDateCapacityRequest) -> TourDate:
        """
        Change a date's ceiling.

        Raises:
            NotFoundError: If tour date not found
            CapacityBelowBookingsError: If people already booked exceed the new ceiling
        """
        tour_date = await self.get_tour_date_or_raise(parse_resource_id(request.id, "tour_date"))

        if request.max_bookings < tour_date.current_bookings:
            logger.warning(
                "Capacity update failed - below current bookings",
                extra={
                    "tour_date_id": request.id,
                    "requested_max": request.max_bookings,
                    "current_bookings": tour_date.current_bookings
                }
            )
            raise CapacityBelowBookingsError(request.id, request.max_bookings, tour_date.current_bookings)

        previous = tour_date.max_bookings
        tour_date.max_bookings = request.max_bookings

        try:
            await self.db.commit()
        except IntegrityError:
            # A booking landed between the read and the write
            await self.db.rollback()
            tour_date = await self.get_tour_date_or_raise(tour_date.id)
            raise CapacityBelowBookingsError(request.id, request.max_bookings, tour_date.current_bookings)

        await self.db.refresh(tour_date)

        logger.info(
            "Tour date capacity updated",
            extra={
                "tour_date_id": request.id,
                "max_bookings_before": previous,
                "max_bookings_after": tour_date.max_bookings,
                "current_bookings": tour_date.current_bookings
            }
        )
        metrics_collector.set_date_utilization(request.id, tour_date.current_bookings, tour_date.max_bookings)
        self.feed.publish("tour_dates", "UPDATE", request.id)

        return tour_date

    async def set_availability(self, request: SetTourDateAvailabilityRequest) -> TourDate:
        """Toggle whether customers can book a date."""
        tour_date = await self.get_tour_date_or_raise(parse_resource_id(request.id, "tour_date"))

        tour_date.is_available = request.is_available
        await self.db.commit()
        await self.db.refresh(tour_date)

        logger.info(
            "Tour date availability changed",
            extra={"tour_date_id": request.id, "is_available": request.is_available}
        )
        self.feed.publish("tour_dates", "UPDATE", request.id)

        return tour_date

    async def delete_tour_date(self, tour_date_id: str) -> None:
        """
        Remove a date that nobody is booked on.

        Raises:
            NotFoundError: If tour date not found
            ConflictError: If people are booked on the date
        """
        tour_date = await self.get_tour_date_or_raise(parse_resource_id(tour_date_id, "tour_date"))

        if tour_date.current_bookings > 0:
            raise ConflictError(
                detail=(
                    f"Tour date {tour_date_id} has {tour_date.current_bookings} people booked; "
                    "make it unavailable instead"
                ),
                conflicting_resource={
                    "tour_date_id": tour_date_id,
                    "current_bookings": tour_date.current_bookings
                },
                code="TOUR_DATE_HAS_BOOKINGS",
            )

        stmt = (
            delete(TourDate)
            .where(TourDate.id == tour_date.id, TourDate.current_bookings == 0)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        if result.rowcount != 1:
            raise ConflictError(
                detail=f"Tour date {tour_date_id} was booked while being deleted",
                conflicting_resource={"tour_date_id": tour_date_id},
                code="TOUR_DATE_HAS_BOOKINGS",
            )
        self.db.expunge(tour_date)

        logger.info("Tour date deleted", extra={"tour_date_id": tour_date_id})
        self.feed.publish("tour_dates", "DELETE", tour_date_id)

    async def list_for_tour(self, tour_id: str, available_only: bool) -> list[TourDate]:
        """
        List a tour's dates ordered by date.

        With ``available_only`` the result is what customers may book:
        available dates from today onwards.
        """
        tour_uuid = parse_resource_id(tour_id, "tour")
        stmt = (
            select(TourDate)
            .where(TourDate.tour_id == tour_uuid)
            .order_by(TourDate.available_date.asc())
            .execution_options(populate_existing=True)
        )
        if available_only:
            stmt = stmt.where(
                TourDate.is_available.is_(True),
                TourDate.available_date >= date.today()
            )

        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def get_tour_date_or_raise(self, tour_date_id: UUID) -> TourDate:
        """Get tour date by ID with fresh column values or raise NotFoundError."""
        stmt = (
            select(TourDate)
            .where(TourDate.id == tour_date_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        tour_date = result.scalar_one_or_none()
        if not tour_date:
            logger.warning(
                "Tour date not found",
                extra={"tour_date_id": str(tour_date_id)}
            )
            raise NotFoundError(
                resource_type="tour_date",
                resource_id=str(tour_date_id)
            )
        return tour_date

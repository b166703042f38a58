"""Booking administration: listings, approval and reconciliation."""

import logging
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ConflictError, InvalidStatusTransitionError, NotFoundError
from ..core.observability import metrics_collector
from ..models.booking import BookingStatus, ReconciliationReason, TourBooking
from ..models.tour import Tour
from ..models.tour_date import TourDate
from ..schemas.booking import ListBookingsRequest, UpdateBookingStatusRequest
from .booking_allocator import evaluate_capacity
from .capacity_ledger import CapacityLedger, SqlCapacityLedger
from .change_feed import ChangeFeed, change_feed
from .tour_service import parse_resource_id

logger = logging.getLogger(__name__)

# pending -> approved | rejected; approved and rejected are terminal
ALLOWED_BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.APPROVED, BookingStatus.REJECTED}),
    BookingStatus.APPROVED: frozenset(),
    BookingStatus.REJECTED: frozenset(),
}


class SeatReleaseError(ConflictError):
    """Exception when a rejected booking's seats could not be returned to its date."""

    def __init__(self, booking_number: str, tour_date_id: str):
        super().__init__(
            detail=(
                f"Could not release the seats of booking {booking_number} "
                f"on tour date {tour_date_id}; please retry"
            ),
            conflicting_resource={
                "booking_number": booking_number,
                "tour_date_id": tour_date_id
            },
            code="SEAT_RELEASE_CONFLICT",
        )


class BookingAdminService:
    """Service for booking listings and admin-controlled status changes."""

    def __init__(
        self,
        db: AsyncSession,
        ledger: CapacityLedger | None = None,
        feed: ChangeFeed | None = None,
    ):
        self.db = db
        self.ledger = ledger or SqlCapacityLedger(db)
        self.feed = feed or change_feed

    async def list_user_bookings(self, user_id: str) -> list[TourBooking]:
        """
        A user's own bookings, newest first.

        Rows still flagged CAPACITY_LOST are left out: the customer was told
        the booking did not go through.
        """
        shown = or_(
            TourBooking.needs_reconciliation.is_(False),
            TourBooking.reconciliation_reason.is_distinct_from(ReconciliationReason.CAPACITY_LOST.value)
        )
        stmt = (
            select(TourBooking)
            .where(TourBooking.user_id == user_id, shown)
            .order_by(TourBooking.created_at.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def list_bookings(self, request: ListBookingsRequest) -> list[TourBooking]:
        """Admin listing with status, flag and text filters."""
        stmt = (
            select(TourBooking)
            .order_by(TourBooking.created_at.desc())
            .limit(request.limit)
            .execution_options(populate_existing=True)
        )
        if request.status is not None:
            stmt = stmt.where(TourBooking.status == request.status.value)
        if request.needs_reconciliation is not None:
            stmt = stmt.where(TourBooking.needs_reconciliation.is_(request.needs_reconciliation))
        if request.search:
            pattern = f"%{request.search}%"
            stmt = stmt.where(
                or_(
                    TourBooking.booking_number.ilike(pattern),
                    TourBooking.tour_name.ilike(pattern)
                )
            )

        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def update_status(self, request: UpdateBookingStatusRequest, actor: str) -> TourBooking:
        """
        Approve or reject a pending booking.

        Rejecting a booking whose seats are counted releases them from its
        tour date through the conditional counter update. Flagged bookings
        can be rejected but not approved.

        Raises:
            NotFoundError: If booking not found
            InvalidStatusTransitionError: If the booking is no longer pending
            ConflictError: If a flagged booking is approved before reconciliation
            SeatReleaseError: If the seats could not be released
        """
        booking = await self.get_booking_or_raise(parse_resource_id(request.booking_id, "booking"))
        current = BookingStatus(booking.status)
        target = BookingStatus(request.status)

        if current == target:
            logger.info(
                "Booking already in requested status",
                extra={"booking_id": request.booking_id, "status": current.value}
            )
            return booking

        allowed = ALLOWED_BOOKING_TRANSITIONS[current]
        if target not in allowed:
            raise InvalidStatusTransitionError(
                resource_type="booking",
                resource_id=request.booking_id,
                current_status=current.value,
                requested_status=target.value,
                allowed=sorted(s.value for s in allowed),
            )

        if target == BookingStatus.APPROVED and booking.needs_reconciliation:
            raise ConflictError(
                detail=f"Booking {booking.booking_number} must be reconciled before it can be approved",
                conflicting_resource={
                    "booking_id": request.booking_id,
                    "reconciliation_reason": booking.reconciliation_reason
                },
                code="NEEDS_RECONCILIATION",
            )

        if target == BookingStatus.REJECTED and booking.counts_against_capacity:
            await self._release_seats(booking)

        booking.status = target
        if target == BookingStatus.REJECTED and booking.needs_reconciliation:
            booking.needs_reconciliation = False
            booking.reconciliation_note = f"Rejected by {actor}"
        await self.db.commit()
        await self.db.refresh(booking)

        logger.info(
            "Booking status changed",
            extra={
                "booking_id": request.booking_id,
                "booking_number": booking.booking_number,
                "from_status": current.value,
                "to_status": target.value,
                "actor": actor
            }
        )

        return booking

    async def list_reconciliation_queue(self) -> list[TourBooking]:
        """Flagged bookings, oldest first."""
        stmt = (
            select(TourBooking)
            .where(TourBooking.needs_reconciliation.is_(True))
            .order_by(TourBooking.created_at.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def count_pending_reconciliations(self) -> int:
        stmt = select(func.count(TourBooking.id)).where(TourBooking.needs_reconciliation.is_(True))
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def reconcile_booking(self, booking_id: str, actor: str) -> TourBooking:
        """
        Resolve a flagged booking.

        Uncounted seats are applied to the tour date counter when they fit
        both the date and the tour's ``max_participants``; otherwise the
        booking is rejected. A SEATS_NOT_RELEASED booking keeps its seats if
        its tour is back within the ceiling and is rejected with its seats
        released if not. The flag is cleared either way. Approved bookings
        are final, so one whose seats cannot be counted stays flagged.

        Raises:
            NotFoundError: If booking not found
            ConflictError: If the booking is not flagged, or is approved and
                its seats no longer fit
            SeatReleaseError: If overbooked seats could not be released
        """
        booking = await self.get_booking_or_raise(parse_resource_id(booking_id, "booking"))

        if not booking.needs_reconciliation:
            raise ConflictError(
                detail=f"Booking {booking.booking_number} does not need reconciliation",
                conflicting_resource={"booking_id": booking_id},
                code="NOT_FLAGGED",
            )

        if booking.reconciliation_reason == ReconciliationReason.SEATS_NOT_RELEASED.value:
            kept = await self._settle_counted_seats(booking)
        else:
            kept = False
            if booking.status != BookingStatus.REJECTED and booking.tour_date_id is not None:
                kept = await self._apply_seats(booking)

        if kept:
            note = f"Seats applied by {actor}"
        elif booking.status == BookingStatus.APPROVED:
            raise ConflictError(
                detail=(
                    f"Approved booking {booking.booking_number} no longer fits its tour date; "
                    "raise the date's capacity and reconcile again"
                ),
                conflicting_resource={"booking_id": booking_id, "tour_date_id": str(booking.tour_date_id)},
                code="APPROVED_BOOKING_OVER_CAPACITY",
            )
        else:
            booking.status = BookingStatus.REJECTED
            note = f"Rejected by {actor}: capacity no longer available"

        booking.needs_reconciliation = False
        booking.reconciliation_note = note
        await self.db.commit()
        await self.db.refresh(booking)

        metrics_collector.set_pending_reconciliations(await self.count_pending_reconciliations())
        logger.info(
            "Booking reconciled",
            extra={
                "booking_id": booking_id,
                "booking_number": booking.booking_number,
                "reason": booking.reconciliation_reason,
                "seats_applied": kept,
                "actor": actor
            }
        )

        return booking

    async def get_booking_or_raise(self, booking_id: UUID) -> TourBooking:
        """Get booking by ID with fresh column values or raise NotFoundError."""
        stmt = (
            select(TourBooking)
            .where(TourBooking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        booking = result.scalar_one_or_none()
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

    async def _apply_seats(self, booking: TourBooking) -> bool:
        """Add a flagged booking's seats to its date if they fit the date and the tour."""
        people = booking.number_of_people
        for _ in range(settings.booking_max_attempts):
            tour_date = await self._read_tour_date(booking.tour_date_id)
            if tour_date is None:
                return False
            tour = await self._read_tour(tour_date.tour_id)
            decision = evaluate_capacity(
                people,
                tour_date.max_bookings,
                tour_date.current_bookings,
                tour.max_participants if tour else None,
                await self.ledger.sum_bookings_for_tour(tour_date.tour_id),
            )
            if not decision.accepted:
                logger.info(
                    "Flagged booking no longer fits",
                    extra={"booking_number": booking.booking_number, "reason": decision.reason.value}
                )
                return False

            if await self.ledger.increment_date_bookings(tour_date.id, people, tour_date.current_bookings):
                if await self._within_tour_ceiling(tour):
                    self.feed.publish("tour_dates", "UPDATE", str(tour_date.id))
                    return True
                # Another date of the tour filled up in the meantime
                await self._release_seats(booking)
                return False
            metrics_collector.record_ledger_conflict()
        return False

    async def _settle_counted_seats(self, booking: TourBooking) -> bool:
        """Keep a counted booking's seats if its tour fits its ceiling, release them if not."""
        tour_date = await self._read_tour_date(booking.tour_date_id)
        tour = await self._read_tour(tour_date.tour_id) if tour_date else None
        if tour is not None and await self._within_tour_ceiling(tour):
            return True
        await self._release_seats(booking)
        return False

    async def _within_tour_ceiling(self, tour: Tour | None) -> bool:
        if tour is None or tour.max_participants is None:
            return True
        return await self.ledger.sum_bookings_for_tour(tour.id) <= tour.max_participants

    async def _release_seats(self, booking: TourBooking) -> None:
        for _ in range(settings.booking_max_attempts):
            tour_date = await self._read_tour_date(booking.tour_date_id)
            if tour_date is None:
                logger.warning(
                    "Released booking's tour date no longer exists",
                    extra={"booking_number": booking.booking_number}
                )
                return
            if await self.ledger.increment_date_bookings(
                tour_date.id, -booking.number_of_people, tour_date.current_bookings
            ):
                self.feed.publish("tour_dates", "UPDATE", str(tour_date.id))
                return
            metrics_collector.record_ledger_conflict()

        raise SeatReleaseError(booking.booking_number, str(booking.tour_date_id))

    async def _read_tour_date(self, tour_date_id: UUID) -> TourDate | None:
        stmt = (
            select(TourDate)
            .where(TourDate.id == tour_date_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _read_tour(self, tour_id: UUID) -> Tour | None:
        stmt = (
            select(Tour)
            .where(Tour.id == tour_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

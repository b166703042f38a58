"""Booking allocator: validates capacity and commits tour bookings."""

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable
from uuid import UUID

from ..core.config import settings
from ..core.observability import get_logger, metrics_collector
from ..models.booking import BookingStatus, ReconciliationReason, TourBooking
from ..models.tour import Tour
from ..models.tour_date import TourDate
from ..schemas.booking import BookingOutcome, BookingReason, BookingRequest
from ..schemas.booking import TourBooking as TourBookingSchema
from .capacity_ledger import CapacityLedger, DuplicateBookingNumberError, LedgerError

logger = logging.getLogger(__name__)
state_log = get_logger("booking_allocator")


class AllocationState(str, Enum):
    """Per-request allocation states."""
    VALIDATING = "validating"
    CAPACITY_CHECKED = "capacity_checked"
    COMMITTING = "committing"
    COMMITTED = "committed"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class CapacityDecision:
    """Result of checking a party size against date and tour ceilings."""

    accepted: bool
    remaining_on_date: int
    remaining_on_tour: int | None
    reason: BookingReason | None = None


def evaluate_capacity(
    number_of_people: int,
    max_bookings: int,
    current_bookings: int,
    max_participants: int | None,
    tour_total: int,
) -> CapacityDecision:
    """
    Decide whether ``number_of_people`` fits on a date and within its tour.

    ``max_participants`` of None means the tour has no tour-wide ceiling.
    """
    remaining_on_date = max_bookings - current_bookings
    remaining_on_tour = None if max_participants is None else max_participants - tour_total

    if number_of_people > remaining_on_date:
        return CapacityDecision(False, remaining_on_date, remaining_on_tour, BookingReason.DATE_FULL)
    if remaining_on_tour is not None and number_of_people > remaining_on_tour:
        return CapacityDecision(False, remaining_on_date, remaining_on_tour, BookingReason.TOUR_FULL)
    return CapacityDecision(True, remaining_on_date, remaining_on_tour)


def generate_booking_number() -> str:
    """Generate a human-readable booking number, e.g. BOOK-1718000000000-4821."""
    return f"BOOK-{int(time.time() * 1000)}-{secrets.randbelow(10000):04d}"


class BookingAllocator:
    """
    Turns booking requests into committed bookings without overbooking.

    The allocator re-reads ledger state for every capacity check and relies on
    the ledger's conditional increment to settle races between clients.
    ``allocate`` never raises; every result is a ``BookingOutcome``.
    """

    def __init__(
        self,
        ledger: CapacityLedger,
        max_attempts: int | None = None,
        today: Callable[[], date] = date.today,
        booking_number_factory: Callable[[], str] = generate_booking_number,
    ):
        self.ledger = ledger
        self.max_attempts = settings.booking_max_attempts if max_attempts is None else max_attempts
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.today = today
        self.booking_number_factory = booking_number_factory

    async def allocate(self, request: BookingRequest) -> BookingOutcome:
        """Validate, capacity-check and commit one booking request."""
        try:
            outcome = await self._allocate(request)
        except Exception as e:
            logger.error(
                "Booking allocation failed unexpectedly",
                extra={
                    "tour_id": request.tour_id,
                    "tour_date_id": request.tour_date_id,
                    "user_id": request.user_id,
                    "error": str(e)
                },
                exc_info=True
            )
            outcome = BookingOutcome.failed(BookingReason.FAILED, "Unexpected error while booking")

        metrics_collector.record_booking_outcome(
            outcome.kind.value,
            outcome.reason.value if outcome.reason else None
        )
        return outcome

    async def _allocate(self, request: BookingRequest) -> BookingOutcome:
        self._transition(request, AllocationState.VALIDATING)

        if request.number_of_people < 1:
            return self._reject(request, BookingReason.INVALID_REQUEST, "Number of people must be at least 1")

        try:
            tour_id = UUID(request.tour_id)
            tour_date_id = UUID(request.tour_date_id)
        except ValueError:
            return self._reject(request, BookingReason.INVALID_REQUEST, "Unknown tour or tour date")

        tour, tour_date, tour_total = await self._read_state(tour_id, tour_date_id)

        if tour is None or not tour.is_active:
            return self._reject(request, BookingReason.INVALID_REQUEST, "Tour is not available for booking")
        if tour_date is None or tour_date.available_date < self.today():
            return self._reject(request, BookingReason.INVALID_REQUEST, "Selected date is not available")

        decision = evaluate_capacity(
            request.number_of_people,
            tour_date.max_bookings,
            tour_date.current_bookings,
            tour.max_participants,
            tour_total,
        )
        if not decision.accepted:
            return self._capacity_rejection(request, decision)

        self._transition(request, AllocationState.CAPACITY_CHECKED, remaining_on_date=decision.remaining_on_date)

        # Once the first write may happen, caller cancellation must not
        # interrupt the sequence halfway.
        return await asyncio.shield(self._commit(request, tour, tour_date, tour_total))

    async def _commit(
        self,
        request: BookingRequest,
        tour: Tour,
        tour_date: TourDate,
        tour_total: int,
    ) -> BookingOutcome:
        self._transition(request, AllocationState.COMMITTING)
        booking: TourBooking | None = None

        try:
            for attempt in range(1, self.max_attempts + 1):
                if booking is None:
                    try:
                        booking = await self.ledger.insert_booking(
                            self._new_booking(request, tour, tour_date)
                        )
                    except DuplicateBookingNumberError as e:
                        logger.warning(
                            "Booking number collision",
                            extra={"booking_number": e.booking_number, "attempt": attempt}
                        )
                        continue

                expected = tour_date.current_bookings
                try:
                    applied = await self.ledger.increment_date_bookings(
                        tour_date.id, request.number_of_people, expected
                    )
                except LedgerError as e:
                    logger.warning(
                        "Counter update failed",
                        extra={
                            "booking_number": booking.booking_number,
                            "tour_date_id": str(tour_date.id),
                            "attempt": attempt,
                            "error": str(e)
                        }
                    )
                    applied = False

                if applied:
                    return await self._settle_tour_ceiling(request, booking, tour, tour_date)

                metrics_collector.record_ledger_conflict()
                logger.info(
                    "Capacity changed before commit - re-checking",
                    extra={
                        "booking_number": booking.booking_number,
                        "tour_date_id": str(tour_date.id),
                        "expected_current": expected,
                        "attempt": attempt
                    }
                )

                fresh_tour, fresh_date, tour_total = await self._read_state(tour.id, tour_date.id)
                if fresh_tour is not None:
                    tour = fresh_tour
                if fresh_date is None:
                    await self._flag(booking, ReconciliationReason.CAPACITY_LOST, "Date withdrawn before commit")
                    return self._reject(request, BookingReason.INVALID_REQUEST, "Selected date is no longer available")
                tour_date = fresh_date

                decision = evaluate_capacity(
                    request.number_of_people,
                    tour_date.max_bookings,
                    tour_date.current_bookings,
                    tour.max_participants,
                    tour_total,
                )
                if not decision.accepted:
                    await self._flag(booking, ReconciliationReason.CAPACITY_LOST, "Lost the last seats to a concurrent booking")
                    return self._capacity_rejection(request, decision)

            if booking is None:
                return self._fail(request, BookingReason.CONTENTION, "Could not reserve a booking number, please retry")

            await self._flag(
                booking,
                ReconciliationReason.COUNTER_NOT_INCREMENTED,
                f"Counter not incremented after {self.max_attempts} attempts"
            )
            metrics_collector.record_ledger_inconsistency()
            logger.error(
                "Booking recorded without capacity increment",
                extra={
                    "booking_number": booking.booking_number,
                    "booking_id": str(booking.id),
                    "tour_date_id": str(tour_date.id),
                    "number_of_people": request.number_of_people,
                    "attempts": self.max_attempts
                }
            )
            schema = TourBookingSchema.model_validate(booking).model_copy(
                update={
                    "needs_reconciliation": True,
                    "reconciliation_reason": ReconciliationReason.COUNTER_NOT_INCREMENTED.value,
                }
            )
            return self._fail(
                request,
                BookingReason.LEDGER_INCONSISTENCY,
                "Booking recorded but capacity could not be confirmed",
                booking=schema,
            )

        except Exception as e:
            logger.error(
                "Booking commit failed",
                extra={
                    "tour_date_id": str(tour_date.id),
                    "booking_number": booking.booking_number if booking else None,
                    "error": str(e)
                },
                exc_info=True
            )
            if booking is not None:
                await self._flag(booking, ReconciliationReason.COUNTER_NOT_INCREMENTED, f"Commit aborted: {e}")
                metrics_collector.record_ledger_inconsistency()
                return self._fail(
                    request,
                    BookingReason.LEDGER_INCONSISTENCY,
                    "Booking recorded but capacity could not be confirmed",
                )
            return self._fail(request, BookingReason.FAILED, "Could not record the booking")

    async def _settle_tour_ceiling(
        self,
        request: BookingRequest,
        booking: TourBooking,
        tour: Tour,
        tour_date: TourDate,
    ) -> BookingOutcome:
        """
        Confirm a counted booking still fits its tour's ``max_participants``.

        The conditional increment guards one date's counter only, so bookings
        on different dates of a tour can pass the ceiling together. A booking
        that finds the tour over its ceiling gives its seats back and is
        rejected as TOUR_FULL. Seats that cannot be given back stay counted
        and the booking is flagged SEATS_NOT_RELEASED.
        """
        people = request.number_of_people
        try:
            tour_total = await self.ledger.sum_bookings_for_tour(tour.id)
        except LedgerError as e:
            logger.warning(
                "Tour total unavailable after commit",
                extra={"booking_number": booking.booking_number, "error": str(e)}
            )
            return await self._leave_counted(request, booking, tour, "Tour total unreadable after commit")

        if tour.max_participants is None or tour_total <= tour.max_participants:
            return self._committed(request, booking, tour, tour_date, tour_total - people)

        logger.warning(
            "Tour ceiling exceeded after commit - releasing seats",
            extra={
                "booking_number": booking.booking_number,
                "tour_id": str(tour.id),
                "tour_total": tour_total,
                "max_participants": tour.max_participants
            }
        )

        expected = tour_date.current_bookings + people
        for attempt in range(1, self.max_attempts + 1):
            try:
                if await self.ledger.increment_date_bookings(tour_date.id, -people, expected):
                    await self._flag(
                        booking, ReconciliationReason.CAPACITY_LOST, "Tour filled by a booking on another date"
                    )
                    return self._reject(
                        request,
                        BookingReason.TOUR_FULL,
                        "This tour filled up while booking, please try again",
                        remaining_on_date=tour_date.max_bookings - (expected - people),
                        remaining_on_tour=tour.max_participants - (tour_total - people),
                    )
                metrics_collector.record_ledger_conflict()
                fresh_date = await self.ledger.get_tour_date(tour.id, tour_date.id)
            except LedgerError as e:
                logger.warning(
                    "Seat release failed",
                    extra={"booking_number": booking.booking_number, "attempt": attempt, "error": str(e)}
                )
                continue
            if fresh_date is None:
                break
            expected = fresh_date.current_bookings

        return await self._leave_counted(
            request,
            booking,
            tour,
            f"Tour over max_participants; seats not released after {self.max_attempts} attempts"
        )

    async def _leave_counted(
        self,
        request: BookingRequest,
        booking: TourBooking,
        tour: Tour,
        note: str,
    ) -> BookingOutcome:
        await self._flag(booking, ReconciliationReason.SEATS_NOT_RELEASED, note)
        metrics_collector.record_ledger_inconsistency()
        logger.error(
            "Booking left counted on a possibly overbooked tour",
            extra={
                "booking_number": booking.booking_number,
                "booking_id": str(booking.id),
                "tour_id": str(tour.id),
                "number_of_people": request.number_of_people
            }
        )
        schema = TourBookingSchema.model_validate(booking).model_copy(
            update={
                "needs_reconciliation": True,
                "reconciliation_reason": ReconciliationReason.SEATS_NOT_RELEASED.value,
            }
        )
        return self._fail(
            request,
            BookingReason.LEDGER_INCONSISTENCY,
            "Booking recorded but the tour may be overbooked",
            booking=schema,
        )

    async def _read_state(
        self, tour_id: UUID, tour_date_id: UUID
    ) -> tuple[Tour | None, TourDate | None, int]:
        tour = await self.ledger.get_tour(tour_id)
        tour_date = await self.ledger.get_tour_date(tour_id, tour_date_id)
        tour_total = await self.ledger.sum_bookings_for_tour(tour_id)
        return tour, tour_date, tour_total

    def _new_booking(self, request: BookingRequest, tour: Tour, tour_date: TourDate) -> TourBooking:
        return TourBooking(
            booking_number=self.booking_number_factory(),
            user_id=request.user_id,
            tour_name=tour.name,
            tour_date=tour_date.available_date.isoformat(),
            tour_date_id=tour_date.id,
            number_of_people=request.number_of_people,
            amount=Decimal(tour.price) * request.number_of_people,
            status=BookingStatus.PENDING,
            needs_reconciliation=False,
        )

    async def _flag(self, booking: TourBooking, reason: ReconciliationReason, note: str) -> None:
        try:
            await self.ledger.flag_booking_for_reconciliation(booking.id, reason, note)
        except LedgerError as e:
            logger.error(
                "Could not flag booking for reconciliation",
                extra={
                    "booking_number": booking.booking_number,
                    "reason": reason.value,
                    "error": str(e)
                }
            )

    def _committed(
        self,
        request: BookingRequest,
        booking: TourBooking,
        tour: Tour,
        tour_date: TourDate,
        tour_total: int,
    ) -> BookingOutcome:
        booked = tour_date.current_bookings + request.number_of_people
        remaining_on_tour = (
            None if tour.max_participants is None
            else tour.max_participants - (tour_total + request.number_of_people)
        )
        metrics_collector.set_date_utilization(str(tour_date.id), booked, tour_date.max_bookings)
        self._transition(request, AllocationState.COMMITTED, booking_number=booking.booking_number)

        logger.info(
            "Tour booking committed",
            extra={
                "booking_id": str(booking.id),
                "booking_number": booking.booking_number,
                "tour_date_id": str(tour_date.id),
                "number_of_people": request.number_of_people,
                "amount": str(booking.amount),
                "current_bookings": booked,
                "max_bookings": tour_date.max_bookings
            }
        )

        return BookingOutcome.committed(
            TourBookingSchema.model_validate(booking),
            remaining_on_date=tour_date.max_bookings - booked,
            remaining_on_tour=remaining_on_tour,
        )

    def _capacity_rejection(self, request: BookingRequest, decision: CapacityDecision) -> BookingOutcome:
        if decision.reason == BookingReason.DATE_FULL:
            detail = f"Only {max(decision.remaining_on_date, 0)} spots left on this date"
        else:
            detail = f"Only {max(decision.remaining_on_tour or 0, 0)} spots left on this tour"
        return self._reject(
            request,
            decision.reason,
            detail,
            remaining_on_date=decision.remaining_on_date,
            remaining_on_tour=decision.remaining_on_tour,
        )

    def _reject(self, request: BookingRequest, reason: BookingReason, detail: str, **extra) -> BookingOutcome:
        self._transition(request, AllocationState.REJECTED, reason=reason.value)
        return BookingOutcome.rejected(reason, detail, **extra)

    def _fail(self, request: BookingRequest, reason: BookingReason, detail: str, **extra) -> BookingOutcome:
        self._transition(request, AllocationState.FAILED, reason=reason.value)
        return BookingOutcome.failed(reason, detail, **extra)

    @staticmethod
    def _transition(request: BookingRequest, state: AllocationState, **context) -> None:
        state_log.debug(
            "booking_state",
            state=state.value,
            tour_date_id=request.tour_date_id,
            number_of_people=request.number_of_people,
            **context,
        )

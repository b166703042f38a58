"""Booking request facade used by tour cards and dashboards."""

import asyncio
import logging
from datetime import date
from typing import Callable
from uuid import UUID

from ..core.config import settings
from ..core.observability import metrics_collector
from ..schemas.booking import (
    BookingForm,
    BookingOutcome,
    BookingReason,
    BookingRequest,
    BookingResult,
    OutcomeKind,
)
from ..schemas.tour_date import TourDate as TourDateSchema
from .booking_allocator import BookingAllocator
from .capacity_ledger import CapacityLedger, LedgerError
from .change_feed import ChangeFeed, change_feed

logger = logging.getLogger(__name__)

SUCCESS_TITLE = "Booking submitted"
SUCCESS_MESSAGE = "Booking submitted for approval"
NO_SPOTS_TITLE = "Not enough spots"
NO_SPOTS_MESSAGE = "Not enough spots, please reduce participants"
PENDING_CONFIRMATION_TITLE = "Booking recorded"
PENDING_CONFIRMATION_MESSAGE = (
    "Your booking was recorded and is awaiting confirmation of availability. "
    "We will contact you before the tour date."
)
RETRY_TITLE = "Booking failed"
RETRY_MESSAGE = "We could not complete your booking, please try again"


def present_outcome(outcome: BookingOutcome) -> tuple[str, str]:
    """Map an allocator outcome to a user-facing title and message."""
    if outcome.kind == OutcomeKind.COMMITTED:
        return SUCCESS_TITLE, SUCCESS_MESSAGE
    if outcome.reason in (BookingReason.DATE_FULL, BookingReason.TOUR_FULL):
        return NO_SPOTS_TITLE, NO_SPOTS_MESSAGE
    if outcome.reason == BookingReason.LEDGER_INCONSISTENCY:
        return PENDING_CONFIRMATION_TITLE, PENDING_CONFIRMATION_MESSAGE
    return RETRY_TITLE, RETRY_MESSAGE


class BookingRequestFacade:
    """Adapts raw booking form input to allocator calls."""

    def __init__(
        self,
        ledger: CapacityLedger,
        allocator: BookingAllocator | None = None,
        feed: ChangeFeed | None = None,
        timeout_seconds: float | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.ledger = ledger
        self.allocator = allocator or BookingAllocator(ledger, today=today)
        self.feed = feed or change_feed
        self.timeout_seconds = timeout_seconds or settings.booking_timeout_seconds
        self.today = today

    async def request_booking(
        self,
        user_id: str,
        form: BookingForm,
        displayed_dates: list[TourDateSchema] | None = None,
    ) -> BookingResult:
        """
        Book the selected date for the signed-in user.

        Args:
            user_id: Owner of the booking
            form: Raw form state (tour, selected date string, party size)
            displayed_dates: Available dates the UI is showing; fetched when omitted

        Returns:
            Outcome with presentation text and a refreshed available-dates list
        """
        try:
            tour_id = UUID(form.tour_id)
        except ValueError:
            return self._finish(self._invalid("Unknown tour"), [])

        selected = self._parse_date(form.tour_date)
        if selected is None:
            return await self._finish_with_refresh(tour_id, self._invalid("Please select a tour date"))

        if displayed_dates is None:
            try:
                displayed_dates = await self.available_dates(tour_id)
            except LedgerError as e:
                logger.error(
                    "Could not load available dates",
                    extra={"tour_id": form.tour_id, "error": str(e)}
                )
                return self._finish(
                    self._record(BookingOutcome.failed(BookingReason.FAILED, "Could not load available dates")),
                    []
                )

        match = next((d for d in displayed_dates if d.available_date == selected), None)
        if match is None:
            return await self._finish_with_refresh(
                tour_id, self._invalid("Selected date is no longer available")
            )

        request = BookingRequest(
            user_id=user_id,
            tour_id=str(tour_id),
            tour_date_id=match.id,
            number_of_people=form.number_of_people,
        )

        try:
            outcome = await asyncio.wait_for(
                self.allocator.allocate(request),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Booking request timed out",
                extra={
                    "tour_id": request.tour_id,
                    "tour_date_id": request.tour_date_id,
                    "timeout_seconds": self.timeout_seconds
                }
            )
            outcome = self._record(
                BookingOutcome.failed(BookingReason.TIMEOUT, "Booking request timed out")
            )

        if outcome.kind == OutcomeKind.COMMITTED:
            self.feed.publish("tour_dates", "UPDATE", request.tour_date_id)

        return await self._finish_with_refresh(tour_id, outcome)

    async def available_dates(self, tour_id: UUID) -> list[TourDateSchema]:
        """Available, upcoming dates of a tour as shown to customers."""
        rows = await self.ledger.list_available_dates(tour_id, self.today())
        return [TourDateSchema.model_validate(row) for row in rows]

    async def _finish_with_refresh(self, tour_id: UUID, outcome: BookingOutcome) -> BookingResult:
        try:
            refreshed = await self.available_dates(tour_id)
        except LedgerError as e:
            logger.warning(
                "Available dates refresh failed",
                extra={"tour_id": str(tour_id), "error": str(e)}
            )
            refreshed = []
        return self._finish(outcome, refreshed)

    @staticmethod
    def _finish(outcome: BookingOutcome, dates: list[TourDateSchema]) -> BookingResult:
        title, message = present_outcome(outcome)
        return BookingResult(outcome=outcome, title=title, message=message, available_dates=dates)

    def _invalid(self, detail: str) -> BookingOutcome:
        return self._record(BookingOutcome.rejected(BookingReason.INVALID_REQUEST, detail))

    @staticmethod
    def _record(outcome: BookingOutcome) -> BookingOutcome:
        metrics_collector.record_booking_outcome(
            outcome.kind.value,
            outcome.reason.value if outcome.reason else None
        )
        return outcome

    @staticmethod
    def _parse_date(value: str | None) -> date | None:
        if not value or not value.strip():
            return None
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return None

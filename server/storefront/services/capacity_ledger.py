"""Capacity ledger: the data-access contract behind tour booking allocation."""

import logging
from abc import ABC, abstractmethod
from datetime import date
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.booking import ReconciliationReason, TourBooking
from ..models.tour import Tour
from ..models.tour_date import TourDate

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Raised when the backing store fails a ledger operation."""


class DuplicateBookingNumberError(LedgerError):
    """Raised when a generated booking number already exists."""

    def __init__(self, booking_number: str):
        super().__init__(f"Booking number {booking_number} already exists")
        self.booking_number = booking_number


class CapacityLedger(ABC):
    """
    Authoritative store of tour date counters and booking rows.

    Every operation commits on its own; callers must not assume that
    ``insert_booking`` and ``increment_date_bookings`` succeed or fail
    together.
    """

    @abstractmethod
    async def get_tour(self, tour_id: UUID) -> Tour | None:
        """Fetch the current tour row."""

    @abstractmethod
    async def get_tour_date(self, tour_id: UUID, tour_date_id: UUID) -> TourDate | None:
        """Fetch the current row of an available date belonging to ``tour_id``."""

    @abstractmethod
    async def sum_bookings_for_tour(self, tour_id: UUID) -> int:
        """Sum ``current_bookings`` across every date of the tour."""

    @abstractmethod
    async def insert_booking(self, booking: TourBooking) -> TourBooking:
        """Durably append a booking row."""

    @abstractmethod
    async def increment_date_bookings(self, tour_date_id: UUID, delta: int, expected_current: int) -> bool:
        """
        Add ``delta`` to a date's counter if it still equals ``expected_current``.

        Returns False on conflict, including when the result would leave
        ``0..max_bookings``.
        """

    @abstractmethod
    async def flag_booking_for_reconciliation(
        self,
        booking_id: UUID,
        reason: ReconciliationReason,
        note: str | None = None,
    ) -> None:
        """Mark a booking whose seats are not reflected in its date counter."""

    @abstractmethod
    async def list_available_dates(self, tour_id: UUID, today: date) -> list[TourDate]:
        """Available dates of a tour from ``today`` onwards, earliest first."""


class SqlCapacityLedger(CapacityLedger):
    """
    Capacity ledger backed by the SQLAlchemy async session.

    Rows are returned detached from the session so they act as snapshots and
    survive the rollback of a later failed operation.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_tour(self, tour_id: UUID) -> Tour | None:
        stmt = (
            select(Tour)
            .where(Tour.id == tour_id)
            .execution_options(populate_existing=True)
        )
        return await self._scalar_one_or_none(stmt, "get_tour")

    async def get_tour_date(self, tour_id: UUID, tour_date_id: UUID) -> TourDate | None:
        stmt = (
            select(TourDate)
            .where(
                TourDate.id == tour_date_id,
                TourDate.tour_id == tour_id,
                TourDate.is_available.is_(True),
            )
            .execution_options(populate_existing=True)
        )
        return await self._scalar_one_or_none(stmt, "get_tour_date")

    async def sum_bookings_for_tour(self, tour_id: UUID) -> int:
        stmt = select(func.coalesce(func.sum(TourDate.current_bookings), 0)).where(
            TourDate.tour_id == tour_id
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise LedgerError(f"sum_bookings_for_tour failed: {e}") from e
        return int(result.scalar_one())

    async def insert_booking(self, booking: TourBooking) -> TourBooking:
        try:
            self.db.add(booking)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if "booking_number" in str(e.orig):
                raise DuplicateBookingNumberError(booking.booking_number) from e
            raise LedgerError(f"insert_booking rejected by the store: {e.orig}") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise LedgerError(f"insert_booking failed: {e}") from e

        await self.db.refresh(booking)
        self.db.expunge(booking)
        return booking

    async def increment_date_bookings(self, tour_date_id: UUID, delta: int, expected_current: int) -> bool:
        new_value = TourDate.current_bookings + delta
        stmt = (
            update(TourDate)
            .where(
                TourDate.id == tour_date_id,
                TourDate.current_bookings == expected_current,
                new_value >= 0,
                new_value <= TourDate.max_bookings,
            )
            .values(current_bookings=new_value)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise LedgerError(f"increment_date_bookings failed: {e}") from e

        applied = result.rowcount == 1
        logger.debug(
            "Conditional counter update",
            extra={
                "tour_date_id": str(tour_date_id),
                "delta": delta,
                "expected_current": expected_current,
                "applied": applied
            }
        )
        return applied

    async def flag_booking_for_reconciliation(
        self,
        booking_id: UUID,
        reason: ReconciliationReason,
        note: str | None = None,
    ) -> None:
        stmt = (
            update(TourBooking)
            .where(TourBooking.id == booking_id)
            .values(
                needs_reconciliation=True,
                reconciliation_reason=reason.value,
                reconciliation_note=note,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise LedgerError(f"flag_booking_for_reconciliation failed: {e}") from e

    async def list_available_dates(self, tour_id: UUID, today: date) -> list[TourDate]:
        stmt = (
            select(TourDate)
            .where(
                TourDate.tour_id == tour_id,
                TourDate.is_available.is_(True),
                TourDate.available_date >= today,
            )
            .order_by(TourDate.available_date.asc())
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise LedgerError(f"list_available_dates failed: {e}") from e
        rows = list(result.scalars())
        for row in rows:
            self.db.expunge(row)
        return rows

    async def _scalar_one_or_none(self, stmt, operation: str):
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise LedgerError(f"{operation} failed: {e}") from e
        row = result.scalar_one_or_none()
        if row is not None:
            self.db.expunge(row)
        return row

"""Tour booking model definition."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Integer, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class BookingStatus(str, Enum):
    """Booking status enumeration; transitions are admin-controlled."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReconciliationReason(str, Enum):
    """
    Why a booking row disagrees with its tour date counter.

    ``SEATS_NOT_RELEASED`` rows pushed their tour past ``max_participants``
    and their seats are still counted; every other reason means they are not.
    """
    COUNTER_NOT_INCREMENTED = "COUNTER_NOT_INCREMENTED"
    CAPACITY_LOST = "CAPACITY_LOST"
    SEATS_NOT_RELEASED = "SEATS_NOT_RELEASED"


class TourBooking(Base):
    """
    A user's reservation against one tour date.

    Tour name and date are stored as snapshot strings so historical bookings
    stay meaningful after the tour is renamed or its date removed.
    ``tour_date_id`` is a plain reference (no foreign key) used to release
    or reconcile seats.
    """

    __tablename__ = "tour_bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    booking_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # Snapshot fields
    tour_name: Mapped[str] = mapped_column(String(255), nullable=False)
    tour_date: Mapped[str] = mapped_column(String(10), nullable=False)
    tour_date_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True, index=True)

    number_of_people: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )

    # Reconciliation flag for rows whose seats are not reflected in current_bookings
    needs_reconciliation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    reconciliation_reason: Mapped[str | None] = mapped_column(String(40), nullable=True)
    reconciliation_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("number_of_people > 0", name="ck_tour_booking_people_positive"),
        CheckConstraint("amount >= 0", name="ck_tour_booking_amount_non_negative"),
        CheckConstraint("length(booking_number) > 0", name="ck_tour_booking_number_not_empty"),
    )

    @property
    def counts_against_capacity(self) -> bool:
        """True when this booking's seats are included in its date's counter."""
        return (
            self.status != BookingStatus.REJECTED
            and (
                not self.needs_reconciliation
                or self.reconciliation_reason == ReconciliationReason.SEATS_NOT_RELEASED.value
            )
            and self.tour_date_id is not None
        )

    def __repr__(self) -> str:
        return (
            f"<TourBooking(id={self.id}, number='{self.booking_number}', "
            f"people={self.number_of_people}, status={self.status})>"
        )

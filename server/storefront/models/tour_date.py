"""Tour date model definition."""

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Integer, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .tour import Tour


class TourDate(Base):
    """One schedulable occurrence of a tour with its own booking ceiling."""

    __tablename__ = "tour_dates"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    available_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    max_bookings: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    # People booked on this date; written only through the capacity ledger
    current_bookings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

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
        CheckConstraint("max_bookings > 0", name="ck_tour_date_max_bookings_positive"),
        CheckConstraint("current_bookings >= 0", name="ck_tour_date_current_bookings_non_negative"),
        CheckConstraint("current_bookings <= max_bookings", name="ck_tour_date_current_lte_max"),
        UniqueConstraint("tour_id", "available_date", name="uq_tour_date_tour_day"),
    )

    # Relationships
    tour: Mapped["Tour"] = relationship("Tour", back_populates="dates")

    @property
    def remaining(self) -> int:
        return self.max_bookings - self.current_bookings

    def __repr__(self) -> str:
        return (
            f"<TourDate(id={self.id}, tour_id={self.tour_id}, date={self.available_date}, "
            f"booked={self.current_bookings}/{self.max_bookings})>"
        )

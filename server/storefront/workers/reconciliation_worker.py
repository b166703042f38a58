"""Background worker that watches the booking reconciliation queue."""

import logging

from ..core.config import settings
from ..core.database import async_session_factory
from ..core.observability import metrics_collector
from ..services.booking_admin_service import BookingAdminService
from .base import PeriodicWorker

logger = logging.getLogger(__name__)


class ReconciliationWorker(PeriodicWorker):
    """
    Reports bookings whose seats are not reflected in their date counter.

    Flagged bookings need an admin decision, so the worker only exports the
    queue size and warns while it is non-empty.
    """

    def __init__(self, interval_seconds: float | None = None, session_factory=async_session_factory):
        super().__init__(
            name="reconciliation",
            interval_seconds=interval_seconds or settings.reconciliation_interval_seconds
        )
        self.session_factory = session_factory
        self.last_count: int | None = None

    async def process(self) -> None:
        async with self.session_factory() as db:
            count = await BookingAdminService(db).count_pending_reconciliations()

        self.last_count = count
        metrics_collector.set_pending_reconciliations(count)

        if count:
            logger.warning(
                "Bookings awaiting reconciliation",
                extra={"pending_reconciliations": count, "worker": self.name}
            )

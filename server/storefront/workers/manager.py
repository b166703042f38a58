"""Lifecycle of the application's background workers."""

import asyncio
import logging
from typing import Dict, Optional

from .base import PeriodicWorker
from .reconciliation_worker import ReconciliationWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """Starts and stops a named set of workers together and reports their state."""

    def __init__(self, workers: Optional[Dict[str, PeriodicWorker]] = None):
        self.workers: Dict[str, PeriodicWorker] = (
            workers if workers is not None else {"reconciliation": ReconciliationWorker()}
        )

    async def start_all(self) -> None:
        for worker in self.workers.values():
            await worker.start()

    async def stop_all(self) -> None:
        """Stop every worker; one failing to stop does not keep the others running."""
        results = await asyncio.gather(
            *(worker.stop() for worker in self.workers.values()),
            return_exceptions=True
        )
        for name, result in zip(self.workers, results):
            if isinstance(result, Exception):
                logger.error("Worker failed to stop", extra={"worker": name, "error": str(result)})

    def get_worker(self, name: str) -> PeriodicWorker:
        """Raises KeyError for unknown names."""
        return self.workers[name]

    def get_worker_status(self) -> Dict[str, bool]:
        return {name: worker.running for name, worker in self.workers.items()}


worker_manager = WorkerManager()

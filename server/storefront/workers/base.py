"""Periodic background worker loop."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class PeriodicWorker(ABC):
    """
    Runs ``process`` every ``interval_seconds`` until stopped.

    ``stop`` lets an iteration in progress finish instead of cancelling it.
    An iteration that raises is logged and the loop carries on.
    """

    def __init__(self, name: str, interval_seconds: float):
        self.name = name
        self.interval_seconds = interval_seconds
        self._stopping: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @abstractmethod
    async def process(self) -> None:
        """One iteration of the worker's job."""

    async def start(self) -> None:
        if self.running:
            logger.warning("Worker already running", extra={"worker": self.name})
            return

        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name=f"worker:{self.name}")
        logger.info("Worker started", extra={"worker": self.name, "interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None
        logger.info("Worker stopped", extra={"worker": self.name})

    async def _loop(self) -> None:
        while not self._stopping.is_set():
            started = time.monotonic()
            try:
                await self.process()
            except Exception as e:
                logger.error(
                    "Worker iteration failed",
                    exc_info=True,
                    extra={"worker": self.name, "error": str(e)}
                )

            elapsed = time.monotonic() - started
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=max(0.0, self.interval_seconds - elapsed))
            except asyncio.TimeoutError:
                continue

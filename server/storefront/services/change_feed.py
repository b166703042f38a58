"""In-process change feed for catalogue tables."""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

WATCHED_TABLES = frozenset({"tours", "tour_dates", "products"})


@dataclass(frozen=True)
class ChangeEvent:
    """A row-level change notification."""

    table: str
    event: str
    id: str
    occurred_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )

    def to_dict(self) -> dict:
        return asdict(self)


class ChangeFeed:
    """
    Publish/subscribe hub for table change events.

    Each subscriber gets its own bounded queue; a subscriber that stops
    draining its queue loses the oldest events rather than blocking
    publishers.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: dict[int, tuple[frozenset[str], asyncio.Queue]] = {}
        self._next_id = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, table: str, event: str, row_id: str) -> ChangeEvent:
        """Fan a change out to every subscriber watching ``table``."""
        if table not in WATCHED_TABLES:
            raise ValueError(f"Table '{table}' is not part of the change feed")

        change = ChangeEvent(table=table, event=event, id=str(row_id))
        for tables, queue in self._subscribers.values():
            if table not in tables:
                continue
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(change)

        logger.debug(
            "Change published",
            extra={
                "table": table,
                "event": event,
                "row_id": str(row_id),
                "subscribers": len(self._subscribers)
            }
        )
        return change

    def subscribe(self, tables: set[str] | None = None) -> "Subscription":
        """Register a subscriber; events published from now on are queued for it."""
        watched = frozenset(tables) if tables else WATCHED_TABLES
        unknown = watched - WATCHED_TABLES
        if unknown:
            raise ValueError(f"Unknown tables: {', '.join(sorted(unknown))}")

        subscriber_id = self._next_id
        self._next_id += 1
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers[subscriber_id] = (watched, queue)
        logger.info(
            "Change feed subscriber joined",
            extra={"subscriber_id": subscriber_id, "tables": sorted(watched)}
        )
        return Subscription(self, subscriber_id, queue)

    def _unsubscribe(self, subscriber_id: int) -> None:
        if self._subscribers.pop(subscriber_id, None) is not None:
            logger.info("Change feed subscriber left", extra={"subscriber_id": subscriber_id})


class Subscription:
    """Handle returned by ``ChangeFeed.subscribe``; iterate it or call ``get``."""

    def __init__(self, feed: ChangeFeed, subscriber_id: int, queue: asyncio.Queue):
        self._feed = feed
        self._queue = queue
        self.subscriber_id = subscriber_id

    @property
    def pending(self) -> int:
        """Events queued but not yet consumed."""
        return self._queue.qsize()

    async def get(self) -> ChangeEvent:
        return await self._queue.get()

    def close(self) -> None:
        self._feed._unsubscribe(self.subscriber_id)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        return await self.get()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


change_feed = ChangeFeed()

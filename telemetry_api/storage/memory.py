"""In-memory telemetry store."""
import asyncio
from typing import Sequence
import structlog
from .base import TelemetryStore
from ..errors import StorageUnavailable
from ..models import TelemetryEvent, TelemetryQuery

log = structlog.get_logger()


def _sort_key(event: TelemetryEvent):
    return (event.timestamp, event.id.int)


class InMemoryStore(TelemetryStore):
    """In-memory implementation of the telemetry store.

    A batch is checked for id collisions and appended in one step under the
    lock, so readers never observe part of a batch.
    """

    def __init__(self):
        self._events: list[TelemetryEvent] = []
        self._ids: set = set()
        self._lock = asyncio.Lock()

    async def insert_many(self, events: Sequence[TelemetryEvent]) -> int:
        """Append a batch to the in-memory buffer."""
        async with self._lock:
            batch_ids = {e.id for e in events}
            if len(batch_ids) != len(events) or not batch_ids.isdisjoint(self._ids):
                log.error("storage.insert_failed", reason="duplicate_id", backend="memory")
                raise StorageUnavailable("Duplicate event id in batch")
            self._events.extend(events)
            self._ids.update(batch_ids)
        log.debug("storage.inserted", count=len(events), backend="memory")
        return len(events)

    async def query(
        self, criteria: TelemetryQuery, offset: int, limit: int
    ) -> tuple[list[TelemetryEvent], int]:
        """Filter, order and slice the buffer."""
        async with self._lock:
            matching = [e for e in self._events if criteria.matches(e)]
        matching.sort(key=_sort_key, reverse=True)
        return matching[offset:offset + limit], len(matching)

    async def ping(self) -> bool:
        """In-memory store is always reachable."""
        return True

    def __len__(self) -> int:
        return len(self._events)

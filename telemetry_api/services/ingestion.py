"""Turns a validated batch into persisted telemetry events."""
from typing import Sequence
import time
import uuid
import structlog
from ..metrics import Metrics
from ..models import TelemetryEvent, TelemetryEventIn, as_utc
from ..storage.base import TelemetryStore

log = structlog.get_logger()


class IngestionService:
    """
    Persist batches of telemetry events.

    The batch must already have passed `validate_batch`; this service does
    not re-check fields. Each event gets a fresh UUID4 and the whole batch is
    written with a single atomic `insert_many` call. Storage failures
    propagate as `StorageUnavailable` and are never retried here, so a batch
    cannot be inserted twice by one request.
    """

    def __init__(self, store: TelemetryStore, metrics: Metrics | None = None):
        self._store = store
        self._metrics = metrics

    async def ingest(self, events: Sequence[TelemetryEventIn]) -> int:
        """
        Assign ids and persist a validated batch.

        Args:
            events: Validated candidate events

        Returns:
            Number of events persisted

        Raises:
            StorageUnavailable: If the batch could not be persisted
        """
        if not events:
            return 0

        start_time = time.time()
        records = [
            TelemetryEvent(
                id=uuid.uuid4(),
                timestamp=as_utc(e.timestamp),
                source=e.source,
                metric_name=e.metric_name,
                metric_value=e.metric_value,
            )
            for e in events
        ]

        inserted = await self._store.insert_many(records)

        sources = sorted({r.source for r in records})
        if self._metrics is not None:
            for r in records:
                self._metrics.record_event_ingested(r.source)
        log.info(
            "telemetry.ingested",
            count=inserted,
            sources=sources,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return inserted

"""Base interface for telemetry storage backends."""
from abc import ABC, abstractmethod
from typing import Sequence
from ..models import TelemetryEvent, TelemetryQuery


class TelemetryStore(ABC):
    """Abstract interface for telemetry storage implementations.

    Records are only ever inserted and read; there is no update or delete.
    """

    async def initialize(self) -> None:
        """Prepare the backend (create schema, open pools). Optional."""

    async def close(self) -> None:
        """Release backend resources. Optional."""

    @abstractmethod
    async def insert_many(self, events: Sequence[TelemetryEvent]) -> int:
        """
        Persist a batch of events as one atomic unit.

        Either every event becomes visible to later queries or none does.

        Args:
            events: Fully formed events, ids already assigned

        Returns:
            Number of events persisted

        Raises:
            StorageUnavailable: If the store is unreachable or the
                transaction fails
        """

    @abstractmethod
    async def query(
        self, criteria: TelemetryQuery, offset: int, limit: int
    ) -> tuple[list[TelemetryEvent], int]:
        """
        Run a filtered scan ordered by timestamp descending, id descending.

        Args:
            criteria: Normalized filter
            offset: Number of matching rows to skip
            limit: Maximum number of rows to return

        Returns:
            The requested slice and the count of all matching rows

        Raises:
            StorageUnavailable: If the store is unreachable
        """

    @abstractmethod
    async def ping(self) -> bool:
        """
        Check if the store is reachable.

        Returns:
            True if a trivial round-trip succeeded
        """

"""Telemetry storage backends."""
import structlog
from .base import TelemetryStore
from .memory import InMemoryStore
from .sql import SqlStore
from ..config import Settings

log = structlog.get_logger()

__all__ = ["TelemetryStore", "InMemoryStore", "SqlStore", "create_store"]


def create_store(settings: Settings) -> TelemetryStore:
    """
    Create the store selected by configuration.

    Returns:
        TelemetryStore instance based on the STORAGE_BACKEND setting
    """
    if settings.STORAGE_BACKEND == "sql":
        if not settings.DATABASE_URL:
            log.warning(
                "storage.fallback",
                requested="sql",
                actual="memory",
                reason="DATABASE_URL not configured",
            )
            return InMemoryStore()

        log.info("storage.selected", type="sql")
        return SqlStore(settings.DATABASE_URL)

    log.info("storage.selected", type="memory")
    return InMemoryStore()

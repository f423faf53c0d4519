"""Telemetry ingestion and query services."""
from .ingestion import IngestionService
from .query import QueryService

__all__ = ["IngestionService", "QueryService"]

"""Request-scoped wiring.

Services are built per request around the store owned by the application
(``app.state.store``); nothing is looked up from module globals.
"""
from fastapi import Depends, Request
from ..metrics import Metrics
from ..services import IngestionService, QueryService
from ..storage.base import TelemetryStore


def get_store(request: Request) -> TelemetryStore:
    return request.app.state.store


def get_metrics(request: Request) -> Metrics:
    return request.app.state.metrics


def get_ingestion_service(
    store: TelemetryStore = Depends(get_store),
    metrics: Metrics = Depends(get_metrics),
) -> IngestionService:
    return IngestionService(store, metrics=metrics)


def get_query_service(store: TelemetryStore = Depends(get_store)) -> QueryService:
    return QueryService(store)

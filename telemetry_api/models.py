"""
Telemetry domain models.

`TelemetryEventIn` is the shape a client sends; every field is optional so
that missing values reach `validate_batch` and are reported per field instead
of being rejected by the decoder. `TelemetryEvent` is what the stores persist
and return. Wire names are camelCase (`metricName`, `totalCount`, ...).
"""
from datetime import datetime, timezone
from typing import List
import uuid

from pydantic import BaseModel, ConfigDict, Field, StrictFloat
from pydantic.alias_generators import to_camel


def as_utc(value: datetime) -> datetime:
    """Return `value` in UTC. Naive datetimes are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TelemetryEventIn(CamelModel):
    timestamp: datetime | None = None
    source: str | None = None
    metric_name: str | None = None
    # JSON numbers only; booleans and numeric strings are decoder errors
    metric_value: StrictFloat | None = None


class TelemetryEvent(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    timestamp: datetime
    source: str
    metric_name: str
    metric_value: float


class TelemetryQuery(BaseModel):
    """Normalized filter handed to the stores.

    `start_date` and `end_date` are either both set or both None.
    """
    model_config = ConfigDict(frozen=True)

    source: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

    def matches(self, event: TelemetryEvent) -> bool:
        if self.source is not None and event.source != self.source:
            return False
        if self.start_date is not None and self.end_date is not None:
            return self.start_date <= event.timestamp <= self.end_date
        return True


class QueryPage(CamelModel):
    items: List[TelemetryEvent]
    total_count: int
    page: int
    page_size: int

from pydantic import Field
from typing import List
from ..models import CamelModel, TelemetryEventIn

class IngestRequest(CamelModel):
    events: List[TelemetryEventIn] = Field(default_factory=list)

class IngestResponse(CamelModel):
    inserted: int

from datetime import datetime
from fastapi import APIRouter, Depends, Query, Request, Response
import structlog
from .dependencies import get_ingestion_service, get_query_service
from .schemas import IngestRequest, IngestResponse
from ..errors import InvalidQuery
from ..middleware.error_handler import problem_response
from ..models import QueryPage
from ..services import IngestionService, QueryService
from ..services.query import DEFAULT_PAGE_SIZE
from ..validation import validate_batch

log = structlog.get_logger()

router = APIRouter(prefix="/api/telemetry", tags=["telemetry"])


@router.post(
    "",
    response_model=IngestResponse,
    status_code=201,
    responses={400: {"description": "Invalid payload"}, 429: {"description": "Too Many Requests"}},
)
async def ingest_telemetry(
    batch: IngestRequest,
    request: Request,
    response: Response,
    service: IngestionService = Depends(get_ingestion_service),
):
    result = validate_batch(batch.events)
    if not result.is_valid:
        log.info("telemetry.rejected", violations=len(result.violations))
        return problem_response(
            request, 400, "ValidationError", "Invalid payload", errors=result.to_errors()
        )

    inserted = await service.ingest(batch.events)
    response.headers["Location"] = f"/api/telemetry?inserted={inserted}"
    return IngestResponse(inserted=inserted)


@router.get(
    "",
    response_model=QueryPage,
    responses={400: {"description": "Invalid query"}, 429: {"description": "Too Many Requests"}},
)
async def query_telemetry(
    request: Request,
    source: str | None = None,
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    page: int = 1,
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize"),
    service: QueryService = Depends(get_query_service),
):
    try:
        return await service.query(
            source=source,
            start_date=start_date,
            end_date=end_date,
            page=page,
            page_size=page_size,
        )
    except InvalidQuery as e:
        return problem_response(
            request,
            400,
            "ValidationError",
            "Invalid query",
            errors=[{"field": e.field, "message": e.message}],
        )

"""Filtered, paginated reads over stored telemetry."""
from datetime import datetime
import structlog
from ..errors import InvalidQuery
from ..models import QueryPage, TelemetryQuery, as_utc
from ..storage.base import TelemetryStore

log = structlog.get_logger()

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 500


def normalize_page(page: int) -> int:
    """Pages are 1-based; anything lower means the first page."""
    return page if page >= 1 else 1


def normalize_page_size(page_size: int) -> int:
    """Out-of-range sizes fall back to the default instead of being rejected."""
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        return DEFAULT_PAGE_SIZE
    return page_size


def _bound(value: datetime, field: str) -> datetime:
    try:
        return as_utc(value)
    except OverflowError:
        raise InvalidQuery(field, "Must be representable in UTC.") from None


def build_query(
    source: str | None, start_date: datetime | None, end_date: datetime | None
) -> TelemetryQuery:
    """
    Build the store filter from raw request values.

    A blank source means no source filter. The date range is only applied
    when both bounds are given; a single bound is ignored.

    Raises:
        InvalidQuery: If a date bound falls outside the UTC range
    """
    source = source if source and source.strip() else None
    if start_date is None or end_date is None:
        return TelemetryQuery(source=source)
    return TelemetryQuery(
        source=source,
        start_date=_bound(start_date, "startDate"),
        end_date=_bound(end_date, "endDate"),
    )


class QueryService:
    """Read-only access to telemetry, newest first."""

    def __init__(self, store: TelemetryStore):
        self._store = store

    async def query(
        self,
        source: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> QueryPage:
        """
        Fetch one page of matching events.

        Args:
            source: Exact source to match (blank or None for all)
            start_date: Inclusive lower bound, only used with end_date
            end_date: Inclusive upper bound, only used with start_date
            page: 1-based page number, normalized
            page_size: Items per page, normalized to [1, 500] or 100

        Returns:
            QueryPage with the effective page and page size

        Raises:
            InvalidQuery: If a date bound falls outside the UTC range
            StorageUnavailable: If the store cannot be read
        """
        page = normalize_page(page)
        page_size = normalize_page_size(page_size)
        criteria = build_query(source, start_date, end_date)

        items, total = await self._store.query(
            criteria, offset=(page - 1) * page_size, limit=page_size
        )
        log.debug(
            "telemetry.queried",
            source=criteria.source,
            date_filtered=criteria.start_date is not None,
            page=page,
            page_size=page_size,
            returned=len(items),
            total=total,
        )
        return QueryPage(items=items, total_count=total, page=page, page_size=page_size)

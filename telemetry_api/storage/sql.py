"""Relational telemetry store backed by SQLAlchemy (async).

Production runs against PostgreSQL through asyncpg
(``postgresql+asyncpg://...``); tests use ``sqlite+aiosqlite://``.
Every call opens its own session, so no mutable session is shared between
requests.
"""
from datetime import datetime, timezone
from typing import Sequence
import uuid

import structlog
from sqlalchemy import DateTime, Float, Index, String, Uuid, func, insert, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .base import TelemetryStore
from ..errors import StorageUnavailable
from ..models import TelemetryEvent, TelemetryQuery

log = structlog.get_logger()


class Base(DeclarativeBase):
    pass


class TelemetryEventRow(Base):
    """One persisted measurement. Rows are never updated."""

    __tablename__ = "telemetry_event"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    metric_name: Mapped[str] = mapped_column(String(100), nullable=False)
    metric_value: Mapped[float] = mapped_column(Float, nullable=False)

    def __repr__(self) -> str:
        return f"<TelemetryEventRow(id={self.id}, source={self.source}, timestamp={self.timestamp})>"


# Serves "latest readings for a source" scans
Index(
    "ix_telemetry_source_timestamp",
    TelemetryEventRow.source,
    TelemetryEventRow.timestamp.desc(),
)


def _to_event(row: TelemetryEventRow) -> TelemetryEvent:
    ts = row.timestamp
    if ts.tzinfo is None:
        # SQLite drops the zone; everything is stored as UTC
        ts = ts.replace(tzinfo=timezone.utc)
    return TelemetryEvent(
        id=row.id,
        timestamp=ts,
        source=row.source,
        metric_name=row.metric_name,
        metric_value=row.metric_value,
    )


class SqlStore(TelemetryStore):
    """SQLAlchemy implementation of the telemetry store."""

    def __init__(self, database_url: str | None = None, engine: AsyncEngine | None = None):
        """
        Initialize the SQL store.

        Args:
            database_url: SQLAlchemy async URL, used when no engine is given
            engine: Pre-built engine (tests share one in-memory database)
        """
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = create_async_engine(database_url, pool_pre_ping=True)
        self._engine = engine
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    async def initialize(self) -> None:
        """Create the telemetry table and its index if missing."""
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            log.error("storage.initialize_failed", error=str(e), backend="sql")
            raise StorageUnavailable("Could not initialize telemetry schema") from e
        log.info("storage.initialized", backend="sql", dialect=self._engine.dialect.name)

    async def close(self) -> None:
        await self._engine.dispose()

    async def insert_many(self, events: Sequence[TelemetryEvent]) -> int:
        """
        Insert a batch inside one transaction.

        The session's ``begin()`` block commits on success and rolls back on
        any error or cancellation, so a batch is never partially visible.
        """
        rows = [
            {
                "id": e.id,
                "timestamp": e.timestamp,
                "source": e.source,
                "metric_name": e.metric_name,
                "metric_value": e.metric_value,
            }
            for e in events
        ]
        if not rows:
            return 0
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    await session.execute(insert(TelemetryEventRow), rows)
        except (SQLAlchemyError, OSError) as e:
            log.error("storage.insert_failed", error=str(e), count=len(rows), backend="sql")
            raise StorageUnavailable("Telemetry batch could not be persisted") from e
        return len(rows)

    async def query(
        self, criteria: TelemetryQuery, offset: int, limit: int
    ) -> tuple[list[TelemetryEvent], int]:
        conditions = []
        if criteria.source is not None:
            conditions.append(TelemetryEventRow.source == criteria.source)
        if criteria.start_date is not None and criteria.end_date is not None:
            conditions.append(
                TelemetryEventRow.timestamp.between(criteria.start_date, criteria.end_date)
            )

        count_stmt = select(func.count()).select_from(TelemetryEventRow).where(*conditions)
        page_stmt = (
            select(TelemetryEventRow)
            .where(*conditions)
            .order_by(TelemetryEventRow.timestamp.desc(), TelemetryEventRow.id.desc())
            .offset(offset)
            .limit(limit)
        )
        try:
            async with self._sessionmaker() as session:
                total = await session.scalar(count_stmt) or 0
                # Past the last row: skip the scan, the offset may not fit a BIGINT
                if offset >= total:
                    return [], total
                rows = (await session.scalars(page_stmt)).all()
        except (SQLAlchemyError, OSError) as e:
            log.error("storage.query_failed", error=str(e), backend="sql")
            raise StorageUnavailable("Telemetry query failed") from e
        return [_to_event(r) for r in rows], total

    async def ping(self) -> bool:
        """
        Round-trip ``SELECT 1``.

        Raises:
            StorageUnavailable: With the driver error as cause
        """
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise StorageUnavailable(f"Storage ping failed: {e}") from e
        return True

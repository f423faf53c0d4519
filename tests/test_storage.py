"""Tests for storage backends."""
from datetime import timedelta
import uuid
import pytest
import pytest_asyncio
from unittest.mock import patch
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from telemetry_api.config import Settings
from telemetry_api.errors import StorageUnavailable
from telemetry_api.models import TelemetryEvent, TelemetryQuery
from telemetry_api.storage import InMemoryStore, SqlStore, create_store
from factories import BASE_TIME


def stored(source="T-001", minutes=0, value=1.0, event_id=None):
    return TelemetryEvent(
        id=event_id or uuid.uuid4(),
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        source=source,
        metric_name="RPM",
        metric_value=value,
    )


@pytest_asyncio.fixture(params=["memory", "sql"])
async def any_store(request):
    if request.param == "memory":
        yield InMemoryStore()
        return
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    store = SqlStore(engine=engine)
    await store.initialize()
    yield store
    await store.close()


@pytest.mark.asyncio
async def test_insert_and_query_newest_first(any_store):
    events = [stored(minutes=m) for m in (0, 2, 1)]
    assert await any_store.insert_many(events) == 3

    items, total = await any_store.query(TelemetryQuery(), offset=0, limit=10)

    assert total == 3
    assert [e.timestamp for e in items] == [
        BASE_TIME + timedelta(minutes=2),
        BASE_TIME + timedelta(minutes=1),
        BASE_TIME,
    ]
    assert {e.id for e in items} == {e.id for e in events}


@pytest.mark.asyncio
async def test_query_returns_utc_timestamps(any_store):
    await any_store.insert_many([stored()])
    items, _ = await any_store.query(TelemetryQuery(), offset=0, limit=1)
    assert items[0].timestamp == BASE_TIME
    assert items[0].timestamp.utcoffset() == timedelta(0)


@pytest.mark.asyncio
async def test_query_filters_and_counts(any_store):
    await any_store.insert_many(
        [stored("A", m) for m in range(5)] + [stored("B", m) for m in range(3)]
    )

    items, total = await any_store.query(TelemetryQuery(source="A"), offset=0, limit=2)
    assert total == 5
    assert len(items) == 2
    assert all(e.source == "A" for e in items)

    window = TelemetryQuery(
        start_date=BASE_TIME + timedelta(minutes=1),
        end_date=BASE_TIME + timedelta(minutes=2),
    )
    items, total = await any_store.query(window, offset=0, limit=10)
    assert total == 4
    assert all(window.start_date <= e.timestamp <= window.end_date for e in items)


@pytest.mark.asyncio
async def test_ties_ordered_by_id(any_store):
    events = [stored(minutes=0) for _ in range(4)]
    await any_store.insert_many(events)

    first, _ = await any_store.query(TelemetryQuery(), offset=0, limit=10)
    second, _ = await any_store.query(TelemetryQuery(), offset=0, limit=10)

    assert [e.id for e in first] == [e.id for e in second]


@pytest.mark.asyncio
async def test_offset_past_end(any_store):
    await any_store.insert_many([stored()])
    items, total = await any_store.query(TelemetryQuery(), offset=10, limit=10)
    assert items == []
    assert total == 1


@pytest.mark.asyncio
async def test_offset_beyond_integer_range(any_store):
    """An offset too large for a 64-bit column still yields an empty slice."""
    await any_store.insert_many([stored()])
    items, total = await any_store.query(TelemetryQuery(), offset=10**20, limit=10)
    assert items == []
    assert total == 1


@pytest.mark.asyncio
async def test_duplicate_id_rejects_whole_batch(any_store):
    """A failing batch leaves nothing behind."""
    existing = stored()
    await any_store.insert_many([existing])

    with pytest.raises(StorageUnavailable):
        await any_store.insert_many([stored(minutes=5), stored(event_id=existing.id)])

    _, total = await any_store.query(TelemetryQuery(), offset=0, limit=10)
    assert total == 1


@pytest.mark.asyncio
async def test_ping(any_store):
    assert await any_store.ping() is True


@pytest.mark.asyncio
async def test_sql_ping_failure_wrapped():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    store = SqlStore(engine=engine)
    with patch.object(
        type(engine), "connect", side_effect=OperationalError("SELECT 1", {}, Exception("down"))
    ):
        with pytest.raises(StorageUnavailable) as exc_info:
            await store.ping()
    assert isinstance(exc_info.value.__cause__, OperationalError)
    await store.close()


def test_sql_store_requires_url_or_engine():
    with pytest.raises(ValueError):
        SqlStore()


def test_create_store_memory_default():
    assert isinstance(create_store(Settings(STORAGE_BACKEND="memory")), InMemoryStore)


def test_create_store_sql_without_url_falls_back():
    store = create_store(Settings(STORAGE_BACKEND="sql", DATABASE_URL=None))
    assert isinstance(store, InMemoryStore)


def test_create_store_sql():
    store = create_store(
        Settings(STORAGE_BACKEND="sql", DATABASE_URL="sqlite+aiosqlite:///:memory:")
    )
    assert isinstance(store, SqlStore)

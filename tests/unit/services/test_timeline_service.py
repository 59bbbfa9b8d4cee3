import pytest
from factories import T0, make_record

from uptime_timeline.core.config import Settings
from uptime_timeline.domain.models import ServiceSnapshot, SourceScope
from uptime_timeline.infrastructure.memory.cache_store import MemoryCacheStore
from uptime_timeline.services.fetch_service import UptimeFetchService
from uptime_timeline.services.timeline_service import TimelineService

CONFIG = Settings(fetch_backoff_base_seconds=0.0, fetch_backoff_max_seconds=0.0)


class DummyDataAccess:
    def __init__(self, records, status="up", fail=False):
        self.records = records
        self.status = status
        self.fail = fail

    async def query(self, service_id, limit, **kwargs):
        if self.fail:
            raise ConnectionError("clickhouse down")
        return self.records

    async def online_regional_agents(self):
        return []

    async def get_service(self, service_id):
        if service_id != "svc-1":
            return None
        return ServiceSnapshot(service_id="svc-1", status=self.status)


def _service(data) -> TimelineService:
    fetcher = UptimeFetchService(data, MemoryCacheStore(), config=CONFIG)
    return TimelineService(data, fetcher, config=CONFIG, now_fn=lambda: T0)


@pytest.mark.asyncio
async def test_snapshot_for_known_service():
    data = DummyDataAccess([make_record(0), make_record(1, status="bogus")])
    snap = await _service(data).snapshot("svc-1", SourceScope())
    assert snap.slot_count == 20
    assert snap.rollup_percentage == 100.0
    assert snap.dropped_records == 1
    assert snap.generated_at == T0
    assert not snap.is_stale


@pytest.mark.asyncio
async def test_unknown_service_returns_none():
    assert await _service(DummyDataAccess([])).snapshot("nope", SourceScope()) is None


@pytest.mark.asyncio
async def test_total_failure_still_returns_full_timeline():
    data = DummyDataAccess([], status="paused", fail=True)
    snap = await _service(data).snapshot("svc-1", SourceScope())
    assert snap.slot_count == 20
    assert snap.last_error is not None
    assert all(slot.status.value == "paused" for slot in snap.slots)


@pytest.mark.asyncio
async def test_size_override():
    data = DummyDataAccess([make_record(0)])
    snap = await _service(data).snapshot("svc-1", SourceScope(), size=5)
    assert snap.slot_count == 5

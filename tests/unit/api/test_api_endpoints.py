import asyncio

import pytest
from factories import T0, make_record
from fastapi.testclient import TestClient

from uptime_timeline.api.dependencies import get_timeline_service
from uptime_timeline.core.config import Settings
from uptime_timeline.domain.models import ServiceSnapshot
from uptime_timeline.infrastructure.memory.cache_store import MemoryCacheStore
from uptime_timeline.main import app
from uptime_timeline.services.fetch_service import UptimeFetchService
from uptime_timeline.services.timeline_service import TimelineService


class DummyReader:
    def __init__(self):
        self.healthy = True

    async def query(self, service_id, limit, **kwargs):
        return [make_record(0), make_record(1, status="down")]

    async def online_regional_agents(self):
        return []

    async def get_service(self, service_id):
        if service_id != "svc-1":
            return None
        return ServiceSnapshot(service_id="svc-1", status="up")

    async def ping(self):
        if not self.healthy:
            raise ConnectionError("clickhouse unreachable")
        return True


reader = DummyReader()


def override_timeline_service():
    config = Settings(fetch_backoff_base_seconds=0.0, fetch_backoff_max_seconds=0.0)
    fetcher = UptimeFetchService(reader, MemoryCacheStore(), config=config)
    return TimelineService(reader, fetcher, config=config, now_fn=lambda: T0)


@pytest.fixture(scope="module", autouse=True)
def setup_app_state():
    app.dependency_overrides[get_timeline_service] = override_timeline_service
    app.state.reader = reader
    app.state.redis = None
    app.state.ready_event = asyncio.Event()
    app.state.ready_event.set()
    yield
    app.dependency_overrides.clear()


def test_timeline_returns_fixed_length_snapshot():
    client = TestClient(app)
    resp = client.get("/services/svc-1/timeline")
    assert resp.status_code == 200
    body = resp.json()
    assert body["service_id"] == "svc-1"
    assert body["scope"] == "all"
    assert body["slot_count"] == 20
    assert len(body["slots"]) == 20
    assert body["rollup_percentage"] == 50.0
    assert body["slots"][0]["samples"][0]["source_id"] == "Default (Agent 1)"


def test_timeline_slot_count_and_scope():
    client = TestClient(app)
    resp = client.get("/services/svc-1/timeline", params={"scope": "default", "slots": 5})
    assert resp.status_code == 200
    assert resp.json()["slot_count"] == 5
    assert resp.json()["scope"] == "default"


def test_timeline_bad_scope_is_400():
    client = TestClient(app)
    resp = client.get("/services/svc-1/timeline", params={"scope": "eu-west"})
    assert resp.status_code == 400


def test_timeline_inverted_window_is_400():
    client = TestClient(app)
    resp = client.get(
        "/services/svc-1/timeline",
        params={"start": "2024-05-02T00:00:00Z", "end": "2024-05-01T00:00:00Z"},
    )
    assert resp.status_code == 400


def test_timeline_unknown_service_is_404():
    client = TestClient(app)
    assert client.get("/services/nope/timeline").status_code == 404


def test_health_and_ready():
    client = TestClient(app)
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "clickhouse": True}
    assert client.get("/readyz").json() == {"status": "ready"}


def test_health_reports_unreachable_store():
    client = TestClient(app)
    reader.healthy = False
    try:
        assert client.get("/healthz").status_code == 503
    finally:
        reader.healthy = True


def test_metrics_endpoint_exposes_timeline_metrics():
    client = TestClient(app)
    client.get("/services/svc-1/timeline")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "timeline_pipeline_latency_seconds" in resp.text

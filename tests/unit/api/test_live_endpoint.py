import pytest
from factories import make_record
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from uptime_timeline.core.config import Settings
from uptime_timeline.domain.models import ServiceSnapshot
from uptime_timeline.infrastructure.memory.cache_store import MemoryCacheStore
from uptime_timeline.main import app
from uptime_timeline.realtime.channel import EventChannel, Subscription
from uptime_timeline.services.fetch_service import UptimeFetchService


class DummyReader:
    async def query(self, service_id, limit, **kwargs):
        return [make_record(0), make_record(1, status="down")]

    async def online_regional_agents(self):
        return []

    async def get_service(self, service_id):
        if service_id != "svc-1":
            return None
        return ServiceSnapshot(service_id="svc-1", status="up")


class DummySubscriber:
    def __init__(self):
        self.released = []

    async def subscribe(self, topic, predicate):
        async def release():
            self.released.append(topic)

        return Subscription(topic, EventChannel(), release=release)


@pytest.fixture
def subscriber():
    reader = DummyReader()
    config = Settings(fetch_backoff_base_seconds=0.0, fetch_backoff_max_seconds=0.0)
    dummy = DummySubscriber()
    app.state.reader = reader
    app.state.fetcher = UptimeFetchService(reader, MemoryCacheStore(), config=config)
    app.state.subscriber = dummy
    return dummy


def _receive_until(ws, check, attempts: int = 10):
    for _ in range(attempts):
        message = ws.receive_json()
        if check(message):
            return message
    raise AssertionError("expected message not received")


def test_live_sends_snapshot_on_connect_and_releases_on_disconnect(subscriber):
    client = TestClient(app)
    with client.websocket_connect("/services/svc-1/timeline/live") as ws:
        snap = ws.receive_json()
        assert snap["service_id"] == "svc-1"
        assert snap["slot_count"] == 20
        assert snap["scope"] == "all"
        assert snap["is_loading"] is False
    assert sorted(subscriber.released) == ["services", "uptime_data"]


def test_live_scope_command_switches_sources(subscriber):
    client = TestClient(app)
    with client.websocket_connect("/services/svc-1/timeline/live") as ws:
        ws.receive_json()
        ws.send_json({"scope": "default"})
        snap = _receive_until(
            ws, lambda m: m.get("scope") == "default" and not m["is_loading"]
        )
        assert snap["slot_count"] == 20


def test_live_invalid_scope_command_reports_error(subscriber):
    client = TestClient(app)
    with client.websocket_connect("/services/svc-1/timeline/live") as ws:
        ws.receive_json()
        ws.send_json({"scope": "eu-west"})
        assert "error" in _receive_until(ws, lambda m: "error" in m)


def test_live_unknown_service_is_rejected(subscriber):
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/services/nope/timeline/live") as ws:
            ws.receive_json()
    assert exc_info.value.code == 1008


def test_live_bad_scope_query_is_rejected(subscriber):
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/services/svc-1/timeline/live?scope=eu-west") as ws:
            ws.receive_json()

import asyncio
from types import SimpleNamespace

import pytest

from uptime_timeline.domain.errors import SubscriptionError
from uptime_timeline.infrastructure.kafka.subscriber import KafkaSubscriber


class DummyKafkaConsumer:
    def __init__(self, messages=(), start_failures: int = 0):
        self._messages = list(messages)
        self._failures_left = start_failures
        self.start_calls = 0
        self.stopped = False

    async def start(self):
        self.start_calls += 1
        if self._failures_left > 0:
            self._failures_left -= 1
            raise RuntimeError("start failure")

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._messages:
            return SimpleNamespace(value=self._messages.pop(0))
        # Block until cancelled once the backlog is drained
        while True:
            await asyncio.sleep(0.05)

    async def stop(self):
        self.stopped = True


async def _collect(channel, count, timeout=1.0):
    items = []

    async def _read():
        async for item in channel:
            items.append(item)
            if len(items) == count:
                return

    await asyncio.wait_for(_read(), timeout)
    return items


@pytest.mark.asyncio
async def test_subscribe_filters_and_unwraps():
    consumer = DummyKafkaConsumer(
        messages=[
            {"record": {"service_id": "svc-1", "status": "up"}},
            {"record": {"service_id": "svc-2", "status": "down"}},
            None,
            {"service_id": "svc-1", "status": "down"},
        ]
    )
    subscriber = KafkaSubscriber(consumer_factory=lambda topic: consumer)
    sub = await subscriber.subscribe(
        "uptime_data", lambda r: r.get("service_id") == "svc-1"
    )

    items = await _collect(sub.channel, 2)
    assert [i["status"] for i in items] == ["up", "down"]

    await sub.unsubscribe()
    await sub.unsubscribe()
    assert consumer.stopped
    assert sub.channel.closed


@pytest.mark.asyncio
async def test_start_is_retried():
    consumer = DummyKafkaConsumer(start_failures=2)
    subscriber = KafkaSubscriber(
        consumer_factory=lambda topic: consumer, start_backoff=0.0
    )
    sub = await subscriber.subscribe("services", lambda r: True)
    assert consumer.start_calls == 3
    await sub.unsubscribe()


@pytest.mark.asyncio
async def test_start_failure_raises_subscription_error_and_stops_consumer():
    consumer = DummyKafkaConsumer(start_failures=10)
    subscriber = KafkaSubscriber(
        consumer_factory=lambda topic: consumer, start_retries=1, start_backoff=0.0
    )
    with pytest.raises(SubscriptionError):
        await subscriber.subscribe("services", lambda r: True)
    assert consumer.start_calls == 2
    assert consumer.stopped


@pytest.mark.asyncio
async def test_predicate_errors_skip_the_record():
    consumer = DummyKafkaConsumer(messages=[{"id": 1}, {"id": "svc-1"}])

    def predicate(record):
        return record["id"].startswith("svc")

    subscriber = KafkaSubscriber(consumer_factory=lambda topic: consumer)
    sub = await subscriber.subscribe("services", predicate)
    items = await _collect(sub.channel, 1)
    assert items == [{"id": "svc-1"}]
    await sub.unsubscribe()


@pytest.mark.asyncio
async def test_consumer_construction_failure_raises_subscription_error():
    def factory(topic):
        raise ValueError("bad bootstrap servers")

    subscriber = KafkaSubscriber(consumer_factory=factory)
    with pytest.raises(SubscriptionError, match="could not create consumer"):
        await subscriber.subscribe("services", lambda r: True)
